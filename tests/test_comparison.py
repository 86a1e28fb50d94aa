"""
Tests for comparing the accountant's and the company's current accounts.
"""

import json
from datetime import date

import pytest

from reconciler.ledger import (
    AccountComparator,
    AccountDetail,
    MatchStatus,
    Transaction,
    compare_accounts,
    compare_transactions,
    comparison_summary,
    name_similarity,
    normalize_account_name,
)
from reconciler.ledger.comparison import levenshtein_distance


# ============================================
# Test Data
# ============================================

def make_account(code, name, *moves):
    """Account from (day of January, debit, credit) moves."""
    account = AccountDetail(code=code, name=name)
    for day, debit, credit in moves:
        account.append(Transaction(
            date=date(2024, 1, day) if day else None, debit=debit, credit=credit,
        ))
    return account.recalculate()


def make_smmm_accounts():
    return [
        make_account("120.01", "ABC Tekstil Ltd. Şti.", (5, 1000.0, 0.0), (10, 0.0, 200.0)),
        make_account("320.01", "XYZ Lojistik A.Ş.", (7, 0.0, 500.0)),
        make_account("120.02", "Deniz Gıda", (8, 50.0, 0.0)),
        make_account("600.01", "Yurtiçi Satışlar", (9, 0.0, 10.0)),
    ]


def make_firma_accounts():
    return [
        make_account("120.10", "ABC TEKSTİL LTD ŞTİ", (5, 1000.0, 0.0), (10, 0.0, 200.0)),
        make_account("320.05", "XYZ LOJİSTİK ANONİM ŞİRKETİ", (7, 0.0, 450.0)),
        make_account("159.01", "Mavi Makina", (9, 75.0, 0.0)),
    ]


def by_status(results):
    return {r.status: r for r in results}


# ============================================
# Name Similarity Tests
# ============================================

class TestAccountNames:
    """Turkish company names reduced to comparable form."""

    @pytest.mark.parametrize("raw, expected", [
        ("Öz Çelik San. ve Tic. A.Ş.", "OZ CELIK SAN TIC"),
        ("ABC Tekstil Ltd. Şti.", "ABC TEKSTIL STI"),
        ("ABC TEKSTİL LTD ŞTİ", "ABC TEKSTIL STI"),
        ("XYZ LOJİSTİK ANONİM ŞİRKETİ", "XYZ LOJISTIK"),
        ("Deniz Gıda", "DENIZ GIDA"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_account_name(raw) == expected

    def test_same_company_scores_one(self):
        assert name_similarity("XYZ Lojistik A.Ş.", "XYZ LOJİSTİK ANONİM ŞİRKETİ") == 1.0

    def test_unrelated_names_score_low(self):
        assert name_similarity("Deniz Gıda", "Mavi Makina") < 0.62

    def test_empty_name_scores_zero(self):
        assert name_similarity("", "ABC") == 0.0

    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "abc") == 0


# ============================================
# Transaction Comparison Tests
# ============================================

class TestCompareTransactions:
    """Rows paired by date, debit and credit."""

    def test_surplus_occurrences_are_unmatched(self):
        smmm = [
            Transaction(date=date(2024, 1, 5), debit=100.0),
            Transaction(date=date(2024, 1, 5), debit=100.0),
            Transaction(date=None, credit=7.5),
        ]
        firma = [Transaction(date=date(2024, 1, 5), debit=100.0)]

        result = compare_transactions(smmm, firma)

        assert result.summary.to_dict() == {
            "smmm_total": 3, "firma_total": 1, "matched": 1, "only_in_smmm": 2, "only_in_firma": 0,
        }
        assert [(r.date, r.smmm_count, r.firma_count) for r in result.diff_rows] == [
            ("2024-01-05", 2, 1), ("TARIHSIZ", 1, 0),
        ]
        assert result.diff_rows[0].key == "2024-01-05|10000|0"
        assert [t.date for t in result.unmatched_smmm] == ["2024-01-05", "TARIHSIZ"]

    def test_identical_ledgers_have_no_diff_rows(self):
        rows = [Transaction(date=date(2024, 1, 1), debit=1.0), Transaction(date=date(2024, 1, 2), credit=2.0)]
        result = compare_transactions(rows, rows)
        assert result.summary.matched == 2
        assert result.diff_rows == []


# ============================================
# Account Comparison Tests
# ============================================

class TestAccountComparator:
    """Pairing and classifying current accounts."""

    def test_results_sorted_problems_first(self):
        results = compare_accounts(make_smmm_accounts(), make_firma_accounts())

        assert [r.status for r in results] == [
            MatchStatus.DIFFERENCE,
            MatchStatus.UNMATCHED_SMMM,
            MatchStatus.UNMATCHED_FIRMA,
            MatchStatus.MATCHED,
        ]
        assert comparison_summary(results) == {
            "DIFFERENCE": 1, "UNMATCHED_SMMM": 1, "UNMATCHED_FIRMA": 1, "MATCHED": 1,
        }

    def test_non_target_accounts_are_ignored(self):
        results = compare_accounts(make_smmm_accounts(), make_firma_accounts())
        codes = [r.smmm_account.code for r in results if r.smmm_account]
        assert "600.01" not in codes

    def test_matched_pair(self):
        matched = by_status(compare_accounts(make_smmm_accounts(), make_firma_accounts()))[MatchStatus.MATCHED]

        assert (matched.smmm_account.code, matched.firma_account.code) == ("120.01", "120.10")
        assert matched.match_score == 100
        assert matched.is_manual is False
        assert matched.difference == 0.0
        assert matched.transactions.summary.matched == 2

    def test_difference_pair(self):
        difference = by_status(compare_accounts(make_smmm_accounts(), make_firma_accounts()))[MatchStatus.DIFFERENCE]

        assert difference.scope_key == "320.01::320.05"
        assert difference.difference == -50.0
        assert difference.debit_difference == 0.0
        assert difference.credit_difference == 50.0
        assert [r.credit for r in difference.transactions.diff_rows] == [450.0, 500.0]
        assert difference.transactions.summary.only_in_smmm == 1
        assert difference.transactions.summary.only_in_firma == 1

    def test_unmatched_sides(self):
        results = by_status(compare_accounts(make_smmm_accounts(), make_firma_accounts()))

        smmm_only = results[MatchStatus.UNMATCHED_SMMM]
        assert smmm_only.smmm_account.code == "120.02"
        assert smmm_only.firma_account is None
        assert smmm_only.difference == 50.0
        assert smmm_only.transactions.summary.only_in_smmm == 1

        firma_only = results[MatchStatus.UNMATCHED_FIRMA]
        assert firma_only.firma_account.code == "159.01"
        assert firma_only.difference == -75.0
        assert firma_only.debit_difference == -75.0

    def test_balance_within_tolerance_is_matched(self):
        smmm = [make_account("120.01", "ABC", (1, 100.0, 0.0))]
        firma = [make_account("120.01", "ABC", (1, 100.01, 0.0))]
        assert compare_accounts(smmm, firma)[0].status == MatchStatus.MATCHED

        firma = [make_account("120.01", "ABC", (1, 100.02, 0.0))]
        assert compare_accounts(smmm, firma)[0].status == MatchStatus.DIFFERENCE

    def test_status_follows_balance_only(self):
        smmm = [make_account("120.01", "ABC", (1, 100.0, 0.0))]
        firma = [make_account("120.01", "ABC", (1, 150.0, 0.0), (2, 0.0, 50.0))]

        result = compare_accounts(smmm, firma)[0]

        assert result.status == MatchStatus.MATCHED
        assert result.debit_difference == -50.0
        assert result.credit_difference == -50.0
        assert result.transactions.summary.only_in_smmm == 1

    def test_manual_match_overrides_names(self):
        results = compare_accounts(
            make_smmm_accounts(), make_firma_accounts(), manual_matches={"120.02": "159.01"},
        )
        forced = next(r for r in results if r.smmm_account and r.smmm_account.code == "120.02")

        assert forced.is_manual is True
        assert forced.match_score == 100
        assert forced.firma_account.code == "159.01"
        assert forced.status == MatchStatus.DIFFERENCE
        assert forced.difference == -25.0
        assert MatchStatus.UNMATCHED_FIRMA not in by_status(results)

    def test_missing_manual_target_is_noted(self):
        results = compare_accounts(
            make_smmm_accounts(), make_firma_accounts(), manual_matches={"120.02": "999.99"},
        )
        unmatched = by_status(results)[MatchStatus.UNMATCHED_SMMM]
        assert "999.99" in unmatched.notes

    def test_custom_prefixes(self):
        comparator = AccountComparator(target_prefixes=["320"])
        results = comparator.compare(make_smmm_accounts(), make_firma_accounts())
        assert [r.scope_key for r in results] == ["320.01::320.05"]

    def test_result_serializes(self):
        result = compare_accounts(make_smmm_accounts(), make_firma_accounts())[0]
        data = json.loads(json.dumps(result.to_dict()))

        assert data["status"] == "DIFFERENCE"
        assert data["transaction_summary"]["only_in_firma"] == 1
        assert "transactions" not in data["smmm_account"]
