"""
Tests for general ledger analysis and account recalculation.
"""

import json
from datetime import date

from reconciler.input_handler import RawGrid
from reconciler.ledger import AccountDetail, LedgerAnalyzer, Transaction


# ============================================
# Test Data
# ============================================

LEDGER_HEADER = ["Tarih", "Hesap Kodu", "Hesap Adı", "Fiş No", "Açıklama", "Borç", "Alacak"]


def make_ledger_grid():
    """Ten January lines over two accounts and five February lines."""
    rows = [["ÖRNEK TİCARET A.Ş."], ["KEBİR DEFTERİ 01.01.2024 - 31.12.2024"], LEDGER_HEADER]

    for day in range(1, 11):
        if day <= 6:
            rows.append([f"{day:02d}.01.2024", "102.01", "BANKA", f"Y{day}", "Tahsilat", 100.0, 0])
        else:
            rows.append([f"{day:02d}.01.2024", "600.01", "YURTİÇİ SATIŞLAR", f"Y{day}", None, 0, "50,00"])

    for day in range(1, 6):
        rows.append([f"{day:02d}.02.2024", "191.01", "İNDİRİLECEK KDV", f"Y{10 + day}", "KDV", 20.0, 0])

    rows.append([None, "TOPLAM 102", None, None, None, 600.0, 0])
    rows.append([None, "12", None, None, None, 1.0, 0])
    return RawGrid.from_rows(rows, source_name="kebir.xlsx")


def analyze():
    return LedgerAnalyzer().analyze(make_ledger_grid())


# ============================================
# Analyzer Tests
# ============================================

class TestLedgerTotals:
    """Line, account and voucher counts."""

    def test_counts(self):
        analysis = analyze()

        assert analysis.total_lines == 15
        assert analysis.unique_account_count == 3
        assert analysis.unique_voucher_count == 15
        assert analysis.total_debit == 700.0
        assert analysis.total_credit == 200.0

    def test_complexity_score(self):
        assert analyze().complexity_score == 0.8

    def test_complexity_score_is_capped(self):
        assert LedgerAnalyzer().complexity_score(10000, 1000) == 10.0
        assert LedgerAnalyzer().complexity_score(0, 0) == 0.0

    def test_debug_meta(self):
        meta = analyze().debug_meta

        assert meta["header_row_index"] == 2
        assert meta["date_method"] == "header"
        assert meta["success_rate"] == "15 satır"
        assert meta["file_name"] == "kebir.xlsx"
        assert meta["parsed_date_count"] == 15
        assert meta["sample_dates"] == [f"{d:02d}.01.2024" for d in range(1, 6)]


class TestMonthlyDensity:
    """Activity per calendar month."""

    def test_january_and_february(self):
        months = analyze().monthly_density

        assert len(months) == 12
        january, february = months[0], months[1]
        assert january.count == 10
        assert january.volume == 800.0
        assert january.distinct_accounts == 2
        assert january.distinct_vouchers == 10
        assert february.count == 5
        assert february.volume == 100.0
        assert all(m.count == 0 for m in months[2:])

    def test_averages_over_active_months(self):
        analysis = analyze()
        assert analysis.avg_unique_accounts == 2
        assert analysis.avg_unique_vouchers == 8


class TestMizan:
    """Trial balance and account rankings."""

    def test_sorted_by_code_with_balances(self):
        mizan = analyze().mizan

        assert [a.code for a in mizan] == ["102.01", "191.01", "600.01"]
        bank = mizan[0]
        assert bank.total_debit == 600.0
        assert bank.balance == 600.0
        assert [t.balance for t in bank.transactions] == [100.0, 200.0, 300.0, 400.0, 500.0, 600.0]
        assert mizan[2].balance == -200.0

    def test_description_falls_back_to_account_name(self):
        sales = analyze().mizan[2]
        assert sales.transactions[0].description == "YURTİÇİ SATIŞLAR"

    def test_watch_list(self):
        key_accounts = analyze().key_accounts

        assert key_accounts["102"].count == 6
        assert key_accounts["102"].volume == 600.0
        assert key_accounts["191"].count == 5
        assert key_accounts["391"].count == 0
        assert key_accounts["601"].count == 0

    def test_top_accounts_ranked_by_line_count(self):
        top = analyze().top_accounts
        assert [(a.code, a.count) for a in top] == [("102", 6), ("191", 5), ("600", 4)]

    def test_shortest_name_labels_main_account(self):
        mizan = [
            AccountDetail(code="102.01", name="BANKALAR - GARANTİ"),
            AccountDetail(code="102.02", name="BANKALAR"),
        ]
        ranked = LedgerAnalyzer().rank_main_accounts(mizan)
        assert ranked[0].name == "BANKALAR"

    def test_analysis_serializes(self):
        data = json.loads(analyze().to_json(include_transactions=False))
        assert data["total_lines"] == 15
        assert "transactions" not in data["mizan"][0]


class TestDateFallback:
    """Ledgers without a date header."""

    def test_date_column_detected_from_values(self):
        grid = make_ledger_grid()
        rows = [list(r) for r in grid.rows]
        rows[2][0] = "İşlem"
        analysis = LedgerAnalyzer().analyze(RawGrid.from_rows(rows))

        assert analysis.debug_meta["date_method"].startswith("stat(0,")
        assert analysis.monthly_density[0].count == 10


# ============================================
# Recalculation Tests
# ============================================

class TestRecalculate:
    """Sorting and running balances."""

    def test_undated_transactions_go_last(self):
        account = AccountDetail(code="120.01")
        account.append(Transaction(date=None, debit=10.0))
        account.append(Transaction(date=date(2024, 2, 1), credit=5.0))
        account.append(Transaction(date=date(2024, 1, 1), debit=100.0))

        account.recalculate()

        assert [t.date for t in account.transactions] == [date(2024, 1, 1), date(2024, 2, 1), None]
        assert [t.balance for t in account.transactions] == [100.0, 95.0, 105.0]
        assert account.balance == account.total_debit - account.total_credit == 105.0

    def test_equal_dates_keep_order(self):
        account = AccountDetail(code="120.01")
        first = Transaction(date=date(2024, 1, 1), debit=1.0, voucher_no="A")
        second = Transaction(date=date(2024, 1, 1), debit=2.0, voucher_no="B")
        account.append(first)
        account.append(second)

        account.recalculate()
        assert [t.voucher_no for t in account.transactions] == ["A", "B"]

    def test_amounts_are_rounded(self):
        account = AccountDetail(code="120.01")
        account.append(Transaction(date=date(2024, 1, 1), debit=0.1))
        account.append(Transaction(date=date(2024, 1, 2), debit=0.2))
        account.recalculate()
        assert account.total_debit == 0.3
        assert account.transactions[-1].balance == 0.3

    def test_fx_balance_runs_per_currency(self):
        account = AccountDetail(code="320.01")
        for day, kwargs in enumerate([
            dict(currency_code="USD", fx_debit=10.0),
            dict(currency_code="USD", fx_credit=4.0),
            dict(currency_code="EUR", fx_balance=100.0, fx_balance_manual=True),
            dict(currency_code="EUR", fx_debit=5.0),
            dict(),
        ], start=1):
            account.append(Transaction(date=date(2024, 1, day), **kwargs))

        account.recalculate()
        assert [t.fx_balance for t in account.transactions] == [10.0, 6.0, 100.0, 105.0, None]

    def test_copy_is_independent(self):
        account = AccountDetail(code="120.01")
        account.append(Transaction(date=date(2024, 1, 1), debit=1.0))
        clone = account.copy()
        clone.transactions[0].debit = 99.0

        assert account.transactions[0].debit == 1.0
        assert clone.transactions[0].id == account.transactions[0].id
