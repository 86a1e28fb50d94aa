"""
Tests for exclusion, aggregation and reconciliation classification.
"""

import json

import pytest

from reconciler.matching import (
    Aggregator,
    ExclusionFilter,
    ExclusionSelection,
    Matcher,
    classify,
    diff_keys,
    reconcile,
)
from reconciler.records import AccountingMatrahRecord, AccountingRecord, EInvoiceRecord


# ============================================
# Test Data
# ============================================

def make_einvoice(number, vat=100.0, taxable=0.0, currency="", rate=1.0,
                  tax_id="", status="", validity_status="", row=1):
    return EInvoiceRecord(
        record_id=f"EI:efatura.xlsx:{row}",
        invoice_number=number,
        tax_id=tax_id,
        taxable_amount=taxable,
        vat_amount=vat,
        currency=currency,
        exchange_rate=rate,
        status=status,
        validity_status=validity_status,
        source_file="efatura.xlsx",
        row_index=row,
    )


def make_accounting(number, amount=100.0, tax_id="", validation_error=False, row=1):
    return AccountingRecord(
        record_id=f"ACC:391.xlsx:{row}",
        invoice_number=number,
        invoice_candidates=(number,) if number else (),
        tax_id=tax_id,
        amount=amount,
        validation_error=validation_error,
        source_file="391.xlsx",
        row_index=row,
    )


def make_matrah(number, amount=1000.0, validation_error=False, row=1):
    return AccountingMatrahRecord(
        record_id=f"MAT:600.xlsx:{row}",
        invoice_number=number,
        invoice_candidates=(number,),
        amount=amount,
        validation_error=validation_error,
        source_file="600.xlsx",
        row_index=row,
    )


INV_A = "ABC2024000000001"
INV_B = "ABC2024000000002"
INV_C = "ABC2024000000003"


# ============================================
# Key Diff Tests
# ============================================

class TestDiffKeys:
    """Set difference of two key collections."""

    def test_split(self):
        diff = diff_keys(["A", "B", "C"], ["C", "D", "B"])
        assert diff.only_left == ["A"]
        assert diff.only_right == ["D"]
        assert diff.both == ["B", "C"]

    def test_swapping_arguments_swaps_sides(self):
        forward = diff_keys(["A", "B"], ["B", "C"])
        backward = diff_keys(["B", "C"], ["A", "B"])
        assert forward.only_left == backward.only_right
        assert forward.only_right == backward.only_left
        assert set(forward.both) == set(backward.both)

    def test_duplicates_are_reported_once(self):
        assert diff_keys(["A", "A"], []).only_left == ["A"]


# ============================================
# Tolerance Tests
# ============================================

class TestTolerance:
    """Differences up to the tolerance count as reconciled."""

    def test_difference_at_tolerance_is_reconciled(self):
        report = reconcile([make_einvoice(INV_A, vat=100.25)], [make_accounting(INV_A, 100.0)], tolerance=0.25)
        assert report.is_clean

    def test_difference_above_tolerance_is_mismatch(self):
        report = reconcile([make_einvoice(INV_A, vat=100.26)], [make_accounting(INV_A, 100.0)], tolerance=0.25)

        assert len(report.amount_mismatches) == 1
        mismatch = report.amount_mismatches[0]
        assert mismatch.key == INV_A
        assert mismatch.vat_delta == 0.26
        assert mismatch.delta == 0.26
        assert mismatch.einvoice_vat == 100.26
        assert mismatch.accounting_vat == 100.0

    def test_delta_sign_follows_einvoice_minus_accounting(self):
        report = reconcile([make_einvoice(INV_A, vat=99.70)], [make_accounting(INV_A, 100.0)], tolerance=0.25)
        assert report.amount_mismatches[0].vat_delta == -0.3

    def test_zero_tolerance(self):
        report = reconcile([make_einvoice(INV_A, vat=100.01)], [make_accounting(INV_A, 100.0)], tolerance=0)
        assert len(report.amount_mismatches) == 1

    def test_tolerance_from_configuration(self):
        assert Matcher().tolerance == 0.25


# ============================================
# Classification Tests
# ============================================

class TestReconcile:
    """End-to-end classification into the four buckets."""

    def test_all_buckets(self):
        einvoices = [
            make_einvoice(INV_A, vat=180.0, row=1),
            make_einvoice(INV_B, vat=36.0, row=2),
        ]
        vat_records = [
            make_accounting(INV_A, 100.0, row=1),
            make_accounting(INV_A, 80.0, row=2),
            make_accounting(INV_C, 20.0, row=3),
            make_accounting("", 50.0, validation_error=True, row=4),
        ]

        report = reconcile(einvoices, vat_records, tolerance=0.25)

        assert [r.invoice_number for r in report.missing_in_accounting] == [INV_B]
        assert [r.invoice_number for r in report.missing_in_einvoice] == [INV_C]
        assert report.amount_mismatches == []
        assert [r.record_id for r in report.erroneous_records] == ["ACC:391.xlsx:4"]
        assert report.summary() == {
            "missing_in_accounting": 1,
            "missing_in_einvoice": 1,
            "amount_mismatches": 0,
            "erroneous_records": 1,
        }

    def test_every_line_of_unmatched_invoice_is_reported(self):
        report = reconcile([], [make_accounting(INV_C, 10.0, row=1), make_accounting(INV_C, 5.0, row=2)])
        assert [r.row_index for r in report.missing_in_einvoice] == [1, 2]

    def test_erroneous_rows_are_not_aggregated(self):
        report = reconcile(
            [make_einvoice(INV_A, vat=100.0)],
            [make_accounting(INV_A, 100.0), make_accounting(INV_A, 999.0, validation_error=True, row=2)],
        )
        assert report.amount_mismatches == []
        assert len(report.erroneous_records) == 1

    def test_keys_are_case_insensitive(self):
        report = reconcile([make_einvoice(INV_A.lower())], [make_accounting(INV_A)])
        assert report.is_clean

    def test_result_is_deterministic(self):
        einvoices = [make_einvoice(INV_A, 10.0), make_einvoice(INV_B, 20.0, row=2)]
        vat_records = [make_accounting(INV_B, 25.0), make_accounting(INV_C, 1.0, row=2)]

        first = reconcile(einvoices, vat_records).to_dict()
        second = reconcile(einvoices, vat_records).to_dict()
        assert first == second

    def test_report_serializes_to_json(self):
        report = reconcile([make_einvoice(INV_A, vat=120.0)], [make_accounting(INV_A, 100.0)])
        data = json.loads(report.to_json())

        assert data["summary"]["amount_mismatches"] == 1
        assert data["amount_mismatches"][0]["vat_delta"] == 20.0
        assert data["amount_mismatches"][0]["accounting_row_ids"] == ["ACC:391.xlsx:1"]
        assert "amount_mismatches=1" in repr(report)

    def test_classify_shortcut(self):
        aggregation = Aggregator(use_tax_id_keys=False).aggregate(
            [make_einvoice(INV_A, vat=10.0)], [make_accounting(INV_A, 10.2)]
        )
        report = classify(aggregation.einvoices, aggregation.accounting, tolerance=0.1)
        assert len(report.amount_mismatches) == 1


class TestForeignCurrency:
    """Foreign-currency e-invoices are converted with their own rate."""

    def test_converted_amount_is_compared(self):
        report = reconcile(
            [make_einvoice(INV_A, vat=10.0, currency="USD", rate=32.5)],
            [make_accounting(INV_A, 325.0)],
        )
        assert report.is_clean

    def test_converted_mismatch(self):
        report = reconcile(
            [make_einvoice(INV_A, vat=10.0, currency="EUR", rate=35.0)],
            [make_accounting(INV_A, 325.0)],
        )
        mismatch = report.amount_mismatches[0]
        assert mismatch.einvoice_vat == 350.0
        assert mismatch.vat_delta == 25.0

    @pytest.mark.parametrize("currency", ["", "TRY", "TL", "try", "TRY (Türk Lirası)"])
    def test_local_currency_is_not_converted(self, currency):
        assert Matcher().is_local_currency(currency)

    def test_other_codes_are_foreign(self):
        assert not Matcher().is_local_currency("USD")


class TestMatrahComparison:
    """Taxable amounts are compared once matrah lines are supplied."""

    def test_matrah_mismatch(self):
        report = reconcile(
            [make_einvoice(INV_A, vat=200.0, taxable=1000.0)],
            [make_accounting(INV_A, 200.0)],
            [make_matrah(INV_A, 900.0)],
        )
        mismatch = report.amount_mismatches[0]
        assert mismatch.vat_delta == 0.0
        assert mismatch.taxable_delta == 100.0
        assert mismatch.accounting_taxable == 900.0

    def test_matrah_ignored_without_matrah_lines(self):
        report = reconcile([make_einvoice(INV_A, vat=200.0, taxable=1000.0)], [make_accounting(INV_A, 200.0)])
        assert report.is_clean


# ============================================
# Aggregation Tests
# ============================================

class TestAggregator:
    """Keyed maps for the matcher."""

    def test_lines_are_summed_per_invoice(self):
        aggregates, erroneous = Aggregator().aggregate_accounting([
            make_accounting(INV_A, 100.0, row=1),
            make_accounting(INV_A, 80.5, row=2),
        ])
        assert aggregates[INV_A].vat_total == 180.5
        assert [r.row_index for r in aggregates[INV_A].rows] == [1, 2]
        assert erroneous == []

    def test_flagged_matrah_lines_are_still_summed(self):
        aggregates, erroneous = Aggregator().aggregate_accounting(
            [make_accounting(INV_A, 100.0, validation_error=True)],
            [make_matrah(INV_A, 900.0, validation_error=True)],
        )
        assert aggregates[INV_A].taxable_total == 900.0
        assert aggregates[INV_A].vat_total == 0.0
        assert [r.record_id for r in erroneous] == ["ACC:391.xlsx:1"]

    def test_duplicate_einvoice_last_wins(self):
        index, duplicates = Aggregator().aggregate_einvoices([
            make_einvoice(INV_A, vat=1.0, row=1),
            make_einvoice(INV_A, vat=2.0, row=2),
        ])
        assert index[INV_A].vat_amount == 2.0
        assert duplicates == [INV_A]

    def test_tax_id_keys(self):
        aggregator = Aggregator(use_tax_id_keys=True)
        assert aggregator.key_for(INV_A, "1234567890") == f"{INV_A}_1234567890"
        assert aggregator.key_for(INV_A, "") == INV_A

    def test_tax_id_keys_fall_back_to_bare_number(self):
        report = reconcile(
            [make_einvoice(INV_A, vat=100.0, tax_id="1234567890")],
            [make_accounting(INV_A, 100.0)],
            use_tax_id_keys=True,
        )
        assert report.is_clean

    def test_tax_id_keys_separate_suppliers(self):
        report = reconcile(
            [
                make_einvoice(INV_A, vat=100.0, tax_id="1111111111", row=1),
                make_einvoice(INV_A, vat=50.0, tax_id="2222222222", row=2),
            ],
            [
                make_accounting(INV_A, 100.0, tax_id="1111111111", row=1),
                make_accounting(INV_A, 50.0, tax_id="2222222222", row=2),
            ],
            use_tax_id_keys=True,
        )
        assert report.is_clean


# ============================================
# Exclusion Tests
# ============================================

class TestExclusions:
    """Cancelled e-invoices are removed before matching."""

    def test_suggests_cancel_statuses(self):
        records = [
            make_einvoice(INV_A, status="Onaylandı"),
            make_einvoice(INV_B, status="iptal edildi"),
            make_einvoice(INV_C, validity_status="Geçersiz"),
        ]
        selection = ExclusionFilter().suggest(records)

        assert selection.statuses == {"İPTAL EDİLDİ"}
        assert selection.validity_statuses == {"GEÇERSİZ"}

    def test_apply_splits_in_order(self):
        records = [
            make_einvoice(INV_A, status="Onaylandı", row=1),
            make_einvoice(INV_B, status="İptal Edildi", row=2),
            make_einvoice(INV_C, status="Onaylandı", row=3),
        ]
        kept, excluded = ExclusionFilter().apply(records, ExclusionSelection(statuses={"İPTAL EDİLDİ"}))

        assert [r.invoice_number for r in kept] == [INV_A, INV_C]
        assert [r.invoice_number for r in excluded] == [INV_B]

    def test_empty_selection_keeps_everything(self):
        records = [make_einvoice(INV_A, status="İptal")]
        kept, excluded = ExclusionFilter().apply(records, ExclusionSelection())
        assert kept == records
        assert excluded == []
