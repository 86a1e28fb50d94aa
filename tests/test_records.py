"""
Tests for row normalization into canonical records.
"""

from datetime import date

import pytest

from reconciler.input_handler import HeaderMap, RawGrid
from reconciler.mapping import DocumentType, FieldMapping, ReconciliationMode
from reconciler.records import (
    AccountingMatrahRecord,
    AccountingRecord,
    EInvoiceRecord,
    ParseSummary,
    RecordProcessor,
)
from reconciler.records.normalizers import (
    AccountingMatrahNormalizer,
    AccountingVatNormalizer,
    _AccountingNormalizer,
)
from reconciler.utils.exceptions import UnmappedFieldError


# ============================================
# Test Data
# ============================================

VAT_HEADER = ["Tarih", "Ref.No", "Fatura No", "Açıklama", "KDV Alacak", "KDV Borç"]

EINVOICE_HEADER = [
    "Fatura No", "Fatura Tarihi", "VKN", "Matrah", "KDV %10", "KDV %20",
    "Para Birimi", "Kur", "Statü",
]


def make_vat_grid():
    return RawGrid.from_rows([
        VAT_HEADER,
        ["05.01.2024", "R1", "ABC2024000000001", "Satış", "180,00", None],
        ["06.01.2024", "R2", None, "Fatura ABC2024000000002 satış", 36, None],
        ["07.01.2024", "R3", None, "Kasa tahsilatı", 50, None],
        ["08.01.2024", "R4", None, "ABC2024000000003 ve ABC2024000000004", 20, None],
        [None, None, None, "NAKLİ YEKÜN", 286, None],
        ["09.01.2024", "R5", "ABC2024000000005", "İade", 0, 15],
        ["99.99.2024", "R6", "ABC2024000000006", "Satış", 10, None],
        [],
    ], source_name="391.xlsx")


def make_vat_mapping(amount_label="KDV Alacak", amount_key="credit_amount"):
    mapping = FieldMapping()
    mapping.select("date", "Tarih")
    mapping.select("reference_no", "Ref.No")
    mapping.select("invoice_number", "Fatura No")
    mapping.select("description", "Açıklama")
    mapping.select(amount_key, amount_label)
    return mapping


def make_einvoice_grid():
    return RawGrid.from_rows([
        EINVOICE_HEADER,
        ["ABC2024000000001", "05.01.2024", "1234567890", 1000, 100, 0, "TRY", None, "Onaylandı"],
        ["ABC2024000000002", 45297, "12", "2.000,00", 0, "400,00", "usd", "32,5", "Onaylandı"],
        [None, "07.01.2024", None, 50, 5, 0, None, None, None],
    ], source_name="efatura.xlsx")


def make_einvoice_mapping():
    mapping = FieldMapping()
    mapping.select("invoice_number", "Fatura No")
    mapping.select("invoice_date", "Fatura Tarihi")
    mapping.select("tax_id", "VKN")
    mapping.select("taxable_amount", "Matrah")
    mapping.select("vat_amount", "KDV %10", "KDV %20")
    mapping.select("currency", "Para Birimi")
    mapping.select("exchange_rate", "Kur")
    mapping.select("status", "Statü")
    mapping.mark_absent("customer")
    return mapping


def process(grid, mapping, document_type, mode=ReconciliationMode.SALES, **kwargs):
    header = HeaderMap.from_row(0, grid.row(0))
    return RecordProcessor(mode=mode, **kwargs).process(grid, header, mapping, document_type)


# ============================================
# Accounting VAT Tests
# ============================================

class TestAccountingVat:
    """Sales-side VAT ledger rows."""

    def test_counters(self):
        result = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT)
        summary = result.summary

        assert summary.total_rows == 7
        assert summary.record_rows == 5
        assert summary.skipped_summary_rows == 1
        assert summary.zero_movement_rows == 1
        assert summary.erroneous_rows == 1
        assert summary.ambiguous_rows == 1
        assert summary.invalid_date_rows == 1

    def test_records_in_file_order(self):
        records = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT).records

        assert all(isinstance(r, AccountingRecord) for r in records)
        assert [r.invoice_number for r in records] == [
            "ABC2024000000001", "ABC2024000000002", "", "ABC2024000000003", "ABC2024000000006",
        ]
        assert records[0].record_id == "ACC:391.xlsx:1"
        assert records[0].amount == 180.0
        assert records[0].entry_date == date(2024, 1, 5)

    def test_invoice_number_from_description(self):
        record = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT).records[1]
        assert record.invoice_number == "ABC2024000000002"
        assert record.validation_error is False

    def test_row_without_invoice_number_is_flagged(self):
        record = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT).records[2]
        assert record.validation_error is True
        assert record.amount == 50.0

    def test_ambiguous_row_keeps_all_candidates(self):
        record = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT).records[3]
        assert record.ambiguous is True
        assert record.invoice_candidates == ("ABC2024000000003", "ABC2024000000004")

    def test_unreadable_date_keeps_raw_text(self):
        record = process(make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT).records[4]
        assert record.entry_date is None
        assert record.raw_date == "99.99.2024"

    def test_zero_movement_rows_on_request(self):
        result = process(
            make_vat_grid(), make_vat_mapping(), DocumentType.ACCOUNTING_VAT,
            include_zero_movement=True,
        )
        assert result.summary.zero_movement_rows == 0
        assert result.summary.record_rows == 6

    def test_purchase_mode_reads_debit_side(self):
        result = process(
            make_vat_grid(),
            make_vat_mapping("KDV Borç", "debit_amount"),
            DocumentType.ACCOUNTING_VAT,
            mode=ReconciliationMode.PURCHASE,
        )
        assert [r.invoice_number for r in result.records] == ["ABC2024000000005"]
        assert result.records[0].amount == 15.0

    def test_matrah_records(self):
        mapping = make_vat_mapping("KDV Alacak", "taxable_amount")
        records = process(make_vat_grid(), mapping, DocumentType.ACCOUNTING_MATRAH).records
        assert records
        assert all(isinstance(r, AccountingMatrahRecord) for r in records)
        assert records[0].record_id.startswith("MAT:")

    def test_flagged_matrah_rows_are_not_counted_as_erroneous(self):
        mapping = make_vat_mapping("KDV Alacak", "taxable_amount")
        result = process(make_vat_grid(), mapping, DocumentType.ACCOUNTING_MATRAH)
        assert result.records[2].validation_error is True
        assert result.summary.erroneous_rows == 0

    def test_unmapped_required_field(self):
        mapping = make_vat_mapping()
        mapping.unset("credit_amount")
        with pytest.raises(UnmappedFieldError):
            process(make_vat_grid(), mapping, DocumentType.ACCOUNTING_VAT)


# ============================================
# E-Invoice Tests
# ============================================

class TestEInvoice:
    """GIB e-invoice list rows."""

    def test_records(self):
        result = process(make_einvoice_grid(), make_einvoice_mapping(), DocumentType.E_INVOICE)
        first, second = result.records

        assert isinstance(first, EInvoiceRecord)
        assert first.invoice_date == date(2024, 1, 5)
        assert first.tax_id == "1234567890"
        assert first.vat_amount == 100.0
        assert first.exchange_rate == 1.0
        assert first.currency == "TRY"

        assert second.invoice_date == date(2024, 1, 6)
        assert second.tax_id == ""
        assert second.taxable_amount == 2000.0
        assert second.vat_amount == 400.0
        assert second.currency == "USD"
        assert second.exchange_rate == 32.5

    def test_row_without_invoice_number_is_skipped(self):
        summary = process(make_einvoice_grid(), make_einvoice_mapping(), DocumentType.E_INVOICE).summary
        assert summary.skipped_missing_key_rows == 1
        assert summary.record_rows == 2

    def test_to_dict_is_json_ready(self):
        record = process(make_einvoice_grid(), make_einvoice_mapping(), DocumentType.E_INVOICE).records[0]
        data = record.to_dict()
        assert data["document_type"] == "E_INVOICE"
        assert data["invoice_date"] == "2024-01-05"


class TestNormalizers:
    """Ledger-specific normalizers."""

    def test_accounting_base_requires_an_amount_field(self):
        with pytest.raises(TypeError):
            _AccountingNormalizer()

    def test_amount_fields(self):
        assert AccountingVatNormalizer(mode=ReconciliationMode.SALES).amount_key() == "credit_amount"
        assert AccountingVatNormalizer(mode=ReconciliationMode.PURCHASE).amount_key() == "debit_amount"
        assert AccountingMatrahNormalizer().amount_key() == "taxable_amount"


class TestParseSummary:
    """Counter arithmetic."""

    def test_merge(self):
        merged = ParseSummary(total_rows=3, record_rows=2).merge(ParseSummary(total_rows=1, erroneous_rows=1))
        assert merged.total_rows == 4
        assert merged.record_rows == 2
        assert merged.erroneous_rows == 1
