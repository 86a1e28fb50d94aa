"""
Tests for column suggestions, mapping completeness and templates.
"""

import pytest

from reconciler.input_handler import HeaderMap
from reconciler.mapping import (
    ABSENT,
    CURRENT_ACCOUNT_FIELDS,
    ColumnMapper,
    DocumentType,
    FieldMapping,
    MappingTemplateStore,
    ReconciliationMode,
    SALES_ACCOUNTING_VAT_FIELDS,
    SALES_EINVOICE_FIELDS,
    ensure_mapping_complete,
    find_missing_required,
    get_schema,
    normalize_label,
    vat_amount_key,
)
from reconciler.utils.exceptions import UnmappedFieldError


# ============================================
# Test Data
# ============================================

EINVOICE_HEADER = (
    "Fatura No", "Fatura Tarihi", "VKN / TCKN", "Mal Hizmet Tutarı (Matrah)",
    "KDV Tutarı", "Para Birimi", "Döviz Kuru", "Müşteri", "Statü",
)


def make_header(labels=EINVOICE_HEADER, row_index=0):
    return HeaderMap.from_row(row_index, labels)


def make_einvoice_mapping(**overrides):
    mapping = FieldMapping()
    mapping.select("invoice_number", "Fatura No")
    mapping.select("invoice_date", "Fatura Tarihi")
    mapping.select("taxable_amount", "Mal Hizmet Tutarı (Matrah)")
    mapping.select("vat_amount", "KDV Tutarı")
    for key, value in overrides.items():
        mapping.selections[key] = value
    return mapping


# ============================================
# Schema Tests
# ============================================

class TestSchemas:
    """Field lists per document type and mode."""

    def test_sales_einvoice_has_matrah(self):
        keys = [f.key for f in get_schema(DocumentType.E_INVOICE, ReconciliationMode.SALES)]
        assert "taxable_amount" in keys

    def test_purchase_einvoice_has_no_matrah(self):
        keys = [f.key for f in get_schema(DocumentType.E_INVOICE, ReconciliationMode.PURCHASE)]
        assert "taxable_amount" not in keys

    def test_vat_side_follows_mode(self):
        assert vat_amount_key(ReconciliationMode.SALES) == "credit_amount"
        assert vat_amount_key(ReconciliationMode.PURCHASE) == "debit_amount"

    def test_general_ledger_is_not_mapped(self):
        with pytest.raises(ValueError):
            get_schema(DocumentType.GENERAL_LEDGER)


class TestFieldMapping:
    """Selections, absence and multi-column fields."""

    def test_multi_column_selection(self):
        mapping = FieldMapping()
        mapping.select("vat_amount", "KDV %10", "KDV %20")
        assert mapping.get("vat_amount") == "KDV %10|||KDV %20"
        assert mapping.columns("vat_amount") == ["KDV %10", "KDV %20"]

    def test_absent_field_has_no_columns(self):
        mapping = FieldMapping()
        mapping.mark_absent("customer")
        assert mapping.get("customer") == ABSENT
        assert mapping.is_absent("customer")
        assert mapping.columns("customer") == []

    def test_dict_round_trip_drops_none(self):
        mapping = FieldMapping.from_dict({"invoice_number": "Fatura No", "tax_id": None})
        assert mapping.to_dict() == {"invoice_number": "Fatura No"}


# ============================================
# ColumnMapper Tests
# ============================================

class TestAutoSuggest:
    """Suggestions by label containment."""

    def test_normalize_label(self):
        assert normalize_label("KDV Tutarı (Alacak)") == "kdvtutarı(alacak)"
        assert normalize_label("  FATURA   TARİHİ ") == "faturatarihi"

    def test_suggests_einvoice_columns(self):
        mapping = ColumnMapper().auto_suggest(SALES_EINVOICE_FIELDS, make_header())

        assert mapping.get("invoice_number") == "Fatura No"
        assert mapping.get("invoice_date") == "Fatura Tarihi"
        assert mapping.get("tax_id") == "VKN / TCKN"
        assert mapping.get("vat_amount") == "KDV Tutarı"
        assert mapping.get("exchange_rate") == "Döviz Kuru"
        assert mapping.get("status") == "Statü"
        assert mapping.get("validity_status") is None

    def test_suggestion_is_case_and_space_insensitive(self):
        header = make_header(("TARİH", "FATURA NO", "KDV TUTARI (ALACAK)"))
        mapping = ColumnMapper().auto_suggest(SALES_ACCOUNTING_VAT_FIELDS, header)

        assert mapping.get("date") == "TARİH"
        assert mapping.get("invoice_number") == "FATURA NO"
        assert mapping.get("credit_amount") == "KDV TUTARI (ALACAK)"

    def test_exact_match_wins_over_containment(self):
        header = make_header(("Hesap Kodu", "Hesap Adı", "Tarih", "Borç", "Alacak"))
        mapping = ColumnMapper().auto_suggest(CURRENT_ACCOUNT_FIELDS, header)

        assert mapping.get("debit") == "Borç"
        assert mapping.get("credit") == "Alacak"
        assert mapping.get("fx_debit") is None
        assert mapping.get("fx_credit") is None


class TestMappingCompleteness:
    """Required fields must resolve to real columns."""

    def test_complete_mapping_passes(self):
        ensure_mapping_complete(SALES_EINVOICE_FIELDS, make_einvoice_mapping(), make_header())

    def test_absent_required_field_is_missing(self):
        mapping = make_einvoice_mapping(invoice_date=ABSENT)
        missing = find_missing_required(SALES_EINVOICE_FIELDS, mapping, make_header())
        assert [f.key for f in missing] == ["invoice_date"]

    def test_unknown_label_is_missing(self):
        mapping = make_einvoice_mapping(vat_amount="KDV Tutarı|||KDV %20")
        with pytest.raises(UnmappedFieldError) as excinfo:
            ensure_mapping_complete(SALES_EINVOICE_FIELDS, mapping, make_header())
        assert "KDV Tutarı" in excinfo.value.message
        assert excinfo.value.details["fields"] == ["vat_amount"]

    def test_optional_unknown_label_is_tolerated(self):
        mapping = make_einvoice_mapping(customer="Alıcı")
        assert find_missing_required(SALES_EINVOICE_FIELDS, mapping, make_header()) == []


class TestTemplates:
    """Remembered mappings per header fingerprint."""

    def test_template_replaces_suggestion(self, make_grid):
        store = MappingTemplateStore(persist=False)
        mapper = ColumnMapper(store)
        grid = make_grid([EINVOICE_HEADER, ["ABC2024000000001"]])

        first = mapper.propose(grid, SALES_EINVOICE_FIELDS)
        assert first.from_template is False
        assert first.is_complete

        custom = make_einvoice_mapping(customer=ABSENT)
        mapper.remember(first.header, custom)

        second = mapper.propose(grid, SALES_EINVOICE_FIELDS)
        assert second.from_template is True
        assert second.mapping.to_dict() == custom.to_dict()

    def test_same_layout_in_other_order_reuses_template(self, make_grid):
        store = MappingTemplateStore(persist=False)
        mapper = ColumnMapper(store)
        mapper.remember(make_header(), make_einvoice_mapping())

        reordered = make_grid([tuple(reversed(EINVOICE_HEADER))])
        assert mapper.propose(reordered, SALES_EINVOICE_FIELDS).from_template

    def test_incomplete_proposal_lists_missing_fields(self, make_grid):
        grid = make_grid([("Fatura No", "Fatura Tarihi", "Açıklama")])
        proposal = ColumnMapper(MappingTemplateStore(persist=False)).propose(grid, SALES_EINVOICE_FIELDS)
        assert proposal.missing == ["taxable_amount", "vat_amount"]

    def test_sqlite_store_survives_restart(self, tmp_path):
        db_path = tmp_path / "templates.db"
        MappingTemplateStore(db_path=str(db_path)).save("A|B", make_einvoice_mapping())

        reopened = MappingTemplateStore(db_path=str(db_path))
        assert "A|B" in reopened
        assert reopened.get("A|B").get("invoice_number") == "Fatura No"

        assert reopened.delete("A|B") is True
        assert len(MappingTemplateStore(db_path=str(db_path))) == 0

    def test_saving_replaces_previous_template(self):
        store = MappingTemplateStore(persist=False)
        store.save("A|B", make_einvoice_mapping(customer="Müşteri"))
        store.save("A|B", make_einvoice_mapping())
        assert store.get("A|B").get("customer") is None
        assert store.fingerprints() == ["A|B"]
