"""
Tests for locale value parsers and invoice number extraction.
"""

from datetime import date, datetime

import pytest

from reconciler.parsing import (
    DateParser,
    InvoiceNumberExtractor,
    NumberParser,
    normalize_invoice_key,
    normalize_invoice_text,
    normalize_tax_id,
)
from reconciler.parsing.normalizers import format_date
from reconciler.utils.helpers import round2, round4, turkish_lower, turkish_upper


# ============================================
# Number Parsing
# ============================================

class TestNumberParser:
    """Turkish and international number formats."""

    @pytest.mark.parametrize("raw, expected", [
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1234,56", 1234.56),
        ("₺ 1.250,00", 1250.0),
        ("1.234", 1.234),
        ("-45,10", -45.10),
        ("100 TL", 100.0),
        ("USD 12.5", 12.5),
        (250, 250.0),
        (12.75, 12.75),
    ])
    def test_parses_common_formats(self, raw, expected):
        assert NumberParser().parse(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", True, float("nan")])
    def test_unreadable_values_become_zero(self, raw):
        parser = NumberParser()
        assert parser.parse(raw) == 0.0
        assert parser.parse_optional(raw) is None

    @pytest.mark.parametrize("raw, expected", [
        ("1.234,56-", -1234.56),
        ("500,00 TL-", -500.0),
        ("(1.234,56)", -1234.56),
        ("(250)", -250.0),
        ("-45,10", -45.10),
    ])
    def test_credit_notations_are_negative(self, raw, expected):
        assert NumberParser().parse(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw, expected", [
        ("1.234.567", 1.234),
        ("1,234,567", 1.234),
        ("12,5abc", 12.5),
    ])
    def test_leading_numeric_part_is_read(self, raw, expected):
        assert NumberParser().parse(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["-", "()", "abc-"])
    def test_sign_without_digits_is_unreadable(self, raw):
        assert NumberParser().parse_optional(raw) is None

    def test_parse_is_idempotent_on_its_output(self):
        parser = NumberParser()
        value = parser.parse("1.234,56")
        assert parser.parse(value) == value


# ============================================
# Date Parsing
# ============================================

class TestDateParser:
    """Spreadsheet dates arrive typed, as text or as serial numbers."""

    @pytest.mark.parametrize("raw, expected", [
        ("15.03.2024", date(2024, 3, 15)),
        ("15/03/2024", date(2024, 3, 15)),
        ("5-1-2024", date(2024, 1, 5)),
        ("15.03.24", date(2024, 3, 15)),
        ("2024-03-15", date(2024, 3, 15)),
        ("20240315", date(2024, 3, 15)),
        (45366, date(2024, 3, 15)),
        ("45366", date(2024, 3, 15)),
        (datetime(2024, 3, 15, 10, 30), date(2024, 3, 15)),
        (date(2024, 3, 15), date(2024, 3, 15)),
    ])
    def test_parses_supported_shapes(self, raw, expected):
        assert DateParser().parse(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "31.02.2024", "not a date", 0, -5, "123"])
    def test_invalid_values_return_none(self, raw):
        assert DateParser().parse(raw) is None

    def test_serial_fraction_is_dropped(self):
        assert DateParser().parse(45366.75) == date(2024, 3, 15)

    def test_format_date(self):
        assert format_date(date(2024, 1, 5)) == "05.01.2024"
        assert format_date(None) == ""


# ============================================
# Invoice Numbers
# ============================================

class TestInvoiceNumberExtractor:
    """GIB invoice numbers inside free text."""

    def test_extracts_number_from_description(self):
        extractor = InvoiceNumberExtractor()
        assert extractor.extract("Satış faturası ABC2023000000001 ödeme") == ["ABC2023000000001"]

    def test_dots_and_spaces_inside_number_are_ignored(self):
        extractor = InvoiceNumberExtractor()
        assert extractor.extract("abc 2023.000 000 001") == ["ABC2023000000001"]

    def test_multiple_numbers_are_ambiguous(self):
        extractor = InvoiceNumberExtractor()
        check = extractor.check(["ABC2023000000001", "ABC2023000000002 iade"], 10.0)
        assert check.matches == ("ABC2023000000001", "ABC2023000000002")
        assert check.primary == "ABC2023000000001"
        assert check.ambiguous is True
        assert check.validation_error is False

    def test_same_number_twice_is_not_ambiguous(self):
        extractor = InvoiceNumberExtractor()
        check = extractor.check(["ABC2023000000001", "ABC2023000000001"], 10.0)
        assert check.ambiguous is False

    def test_amount_without_number_is_validation_error(self):
        check = InvoiceNumberExtractor().check(["Kasa tahsilatı"], 150.0)
        assert check.validation_error is True
        assert check.primary == ""

    def test_zero_amount_without_number_is_not_an_error(self):
        check = InvoiceNumberExtractor().check(["Kasa tahsilatı"], 0.0)
        assert check.validation_error is False

    def test_carry_forward_line_is_not_an_error(self):
        check = InvoiceNumberExtractor().check(["Nakli yekün"], 5000.0)
        assert check.carry_forward is True
        assert check.validation_error is False


class TestNormalization:
    """Keys, tax ids and Turkish casing."""

    def test_invoice_key(self):
        assert normalize_invoice_key("  abc2023000000001 ") == "ABC2023000000001"
        assert normalize_invoice_key(None) == ""

    def test_invoice_text(self):
        assert normalize_invoice_text("a.b c") == "ABC"

    @pytest.mark.parametrize("raw, expected", [
        ("123 456 7890", "1234567890"),
        ("12345678901", "12345678901"),
        ("12345", ""),
        (None, ""),
    ])
    def test_tax_id(self, raw, expected):
        assert normalize_tax_id(raw) == expected

    def test_turkish_casing(self):
        assert turkish_upper("iptal") == "İPTAL"
        assert turkish_lower("HESAP ADI") == "hesap adı"

    def test_rounding_is_half_up(self):
        assert round2(1.005) == 1.01
        assert round2(-0.001) == 0.0
        assert round4(0.00005) == 0.0001
