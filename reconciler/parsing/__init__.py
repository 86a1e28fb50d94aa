"""
Parsing Module.

Locale-aware value parsers and invoice number extraction shared by the
reconciliation and ledger pipelines.

Author: ML Engineering Team
"""

from .normalizers import (
    NumberParser,
    DateParser,
    parse_number,
    parse_optional_number,
    parse_date,
    format_date,
)
from .invoice_numbers import (
    InvoiceNumberExtractor,
    InvoiceNumberCheck,
    normalize_invoice_key,
    normalize_invoice_text,
    normalize_tax_id,
)

__all__ = [
    'NumberParser',
    'DateParser',
    'parse_number',
    'parse_optional_number',
    'parse_date',
    'format_date',
    'InvoiceNumberExtractor',
    'InvoiceNumberCheck',
    'normalize_invoice_key',
    'normalize_invoice_text',
    'normalize_tax_id',
]
