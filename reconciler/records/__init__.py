"""
Canonical Records Module.

Typed records per document type, the row normalizers that build them and
the per-file processor.

Author: ML Engineering Team
"""

from .models import (
    AccountingMatrahRecord,
    AccountingRecord,
    AccountingSideRecord,
    CanonicalRecord,
    EInvoiceRecord,
    NormalizationResult,
    ParseSummary,
)
from .normalizers import (
    AccountingMatrahNormalizer,
    AccountingVatNormalizer,
    EInvoiceNormalizer,
    RecordNormalizer,
    RowOutcome,
    get_normalizer,
)
from .processor import RecordProcessor

__all__ = [
    'AccountingMatrahRecord',
    'AccountingRecord',
    'AccountingSideRecord',
    'CanonicalRecord',
    'EInvoiceRecord',
    'NormalizationResult',
    'ParseSummary',
    'AccountingMatrahNormalizer',
    'AccountingVatNormalizer',
    'EInvoiceNormalizer',
    'RecordNormalizer',
    'RowOutcome',
    'get_normalizer',
    'RecordProcessor',
]
