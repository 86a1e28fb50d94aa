"""
Column Mapping Module.

Canonical schemas, mapping suggestions and the template store.

Author: ML Engineering Team
"""

from .schemas import (
    ABSENT,
    MULTI_COLUMN_SEPARATOR,
    CanonicalFieldSpec,
    DocumentType,
    FieldMapping,
    ReconciliationMode,
    SALES_EINVOICE_FIELDS,
    PURCHASE_EINVOICE_FIELDS,
    SALES_ACCOUNTING_VAT_FIELDS,
    PURCHASE_ACCOUNTING_VAT_FIELDS,
    ACCOUNTING_MATRAH_FIELDS,
    CURRENT_ACCOUNT_FIELDS,
    get_schema,
    vat_amount_key,
)
from .templates import MappingTemplateStore
from .column_mapper import (
    ColumnMapper,
    MappingProposal,
    normalize_label,
    find_missing_required,
    ensure_mapping_complete,
)

__all__ = [
    'ABSENT',
    'MULTI_COLUMN_SEPARATOR',
    'CanonicalFieldSpec',
    'DocumentType',
    'FieldMapping',
    'ReconciliationMode',
    'SALES_EINVOICE_FIELDS',
    'PURCHASE_EINVOICE_FIELDS',
    'SALES_ACCOUNTING_VAT_FIELDS',
    'PURCHASE_ACCOUNTING_VAT_FIELDS',
    'ACCOUNTING_MATRAH_FIELDS',
    'CURRENT_ACCOUNT_FIELDS',
    'get_schema',
    'vat_amount_key',
    'MappingTemplateStore',
    'ColumnMapper',
    'MappingProposal',
    'normalize_label',
    'find_missing_required',
    'ensure_mapping_complete',
]
