"""
Canonical Schemas Module.

Logical columns expected from each kind of export, independent of the
header texts a particular accounting package prints. Labels are the Turkish
names users recognise; they also drive automatic column suggestions.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class DocumentType(str, Enum):
    """Kinds of files the pipeline understands."""
    E_INVOICE = 'E_INVOICE'
    ACCOUNTING_VAT = 'ACCOUNTING_VAT'
    ACCOUNTING_MATRAH = 'ACCOUNTING_MATRAH'
    GENERAL_LEDGER = 'GENERAL_LEDGER'
    CURRENT_ACCOUNT = 'CURRENT_ACCOUNT'


class ReconciliationMode(str, Enum):
    """SALES compares credit-side VAT, PURCHASE compares debit-side VAT."""
    SALES = 'SALES'
    PURCHASE = 'PURCHASE'


@dataclass(frozen=True)
class CanonicalFieldSpec:
    """
    One logical column.

    Attributes:
        key: Stable identifier used in records and mappings
        label: Display label (Turkish), also used for auto-suggestions
        required: Processing cannot start until this field is mapped
        multi_column: Several source columns may be selected and summed
    """
    key: str
    label: str
    required: bool = False
    multi_column: bool = False


# =============================================================================
# FIELD MAPPINGS
# =============================================================================

ABSENT = '— YOKTUR —'
MULTI_COLUMN_SEPARATOR = '|||'


@dataclass
class FieldMapping:
    """
    Canonical key → source column selection.

    A selection is a single header label, several labels joined with
    ``|||`` (multi-column fields) or the ``ABSENT`` sentinel for optional
    fields the file does not have.

    Example:
        >>> mapping = FieldMapping()
        >>> mapping.select('vat_amount', 'KDV %18', 'KDV %20')
        >>> mapping.columns('vat_amount')
        ['KDV %18', 'KDV %20']
        >>> mapping.mark_absent('customer')
        >>> mapping.is_absent('customer')
        True
    """
    selections: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        return self.selections.get(key)

    def columns(self, key: str) -> List[str]:
        """Selected source labels of a field (empty when unset or absent)."""
        raw = self.selections.get(key)
        if not raw or raw == ABSENT:
            return []
        return [part.strip() for part in raw.split(MULTI_COLUMN_SEPARATOR) if part.strip()]

    def is_absent(self, key: str) -> bool:
        return self.selections.get(key) == ABSENT

    def is_set(self, key: str) -> bool:
        return bool(self.selections.get(key))

    def select(self, key: str, *labels: str) -> None:
        self.selections[key] = MULTI_COLUMN_SEPARATOR.join(labels)

    def mark_absent(self, key: str) -> None:
        self.selections[key] = ABSENT

    def unset(self, key: str) -> None:
        self.selections.pop(key, None)

    def copy(self) -> 'FieldMapping':
        return FieldMapping(dict(self.selections))

    def to_dict(self) -> Dict[str, str]:
        return dict(self.selections)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, str]]) -> 'FieldMapping':
        return cls({k: str(v) for k, v in (data or {}).items() if v is not None})


# =============================================================================
# SCHEMAS
# =============================================================================

_EINVOICE_COMMON_HEAD = (
    CanonicalFieldSpec('invoice_date', 'Fatura Tarihi', required=True),
    CanonicalFieldSpec('invoice_number', 'Fatura No', required=True),
    CanonicalFieldSpec('tax_id', 'VKN / TCKN'),
)

_EINVOICE_COMMON_TAIL = (
    CanonicalFieldSpec('vat_amount', 'KDV Tutarı', required=True, multi_column=True),
    CanonicalFieldSpec('gib_invoice_type', 'GİB Fatura Türü'),
    CanonicalFieldSpec('payment_method', 'Ödeme Şekli'),
    CanonicalFieldSpec('currency', 'Para Birimi'),
    CanonicalFieldSpec('exchange_rate', 'Döviz Kuru'),
    CanonicalFieldSpec('customer', 'Müşteri'),
    CanonicalFieldSpec('status', 'Statü'),
    CanonicalFieldSpec('validity_status', 'Geçerlilik Durumu'),
)

SALES_EINVOICE_FIELDS: Tuple[CanonicalFieldSpec, ...] = (
    _EINVOICE_COMMON_HEAD
    + (CanonicalFieldSpec('taxable_amount', 'Mal Hizmet Tutarı (Matrah)', required=True, multi_column=True),)
    + _EINVOICE_COMMON_TAIL
)

PURCHASE_EINVOICE_FIELDS: Tuple[CanonicalFieldSpec, ...] = (
    _EINVOICE_COMMON_HEAD + _EINVOICE_COMMON_TAIL
)

_ACCOUNTING_COMMON = (
    CanonicalFieldSpec('date', 'Tarih', required=True),
    CanonicalFieldSpec('reference_no', 'Ref.No'),
    CanonicalFieldSpec('invoice_number', 'Fatura No', required=True),
    CanonicalFieldSpec('tax_id', 'VKN'),
    CanonicalFieldSpec('description', 'Açıklama'),
)

SALES_ACCOUNTING_VAT_FIELDS: Tuple[CanonicalFieldSpec, ...] = _ACCOUNTING_COMMON + (
    CanonicalFieldSpec('credit_amount', 'KDV Tutarı (Alacak)', required=True, multi_column=True),
)

PURCHASE_ACCOUNTING_VAT_FIELDS: Tuple[CanonicalFieldSpec, ...] = _ACCOUNTING_COMMON + (
    CanonicalFieldSpec('debit_amount', 'KDV Tutarı (Borç)', required=True, multi_column=True),
)

ACCOUNTING_MATRAH_FIELDS: Tuple[CanonicalFieldSpec, ...] = (
    CanonicalFieldSpec('date', 'Tarih'),
    CanonicalFieldSpec('reference_no', 'Ref.No'),
    CanonicalFieldSpec('invoice_number', 'Fatura No', required=True),
    CanonicalFieldSpec('tax_id', 'VKN'),
    CanonicalFieldSpec('description', 'Açıklama'),
    CanonicalFieldSpec('taxable_amount', 'Matrah Tutarı (Borç/Alacak)', required=True, multi_column=True),
)

CURRENT_ACCOUNT_FIELDS: Tuple[CanonicalFieldSpec, ...] = (
    CanonicalFieldSpec('account_code', 'Hesap Kodu', required=True),
    CanonicalFieldSpec('account_name', 'Hesap Adı', required=True),
    CanonicalFieldSpec('date', 'Tarih'),
    CanonicalFieldSpec('voucher_no', 'Fiş No'),
    CanonicalFieldSpec('document_no', 'Evrak No'),
    CanonicalFieldSpec('description', 'Açıklama'),
    CanonicalFieldSpec('debit', 'Borç', required=True),
    CanonicalFieldSpec('credit', 'Alacak', required=True),
    CanonicalFieldSpec('currency_code', 'Döviz Cinsi'),
    CanonicalFieldSpec('exchange_rate', 'Kur'),
    CanonicalFieldSpec('fx_debit', 'Döviz Borç'),
    CanonicalFieldSpec('fx_credit', 'Döviz Alacak'),
    CanonicalFieldSpec('fx_balance', 'Döviz Bakiye'),
)


def vat_amount_key(mode: ReconciliationMode) -> str:
    """Accounting column holding the authoritative VAT amount for a mode."""
    return 'debit_amount' if ReconciliationMode(mode) == ReconciliationMode.PURCHASE else 'credit_amount'


def get_schema(
    document_type: DocumentType,
    mode: ReconciliationMode = ReconciliationMode.SALES
) -> Tuple[CanonicalFieldSpec, ...]:
    """
    Return the field list of a document type.

    Args:
        document_type: Kind of file.
        mode: SALES or PURCHASE.

    Returns:
        Tuple of CanonicalFieldSpec.

    Raises:
        ValueError: For document types without a mapping step.
    """
    document_type = DocumentType(document_type)
    purchase = ReconciliationMode(mode) == ReconciliationMode.PURCHASE

    if document_type == DocumentType.E_INVOICE:
        return PURCHASE_EINVOICE_FIELDS if purchase else SALES_EINVOICE_FIELDS
    if document_type == DocumentType.ACCOUNTING_VAT:
        return PURCHASE_ACCOUNTING_VAT_FIELDS if purchase else SALES_ACCOUNTING_VAT_FIELDS
    if document_type == DocumentType.ACCOUNTING_MATRAH:
        return ACCOUNTING_MATRAH_FIELDS
    if document_type == DocumentType.CURRENT_ACCOUNT:
        return CURRENT_ACCOUNT_FIELDS

    raise ValueError(f"{document_type.value} files are not column-mapped")
