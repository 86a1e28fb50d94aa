"""
Canonical Record Data Classes.

Typed rows produced by the record normalizers, one class per document
type. Every record keeps a reference to the row it came from so that report
lines can be traced back to the uploaded spreadsheet.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from reconciler.mapping.schemas import DocumentType


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _json_cell(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class EInvoiceRecord:
    """
    One line of a GIB e-invoice list.

    Attributes:
        record_id: Stable identifier (source file and row)
        invoice_number: Invoice number as printed
        invoice_date: Parsed invoice date (None when unreadable)
        raw_invoice_date: Date cell as text
        tax_id: VKN/TCKN (digits only, '' when invalid)
        taxable_amount: Goods/services amount (matrah)
        vat_amount: VAT amount, in the invoice currency
        currency: Currency code as printed ('' means local currency)
        exchange_rate: Rate to local currency (1 when missing)
        status / validity_status: GIB status texts
        source_file / row_index / original_row: Origin of the record
    """
    document_type: ClassVar[DocumentType] = DocumentType.E_INVOICE

    record_id: str
    invoice_number: str
    invoice_date: Optional[date] = None
    raw_invoice_date: str = ''
    tax_id: str = ''
    taxable_amount: float = 0.0
    vat_amount: float = 0.0
    gib_invoice_type: str = ''
    payment_method: str = ''
    currency: str = ''
    exchange_rate: float = 1.0
    customer: str = ''
    status: str = ''
    validity_status: str = ''
    source_file: str = ''
    row_index: int = -1
    original_row: Tuple[Any, ...] = field(default_factory=tuple, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_type': self.document_type.value,
            'record_id': self.record_id,
            'invoice_number': self.invoice_number,
            'invoice_date': _iso(self.invoice_date),
            'raw_invoice_date': self.raw_invoice_date,
            'tax_id': self.tax_id,
            'taxable_amount': self.taxable_amount,
            'vat_amount': self.vat_amount,
            'gib_invoice_type': self.gib_invoice_type,
            'payment_method': self.payment_method,
            'currency': self.currency,
            'exchange_rate': self.exchange_rate,
            'customer': self.customer,
            'status': self.status,
            'validity_status': self.validity_status,
            'source_file': self.source_file,
            'row_index': self.row_index,
            'original_row': [_json_cell(v) for v in self.original_row],
        }


@dataclass(frozen=True)
class _AccountingFields:
    record_id: str
    invoice_number: str = ''
    invoice_candidates: Tuple[str, ...] = ()
    entry_date: Optional[date] = None
    raw_date: str = ''
    reference_no: str = ''
    tax_id: str = ''
    description: str = ''
    amount: float = 0.0
    ambiguous: bool = False
    validation_error: bool = False
    source_file: str = ''
    row_index: int = -1
    original_row: Tuple[Any, ...] = field(default_factory=tuple, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_type': self.document_type.value,
            'record_id': self.record_id,
            'invoice_number': self.invoice_number,
            'invoice_candidates': list(self.invoice_candidates),
            'entry_date': _iso(self.entry_date),
            'raw_date': self.raw_date,
            'reference_no': self.reference_no,
            'tax_id': self.tax_id,
            'description': self.description,
            'amount': self.amount,
            'ambiguous': self.ambiguous,
            'validation_error': self.validation_error,
            'source_file': self.source_file,
            'row_index': self.row_index,
            'original_row': [_json_cell(v) for v in self.original_row],
        }


@dataclass(frozen=True)
class AccountingRecord(_AccountingFields):
    """
    One VAT line of an accounting ledger (391 / 191 accounts).

    ``amount`` is the VAT on the authoritative side: credit for sales,
    debit for purchases. The invoice number is extracted from the
    invoice-number and description cells.
    """
    document_type: ClassVar[DocumentType] = DocumentType.ACCOUNTING_VAT


@dataclass(frozen=True)
class AccountingMatrahRecord(_AccountingFields):
    """One taxable-base (matrah) line of an accounting ledger; ``amount`` is the matrah."""
    document_type: ClassVar[DocumentType] = DocumentType.ACCOUNTING_MATRAH


CanonicalRecord = Union[EInvoiceRecord, AccountingRecord, AccountingMatrahRecord]
AccountingSideRecord = Union[AccountingRecord, AccountingMatrahRecord]


@dataclass
class ParseSummary:
    """
    Row counters of one normalization run.

    Attributes:
        total_rows: Non-empty rows below the header
        record_rows: Rows turned into records
        skipped_summary_rows: Subtotal / carry-forward rows
        skipped_missing_key_rows: Rows without their identifying value
        zero_movement_rows: Rows without any amount (skipped unless requested)
        invalid_date_rows: Rows whose date cell could not be read
        erroneous_rows: Monetary rows without an invoice number
        ambiguous_rows: Rows naming several invoice numbers
    """
    total_rows: int = 0
    record_rows: int = 0
    skipped_summary_rows: int = 0
    skipped_missing_key_rows: int = 0
    zero_movement_rows: int = 0
    invalid_date_rows: int = 0
    erroneous_rows: int = 0
    ambiguous_rows: int = 0

    def merge(self, other: 'ParseSummary') -> 'ParseSummary':
        """Return the element-wise sum of two summaries."""
        return ParseSummary(**{
            name: getattr(self, name) + getattr(other, name)
            for name in self.__dataclass_fields__
        })

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class NormalizationResult:
    """
    Records and counters produced from one file.

    Attributes:
        document_type: Kind of file processed
        source_file: File name
        header_row_index: Header row used
        records: Records in file order
        summary: Row counters
    """
    document_type: DocumentType
    source_file: str
    header_row_index: int
    records: List[CanonicalRecord] = field(default_factory=list)
    summary: ParseSummary = field(default_factory=ParseSummary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_type': DocumentType(self.document_type).value,
            'source_file': self.source_file,
            'header_row_index': self.header_row_index,
            'records': [r.to_dict() for r in self.records],
            'summary': self.summary.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
