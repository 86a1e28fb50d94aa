"""
Record Normalizers Module.

Turns one raw spreadsheet row into one canonical record, using the
confirmed column mapping:
    - EInvoiceNormalizer: GIB e-invoice lists
    - AccountingVatNormalizer: VAT lines of accounting ledgers
    - AccountingMatrahNormalizer: taxable-base lines of accounting ledgers

Normalizers never raise on bad values. A row either becomes a record or is
skipped with a reason the caller counts.

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import cell_text, collapse_whitespace
from reconciler.input_handler import HeaderMap
from reconciler.mapping.schemas import (
    DocumentType,
    FieldMapping,
    ReconciliationMode,
    vat_amount_key,
)
from reconciler.parsing.normalizers import NumberParser, DateParser
from reconciler.parsing.invoice_numbers import InvoiceNumberExtractor, normalize_tax_id
from .models import (
    AccountingMatrahRecord,
    AccountingRecord,
    CanonicalRecord,
    EInvoiceRecord,
)

# Initialize module logger
logger = get_logger(__name__)


SKIP_SUMMARY = 'summary'
SKIP_MISSING_KEY = 'missing_key'
SKIP_ZERO_MOVEMENT = 'zero_movement'


@dataclass(frozen=True)
class RowOutcome:
    """
    Result of normalizing one row.

    Attributes:
        record: The record, or None when the row was skipped
        skip_reason: SKIP_* constant when skipped
        invalid_date: The row had a date cell that could not be read
    """
    record: Optional[CanonicalRecord] = None
    skip_reason: Optional[str] = None
    invalid_date: bool = False


class RowReader:
    """Reads mapped values out of one raw row."""

    def __init__(
        self,
        row: Tuple[Any, ...],
        header: HeaderMap,
        mapping: FieldMapping,
        number_parser: NumberParser
    ) -> None:
        self.row = row
        self.columns = header.columns
        self.mapping = mapping
        self.number_parser = number_parser

    def _cells(self, key: str):
        for label in self.mapping.columns(key):
            index = self.columns.get(label)
            if index is not None and index < len(self.row):
                yield self.row[index]
            elif index is not None:
                yield None

    def value(self, key: str) -> Any:
        """Raw value of the first column mapped to ``key``."""
        return next(self._cells(key), None)

    def text(self, key: str) -> str:
        """Joined text of the columns mapped to ``key``."""
        parts = [cell_text(v) for v in self._cells(key)]
        return collapse_whitespace(' '.join(p for p in parts if p))

    def amount(self, key: str) -> float:
        """Sum of the columns mapped to ``key`` (0 when unmapped)."""
        return sum(self.number_parser.parse(v) for v in self._cells(key))

    def optional_number(self, key: str) -> Optional[float]:
        return self.number_parser.parse_optional(self.value(key))


class RecordNormalizer(ABC):
    """
    Base class of the per-document-type normalizers.

    Attributes:
        mode: SALES or PURCHASE
        include_zero_movement: Keep rows without any amount
    """

    document_type: ClassVar[DocumentType]
    id_prefix: ClassVar[str]

    def __init__(
        self,
        mode: ReconciliationMode = ReconciliationMode.SALES,
        include_zero_movement: Optional[bool] = None,
        number_parser: Optional[NumberParser] = None,
        date_parser: Optional[DateParser] = None,
        extractor: Optional[InvoiceNumberExtractor] = None
    ) -> None:
        self.mode = ReconciliationMode(mode)
        if include_zero_movement is None:
            include_zero_movement = get_config("normalization.include_zero_movement", False)
        self.include_zero_movement = include_zero_movement
        self.number_parser = number_parser or NumberParser()
        self.date_parser = date_parser or DateParser()
        self.extractor = extractor or InvoiceNumberExtractor()

    def record_id(self, source_file: str, row_index: int) -> str:
        return f"{self.id_prefix}:{source_file}:{row_index}"

    def reader(self, row, header: HeaderMap, mapping: FieldMapping) -> RowReader:
        return RowReader(row, header, mapping, self.number_parser)

    @abstractmethod
    def normalize(
        self,
        row: Tuple[Any, ...],
        row_index: int,
        header: HeaderMap,
        mapping: FieldMapping,
        source_file: str = ''
    ) -> RowOutcome:
        """
        Convert one raw row.

        Args:
            row: Raw cells.
            row_index: Index of the row in the grid.
            header: Header of the file.
            mapping: Confirmed column mapping.
            source_file: File name, kept on the record.

        Returns:
            RowOutcome with a record or a skip reason.
        """


class EInvoiceNormalizer(RecordNormalizer):
    """
    Normalizes GIB e-invoice list rows.

    Rows without an invoice number are skipped. VAT and matrah may be
    spread over several columns (one per rate) and are summed.
    """

    document_type = DocumentType.E_INVOICE
    id_prefix = 'EI'

    def normalize(self, row, row_index, header, mapping, source_file=''):
        reader = self.reader(row, header, mapping)

        invoice_number = reader.text('invoice_number')
        if not invoice_number:
            return RowOutcome(skip_reason=SKIP_MISSING_KEY)

        raw_date = reader.value('invoice_date')
        invoice_date = self.date_parser.parse(raw_date)

        exchange_rate = reader.optional_number('exchange_rate')
        if not exchange_rate or exchange_rate <= 0:
            exchange_rate = 1.0

        record = EInvoiceRecord(
            record_id=self.record_id(source_file, row_index),
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            raw_invoice_date=cell_text(raw_date),
            tax_id=normalize_tax_id(reader.text('tax_id')),
            taxable_amount=reader.amount('taxable_amount'),
            vat_amount=reader.amount('vat_amount'),
            gib_invoice_type=reader.text('gib_invoice_type'),
            payment_method=reader.text('payment_method'),
            currency=reader.text('currency').upper(),
            exchange_rate=exchange_rate,
            customer=reader.text('customer'),
            status=reader.text('status'),
            validity_status=reader.text('validity_status'),
            source_file=source_file,
            row_index=row_index,
            original_row=tuple(row),
        )
        return RowOutcome(
            record=record,
            invalid_date=bool(cell_text(raw_date)) and invoice_date is None,
        )


class _AccountingNormalizer(RecordNormalizer):
    """
    Shared logic of the accounting-side normalizers.

    The invoice number is extracted from the invoice-number and description
    cells. Carry-forward lines without an invoice number are skipped, as
    are rows without any amount unless zero movement is requested.
    """

    record_class: ClassVar[Type]

    @abstractmethod
    def amount_key(self) -> str:
        """Canonical field holding the amount of this ledger."""

    def normalize(self, row, row_index, header, mapping, source_file=''):
        reader = self.reader(row, header, mapping)

        amount = reader.amount(self.amount_key())
        direct_number = reader.text('invoice_number')
        description = reader.text('description')

        check = self.extractor.check([direct_number, description], amount)

        if check.carry_forward and not check.matches:
            return RowOutcome(skip_reason=SKIP_SUMMARY)

        if not amount and not self.include_zero_movement:
            return RowOutcome(skip_reason=SKIP_ZERO_MOVEMENT)

        raw_date = reader.value('date')
        entry_date = self.date_parser.parse(raw_date)

        record = self.record_class(
            record_id=self.record_id(source_file, row_index),
            invoice_number=check.primary,
            invoice_candidates=check.matches,
            entry_date=entry_date,
            raw_date=cell_text(raw_date),
            reference_no=reader.text('reference_no'),
            tax_id=normalize_tax_id(reader.text('tax_id')),
            description=description,
            amount=amount,
            ambiguous=check.ambiguous,
            validation_error=check.validation_error,
            source_file=source_file,
            row_index=row_index,
            original_row=tuple(row),
        )
        return RowOutcome(
            record=record,
            invalid_date=bool(cell_text(raw_date)) and entry_date is None,
        )


class AccountingVatNormalizer(_AccountingNormalizer):
    """VAT lines; the mode decides whether credit or debit is read."""

    document_type = DocumentType.ACCOUNTING_VAT
    id_prefix = 'ACC'
    record_class = AccountingRecord

    def amount_key(self) -> str:
        return vat_amount_key(self.mode)


class AccountingMatrahNormalizer(_AccountingNormalizer):
    """Taxable-base (matrah) lines."""

    document_type = DocumentType.ACCOUNTING_MATRAH
    id_prefix = 'MAT'
    record_class = AccountingMatrahRecord

    def amount_key(self) -> str:
        return 'taxable_amount'


NORMALIZERS: Dict[DocumentType, Type[RecordNormalizer]] = {
    DocumentType.E_INVOICE: EInvoiceNormalizer,
    DocumentType.ACCOUNTING_VAT: AccountingVatNormalizer,
    DocumentType.ACCOUNTING_MATRAH: AccountingMatrahNormalizer,
}


def get_normalizer(document_type: DocumentType, **kwargs) -> RecordNormalizer:
    """
    Create the normalizer of a document type.

    Args:
        document_type: Kind of file.
        **kwargs: Passed to the normalizer constructor.

    Raises:
        ValueError: For document types handled by the ledger pipeline.
    """
    document_type = DocumentType(document_type)
    try:
        normalizer_class = NORMALIZERS[document_type]
    except KeyError:
        raise ValueError(f"No record normalizer for {document_type.value} files")
    return normalizer_class(**kwargs)
