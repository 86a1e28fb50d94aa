"""
Aggregation Module.

Groups accounting lines by invoice number (an invoice is often booked over
several lines) and indexes e-invoices by the same key.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.parsing.invoice_numbers import normalize_invoice_key
from reconciler.records.models import (
    AccountingMatrahRecord,
    AccountingSideRecord,
    EInvoiceRecord,
)

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class AccountingAggregate:
    """
    Accounting lines booked for one invoice.

    Attributes:
        key: Matching key
        invoice_number: Normalized invoice number
        vat_total: Sum of the VAT lines
        taxable_total: Sum of the matrah lines
        rows: Contributing records, in input order
    """
    key: str
    invoice_number: str
    vat_total: float = 0.0
    taxable_total: float = 0.0
    rows: List[AccountingSideRecord] = field(default_factory=list)

    @property
    def total(self) -> float:
        return self.vat_total

    @property
    def has_taxable_rows(self) -> bool:
        return any(isinstance(r, AccountingMatrahRecord) for r in self.rows)

    def add(self, record: AccountingSideRecord) -> None:
        if isinstance(record, AccountingMatrahRecord):
            self.taxable_total += record.amount
        else:
            self.vat_total += record.amount
        self.rows.append(record)

    def to_dict(self) -> Dict:
        return {
            'key': self.key,
            'invoice_number': self.invoice_number,
            'vat_total': self.vat_total,
            'taxable_total': self.taxable_total,
            'row_ids': [r.record_id for r in self.rows],
        }


@dataclass
class AggregationResult:
    """
    Inputs of the matcher.

    Attributes:
        einvoices: Key → e-invoice (last record wins on duplicates)
        accounting: Key → aggregated accounting lines
        erroneous: Accounting rows quarantined by validation
        duplicate_einvoice_keys: Keys seen more than once on the e-invoice side
    """
    einvoices: Dict[str, EInvoiceRecord] = field(default_factory=dict)
    accounting: Dict[str, AccountingAggregate] = field(default_factory=dict)
    erroneous: List[AccountingSideRecord] = field(default_factory=list)
    duplicate_einvoice_keys: List[str] = field(default_factory=list)


class Aggregator:
    """
    Builds the keyed maps compared by the matcher.

    With ``use_tax_id_keys`` the key is ``INVOICE_VKN`` whenever a tax id is
    known, which keeps invoices of different suppliers apart when they
    share a number.

    Example:
        >>> aggregator = Aggregator()
        >>> result = aggregator.aggregate(einvoices, vat_records, matrah_records)
        >>> result.accounting['ABC2023000000001'].vat_total
        180.0
    """

    def __init__(self, use_tax_id_keys: Optional[bool] = None) -> None:
        if use_tax_id_keys is None:
            use_tax_id_keys = get_config("matching.use_tax_id_keys", False)
        self.use_tax_id_keys = use_tax_id_keys

    def key_for(self, invoice_number: str, tax_id: str = '') -> str:
        key = normalize_invoice_key(invoice_number)
        if key and self.use_tax_id_keys and tax_id:
            return f"{key}_{tax_id}"
        return key

    def aggregate_einvoices(
        self,
        records: Iterable[EInvoiceRecord]
    ) -> Tuple[Dict[str, EInvoiceRecord], List[str]]:
        """
        Index e-invoices by key; a later record replaces an earlier one.

        Returns:
            Tuple of (key → record, duplicate keys in order of detection).
        """
        index: Dict[str, EInvoiceRecord] = {}
        duplicates: List[str] = []

        for record in records:
            key = self.key_for(record.invoice_number, record.tax_id)
            if not key:
                continue
            if key in index:
                duplicates.append(key)
            index[key] = record

        if duplicates:
            logger.warning(
                f"{len(duplicates)} duplicate e-invoice numbers, last occurrence kept: "
                f"{duplicates[:5]}"
            )
        return index, duplicates

    def aggregate_accounting(
        self,
        vat_records: Iterable[AccountingSideRecord],
        matrah_records: Iterable[AccountingSideRecord] = ()
    ) -> Tuple[Dict[str, AccountingAggregate], List[AccountingSideRecord]]:
        """
        Sum accounting lines per key.

        VAT rows flagged with a validation error are set aside instead of
        being summed. Matrah rows are always summed; they never reach the
        erroneous bucket.

        Returns:
            Tuple of (key → aggregate, quarantined rows).
        """
        aggregates: Dict[str, AccountingAggregate] = {}
        erroneous: List[AccountingSideRecord] = []
        unkeyed = 0

        summed = []
        for record in vat_records:
            if record.validation_error:
                erroneous.append(record)
            else:
                summed.append(record)
        summed.extend(matrah_records)

        for record in summed:
            key = self.key_for(record.invoice_number, record.tax_id)
            if not key:
                unkeyed += 1
                continue

            aggregate = aggregates.get(key)
            if aggregate is None:
                aggregate = AccountingAggregate(
                    key=key, invoice_number=normalize_invoice_key(record.invoice_number)
                )
                aggregates[key] = aggregate
            aggregate.add(record)

        if unkeyed:
            logger.debug(f"{unkeyed} accounting rows without invoice number were not aggregated")

        return aggregates, erroneous

    def aggregate(
        self,
        einvoices: Iterable[EInvoiceRecord],
        vat_records: Iterable[AccountingSideRecord],
        matrah_records: Iterable[AccountingSideRecord] = ()
    ) -> AggregationResult:
        """Build both keyed maps and the quarantine list."""
        einvoice_index, duplicates = self.aggregate_einvoices(einvoices)
        accounting, erroneous = self.aggregate_accounting(vat_records, matrah_records)

        logger.info(
            f"Aggregated {len(einvoice_index)} e-invoices and {len(accounting)} "
            f"accounting invoices ({len(erroneous)} quarantined rows)"
        )
        return AggregationResult(
            einvoices=einvoice_index,
            accounting=accounting,
            erroneous=erroneous,
            duplicate_einvoice_keys=duplicates,
        )
