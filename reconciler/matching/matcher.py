"""
Matching Module.

Compares the e-invoice index with the aggregated accounting lines and
classifies every key into the report buckets. The matcher is a pure
function of its inputs: the same maps always give the same report.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import round2, round4
from reconciler.parsing.invoice_numbers import normalize_invoice_key
from reconciler.records.models import AccountingSideRecord, EInvoiceRecord
from .aggregator import AccountingAggregate, Aggregator
from .report import AmountMismatch, ReconciliationReport

# Initialize module logger
logger = get_logger(__name__)


# Float noise allowance when comparing a difference with the tolerance
EPSILON = 1e-9


@dataclass
class KeyDiff:
    """
    Key sets of two maps.

    Attributes:
        only_left: Keys only in the left map (left order)
        only_right: Keys only in the right map (right order)
        both: Keys in both maps (left order)
    """
    only_left: List[str] = field(default_factory=list)
    only_right: List[str] = field(default_factory=list)
    both: List[str] = field(default_factory=list)


def diff_keys(left: Iterable[str], right: Iterable[str]) -> KeyDiff:
    """
    Split the keys of two collections.

    Swapping the arguments swaps ``only_left`` and ``only_right``.

    Example:
        >>> diff_keys(['A', 'B'], ['B', 'C'])
        KeyDiff(only_left=['A'], only_right=['C'], both=['B'])
    """
    left = list(dict.fromkeys(left))
    right = list(dict.fromkeys(right))
    right_set = set(right)
    left_set = set(left)

    return KeyDiff(
        only_left=[k for k in left if k not in right_set],
        only_right=[k for k in right if k not in left_set],
        both=[k for k in left if k in right_set],
    )


class Matcher:
    """
    Classifies keys into missing / mismatch buckets.

    Attributes:
        tolerance: Largest difference still considered reconciled
        local_currency_codes: Currency codes needing no conversion
        use_tax_id_keys: Fall back to the bare invoice number when the
            ``INVOICE_VKN`` key has no counterpart

    Example:
        >>> matcher = Matcher(tolerance=0.25)
        >>> report = matcher.classify(einvoices, accounting)
        >>> [m.vat_delta for m in report.amount_mismatches]
        [-0.3]
    """

    def __init__(
        self,
        tolerance: Optional[float] = None,
        local_currency_codes: Optional[Sequence[str]] = None,
        use_tax_id_keys: Optional[bool] = None
    ) -> None:
        self.tolerance = tolerance if tolerance is not None else get_config("matching.tolerance", 0.25)
        codes = local_currency_codes or get_config("matching.local_currency_codes", ['TRY', 'TL'])
        self.local_currency_codes = [c.upper() for c in codes]
        if use_tax_id_keys is None:
            use_tax_id_keys = get_config("matching.use_tax_id_keys", False)
        self.use_tax_id_keys = use_tax_id_keys

    def is_local_currency(self, currency: str) -> bool:
        """Empty codes, ``TL`` and codes containing ``TRY`` need no conversion."""
        code = (currency or '').strip().upper()
        if not code:
            return True
        return any(code == c or (len(c) > 2 and c in code) for c in self.local_currency_codes)

    def to_local(self, record: EInvoiceRecord) -> Tuple[float, float]:
        """
        E-invoice VAT and matrah in local currency.

        Returns:
            Tuple of (vat, taxable amount).
        """
        if self.is_local_currency(record.currency):
            return record.vat_amount, record.taxable_amount
        rate = record.exchange_rate or 1.0
        return round4(record.vat_amount * rate), round4(record.taxable_amount * rate)

    def exceeds(self, difference: float) -> bool:
        return abs(difference) - self.tolerance > EPSILON

    def _pair_keys(
        self,
        einvoices: Dict[str, EInvoiceRecord],
        accounting: Dict[str, AccountingAggregate]
    ) -> Dict[str, str]:
        """E-invoice key → accounting key of every matched invoice."""
        diff = diff_keys(einvoices.keys(), accounting.keys())
        pairs = {key: key for key in diff.both}

        if self.use_tax_id_keys:
            taken = set(pairs.values())
            for key in diff.only_left:
                bare = normalize_invoice_key(einvoices[key].invoice_number)
                if bare != key and bare in accounting and bare not in taken:
                    pairs[key] = bare
                    taken.add(bare)

        return pairs

    def classify(
        self,
        einvoices: Dict[str, EInvoiceRecord],
        accounting: Dict[str, AccountingAggregate],
        erroneous: Iterable[AccountingSideRecord] = (),
        compare_taxable: Optional[bool] = None
    ) -> ReconciliationReport:
        """
        Classify every key of both maps.

        Args:
            einvoices: Key → e-invoice record.
            accounting: Key → aggregated accounting lines.
            erroneous: Quarantined accounting rows, copied to bucket 4.
            compare_taxable: Also compare matrah amounts. Defaults to True
                when any aggregate contains matrah lines.

        Returns:
            ReconciliationReport.
        """
        if compare_taxable is None:
            compare_taxable = any(a.has_taxable_rows for a in accounting.values())

        report = ReconciliationReport(
            erroneous_records=list(erroneous),
            tolerance=self.tolerance,
        )

        pairs = self._pair_keys(einvoices, accounting)
        matched_accounting = set(pairs.values())

        for key, record in einvoices.items():
            accounting_key = pairs.get(key)
            if accounting_key is None:
                report.missing_in_accounting.append(record)
                continue

            aggregate = accounting[accounting_key]
            einvoice_vat, einvoice_taxable = self.to_local(record)

            vat_difference = einvoice_vat - aggregate.vat_total
            taxable_difference = einvoice_taxable - aggregate.taxable_total if compare_taxable else 0.0

            if self.exceeds(vat_difference) or self.exceeds(taxable_difference):
                report.amount_mismatches.append(AmountMismatch(
                    key=key,
                    einvoice=record,
                    einvoice_vat=round2(einvoice_vat),
                    accounting_vat=round2(aggregate.vat_total),
                    vat_delta=round2(vat_difference),
                    einvoice_taxable=round2(einvoice_taxable),
                    accounting_taxable=round2(aggregate.taxable_total),
                    taxable_delta=round2(taxable_difference),
                    accounting_rows=tuple(aggregate.rows),
                ))

        for key, aggregate in accounting.items():
            if key not in matched_accounting:
                report.missing_in_einvoice.extend(aggregate.rows)

        logger.info(f"Reconciliation finished: {report.summary()}")
        return report


def classify(
    einvoices: Dict[str, EInvoiceRecord],
    accounting: Dict[str, AccountingAggregate],
    tolerance: float = 0.25,
    erroneous: Iterable[AccountingSideRecord] = ()
) -> ReconciliationReport:
    """Shortcut for ``Matcher(tolerance).classify(...)``."""
    return Matcher(tolerance=tolerance).classify(einvoices, accounting, erroneous)


def reconcile(
    einvoices: Iterable[EInvoiceRecord],
    vat_records: Iterable[AccountingSideRecord],
    matrah_records: Iterable[AccountingSideRecord] = (),
    tolerance: Optional[float] = None,
    use_tax_id_keys: Optional[bool] = None
) -> ReconciliationReport:
    """
    Aggregate and classify in one call.

    Args:
        einvoices: E-invoice records (exclusions already applied).
        vat_records: Accounting VAT records.
        matrah_records: Accounting matrah records.
        tolerance: Largest difference still considered reconciled.
        use_tax_id_keys: Key invoices by number and tax id.

    Returns:
        ReconciliationReport.
    """
    aggregator = Aggregator(use_tax_id_keys=use_tax_id_keys)
    aggregation = aggregator.aggregate(einvoices, vat_records, matrah_records)

    matcher = Matcher(tolerance=tolerance, use_tax_id_keys=aggregator.use_tax_id_keys)
    return matcher.classify(
        aggregation.einvoices,
        aggregation.accounting,
        aggregation.erroneous,
    )
