"""
Exclusion Filter Module.

Cancelled or rejected e-invoices (status "İPTAL", "REDDEDİLDİ", ...) must
not be reported as missing from the books. This module suggests which
status values to exclude and removes the matching e-invoices before
aggregation.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import collapse_whitespace, turkish_upper
from reconciler.records.models import EInvoiceRecord

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_CANCEL_KEYWORDS = [
    'İPTAL', 'IPTAL', 'RED', 'REDDEDILDI', 'REDDEDİLDİ', 'GEÇERSİZ', 'GECERSIZ',
]


def normalize_status(value: Optional[str]) -> str:
    """Comparison form of a status text."""
    return turkish_upper(collapse_whitespace(value or ''))


@dataclass
class ExclusionSelection:
    """
    Status values chosen for exclusion.

    Attributes:
        statuses: Normalized 'Statü' values to exclude
        validity_statuses: Normalized 'Geçerlilik Durumu' values to exclude
    """
    statuses: Set[str] = field(default_factory=set)
    validity_statuses: Set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.statuses and not self.validity_statuses


class ExclusionFilter:
    """
    Suggests and applies e-invoice exclusions.

    Example:
        >>> exclusion = ExclusionFilter()
        >>> selection = exclusion.suggest(einvoices)
        >>> kept, excluded = exclusion.apply(einvoices, selection)
    """

    def __init__(self, cancel_keywords: Optional[List[str]] = None) -> None:
        keywords = cancel_keywords or get_config("exclusions.cancel_keywords", DEFAULT_CANCEL_KEYWORDS)
        self.cancel_keywords = [normalize_status(k) for k in keywords]

    def is_cancel_status(self, value: Optional[str]) -> bool:
        normalized = normalize_status(value)
        return bool(normalized) and any(k in normalized for k in self.cancel_keywords)

    def suggest(self, records: Iterable[EInvoiceRecord]) -> ExclusionSelection:
        """
        Pre-select every status value that reads as a cancellation.

        Args:
            records: E-invoice records of the batch.

        Returns:
            ExclusionSelection with the suggested values.
        """
        selection = ExclusionSelection()
        for record in records:
            if self.is_cancel_status(record.status):
                selection.statuses.add(normalize_status(record.status))
            if self.is_cancel_status(record.validity_status):
                selection.validity_statuses.add(normalize_status(record.validity_status))
        return selection

    def apply(
        self,
        records: Iterable[EInvoiceRecord],
        selection: ExclusionSelection
    ) -> Tuple[List[EInvoiceRecord], List[EInvoiceRecord]]:
        """
        Split records into kept and excluded ones.

        Returns:
            Tuple of (kept records, excluded records), both in input order.
        """
        kept, excluded = [], []
        for record in records:
            if (normalize_status(record.status) in selection.statuses
                    or normalize_status(record.validity_status) in selection.validity_statuses):
                excluded.append(record)
            else:
                kept.append(record)

        if excluded:
            logger.info(f"Excluded {len(excluded)} cancelled/rejected e-invoices")
        return kept, excluded
