"""
Header Detection Module.

Exports from Turkish accounting packages rarely start with their header:
company banners, report titles and period lines come first. This module
finds the header row by keyword heuristics and, for general ledgers,
resolves the structural columns (account code, debit, credit, ...) with a
statistical fallback for the date column.

Author: ML Engineering Team
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import turkish_lower, collapse_whitespace, cell_text
from reconciler.utils.exceptions import HeaderNotDetectedError
from .handler import RawGrid

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_KEYWORDS = [
    'TARİH', 'AÇIKLAMA', 'FATURA', 'ALACAK', 'BORÇ',
    'MÜŞTERİ', 'STATÜ', 'REF.NO', 'KDV',
]

DATE_LIKE_PATTERN = re.compile(r'^\d{1,2}[./-]\d{1,2}[./-]\d{2,4}')


def normalize_header_text(value: Any) -> str:
    """
    Normalize a cell for keyword comparison.

    Applies Turkish case folding (``İ`` → ``i``, ``I`` → ``ı``), lowercases
    and collapses whitespace.

    Example:
        >>> normalize_header_text("  HESAP   ADI ")
        'hesap adı'
    """
    return collapse_whitespace(turkish_lower(cell_text(value)))


@dataclass(frozen=True)
class HeaderMap:
    """
    Detected header row of a RawGrid.

    Attributes:
        header_row_index: Index of the header row in the grid
        labels: Trimmed label of every column ('' for empty header cells)
    """
    header_row_index: int
    labels: Tuple[str, ...]

    @property
    def columns(self) -> Dict[str, int]:
        """Label → column index (first occurrence wins)."""
        mapping: Dict[str, int] = {}
        for index, label in enumerate(self.labels):
            if label and label not in mapping:
                mapping[label] = index
        return mapping

    @property
    def clean_labels(self) -> List[str]:
        """Non-empty labels in column order."""
        return [label for label in self.labels if label]

    @property
    def fingerprint(self) -> str:
        """Sorted labels joined with ``|``; identifies a file layout."""
        return '|'.join(sorted(self.clean_labels))

    def index_of(self, label: str) -> Optional[int]:
        return self.columns.get(label)

    @classmethod
    def from_row(cls, header_row_index: int, row: Tuple[Any, ...]) -> 'HeaderMap':
        return cls(
            header_row_index=header_row_index,
            labels=tuple(cell_text(value) for value in row),
        )


@dataclass
class LedgerColumns:
    """
    Structural columns of a general ledger export.

    Attributes:
        header_row_index: Index of the header row
        code: Account code column
        debit: Debit column
        credit: Credit column (optional)
        date: Transaction date column (optional)
        name: Account name column (optional)
        voucher: Voucher number column (optional)
        description: Description column (optional)
        date_method: 'header', 'stat(col,count)' or 'none'
    """
    header_row_index: int
    code: int
    debit: int
    credit: Optional[int] = None
    date: Optional[int] = None
    name: Optional[int] = None
    voucher: Optional[int] = None
    description: Optional[int] = None
    date_method: str = 'none'

    def to_dict(self) -> Dict[str, Any]:
        detected = {
            'date': self.date,
            'code': self.code,
            'name': self.name,
            'debit': self.debit,
            'credit': self.credit,
            'voucher': self.voucher,
            'description': self.description,
        }
        return {k: v for k, v in detected.items() if v is not None}


class HeaderDetector:
    """
    Locates header rows in raw spreadsheet grids.

    Attributes:
        keywords: Normalized keywords for reconciliation files
        search_window: Number of rows scanned for reconciliation files
        min_matches: Distinct keywords a header row must contain
        ledger_search_window: Number of rows scanned for ledgers
        date_sample_window: Rows sampled by the statistical date fallback
        date_min_support: Minimum date-like values for the fallback

    Example:
        >>> detector = HeaderDetector()
        >>> header = detector.detect(grid)
        >>> header.header_row_index
        3
        >>> columns = detector.detect_ledger_columns(kebir_grid)
        >>> columns.date_method
        'header'
    """

    def __init__(
        self,
        keywords: Optional[List[str]] = None,
        search_window: Optional[int] = None,
        min_matches: Optional[int] = None,
        ledger_search_window: Optional[int] = None,
        date_sample_window: Optional[int] = None,
        date_min_support: Optional[int] = None
    ) -> None:
        raw_keywords = keywords or get_config("header.keywords", DEFAULT_KEYWORDS)
        self.keywords = [normalize_header_text(k) for k in raw_keywords]
        self.search_window = min(
            search_window or get_config("header.search_window", 20), 50
        )
        self.min_matches = min_matches or get_config("header.min_keyword_matches", 2)
        self.ledger_search_window = min(
            ledger_search_window or get_config("header.ledger.search_window", 50), 50
        )
        self.date_sample_window = date_sample_window or get_config(
            "header.ledger.date_sample_window", 100
        )
        self.date_min_support = date_min_support or get_config(
            "header.ledger.date_min_support", 5
        )

    # =========================================================================
    # Reconciliation files
    # =========================================================================

    def keyword_hits(self, row: Tuple[Any, ...]) -> Tuple[int, int]:
        """
        Score a row against the keyword set.

        Returns:
            Tuple of (distinct keywords found, cells containing a keyword).
        """
        cells = [normalize_header_text(v) for v in row]
        cells = [c for c in cells if c]

        distinct = sum(
            1 for keyword in self.keywords
            if any(keyword in cell for cell in cells)
        )
        matching_cells = sum(
            1 for cell in cells
            if any(keyword in cell for keyword in self.keywords)
        )
        return distinct, matching_cells

    def find_header_row(self, grid: RawGrid) -> Optional[int]:
        """
        Return the first row within the search window that looks like a header.

        A single title cell such as "KDV FATURA LİSTESİ" does not qualify:
        the keywords must be spread over at least two cells.

        Args:
            grid: Raw rows of the file.

        Returns:
            Row index, or None when no row qualifies.
        """
        required_cells = min(self.min_matches, 2)
        for index in range(min(self.search_window, len(grid))):
            distinct, matching_cells = self.keyword_hits(grid.row(index))
            if distinct >= self.min_matches and matching_cells >= required_cells:
                return index
        return None

    def detect(self, grid: RawGrid, header_row_index: Optional[int] = None) -> HeaderMap:
        """
        Build the HeaderMap of a reconciliation file.

        When no row qualifies, the first row is used; the column mapper
        rejects the file later if its required fields cannot be resolved.

        Args:
            grid: Raw rows of the file.
            header_row_index: Explicit header row chosen by the caller.

        Returns:
            HeaderMap of the detected (or given) header row.
        """
        if header_row_index is None:
            header_row_index = self.find_header_row(grid)
            if header_row_index is None:
                logger.warning(
                    f"No header row found in first {self.search_window} rows of "
                    f"{grid.source_name or 'grid'}, using row 0"
                )
                header_row_index = 0
            else:
                logger.debug(f"Header row detected at index {header_row_index}")

        return HeaderMap.from_row(header_row_index, grid.row(header_row_index))

    # =========================================================================
    # General ledger files
    # =========================================================================

    def detect_ledger_columns(self, grid: RawGrid) -> LedgerColumns:
        """
        Find the header row and structural columns of a general ledger.

        A row qualifies when one cell contains ``hesap kodu`` and another
        contains ``borç``. The date column falls back to statistical
        detection when no header cell mentions ``tarih``.

        Raises:
            HeaderNotDetectedError: If no row has both the account code and
                debit columns.
        """
        for index in range(min(self.ledger_search_window, len(grid))):
            cells = [normalize_header_text(v) for v in grid.row(index)]
            code = _first_index(cells, lambda c: 'hesap kodu' in c)
            debit = _first_index(cells, lambda c: 'borç' in c or 'borc' in c)
            if code is None or debit is None:
                continue

            columns = LedgerColumns(
                header_row_index=index,
                code=code,
                debit=debit,
                credit=_first_index(cells, lambda c: 'alacak' in c),
                date=_first_index(cells, lambda c: 'tarih' in c),
                name=_first_index(
                    cells,
                    lambda c: 'hesap adı' in c or c in ('açıklama', 'aciklama')
                ),
                voucher=_first_index(cells, _is_voucher_label),
                description=_last_index(
                    cells, lambda c: 'açıklama' in c or 'aciklama' in c
                ),
            )
            if columns.name is None:
                columns.name = columns.description

            if columns.date is not None:
                columns.date_method = 'header'
            else:
                column, support = self.detect_date_column(grid, index)
                if column is not None:
                    columns.date = column
                    columns.date_method = f"stat({column},{support})"

            logger.info(
                f"Ledger header at row {index} "
                f"(columns={columns.to_dict()}, date={columns.date_method})"
            )
            return columns

        raise HeaderNotDetectedError(
            grid.source_name or 'grid',
            "No row contains both an account code and a debit column"
        )

    def detect_date_column(self, grid: RawGrid, header_row_index: int) -> Tuple[Optional[int], int]:
        """
        Pick the column holding the most date-like values below the header.

        Args:
            grid: Raw rows of the file.
            header_row_index: Index of the header row.

        Returns:
            Tuple of (column index or None, number of date-like values).
        """
        scores: Counter = Counter()
        end = min(len(grid), header_row_index + self.date_sample_window)

        for row_index in range(header_row_index + 1, end):
            for column, value in enumerate(grid.row(row_index)):
                if _is_date_like(value):
                    scores[column] += 1

        if not scores:
            return None, 0

        best_column, best_count = max(scores.items(), key=lambda item: (item[1], -item[0]))
        if best_count < self.date_min_support:
            logger.debug(
                f"Date detection skipped: best column {best_column} has only {best_count} values"
            )
            return None, best_count
        return best_column, best_count


def _is_voucher_label(cell: str) -> bool:
    return 'no' in cell and any(
        token in cell for token in ('fiş', 'fis', 'belge', 'makbuz')
    )


def _is_date_like(value: Any) -> bool:
    if isinstance(value, date):
        return True
    if isinstance(value, str):
        return bool(DATE_LIKE_PATTERN.match(value.strip()))
    return False


def _first_index(cells: List[str], predicate) -> Optional[int]:
    for index, cell in enumerate(cells):
        if cell and predicate(cell):
            return index
    return None


def _last_index(cells: List[str], predicate) -> Optional[int]:
    found = None
    for index, cell in enumerate(cells):
        if cell and predicate(cell):
            found = index
    return found
