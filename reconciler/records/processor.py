"""
Record Processor Module.

Runs one file through normalization: checks the mapping, drops subtotal
rows, dispatches each row to the normalizer of the document type and
counts what happened to every row.

Author: ML Engineering Team
"""

from typing import List, Optional

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import cell_text, turkish_upper
from reconciler.input_handler import HeaderMap, RawGrid
from reconciler.mapping.schemas import (
    DocumentType,
    FieldMapping,
    ReconciliationMode,
    get_schema,
)
from reconciler.mapping.column_mapper import ensure_mapping_complete
from .models import NormalizationResult, ParseSummary
from .normalizers import (
    SKIP_MISSING_KEY,
    SKIP_SUMMARY,
    SKIP_ZERO_MOVEMENT,
    get_normalizer,
)

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_SUMMARY_ROW_KEYWORDS = ['NAKLİ YEKÜN', 'TOPLAM', 'YEKÜN', 'TOPLAMI', 'NAKLI']


class RecordProcessor:
    """
    Normalizes the rows of one reconciliation file.

    Attributes:
        mode: SALES or PURCHASE
        include_zero_movement: Keep accounting rows without any amount
        summary_keywords: Keywords marking subtotal rows

    Example:
        >>> processor = RecordProcessor(mode=ReconciliationMode.SALES)
        >>> result = processor.process(grid, header, mapping, DocumentType.E_INVOICE)
        >>> result.summary.record_rows
        120
    """

    def __init__(
        self,
        mode: ReconciliationMode = ReconciliationMode.SALES,
        include_zero_movement: Optional[bool] = None,
        summary_keywords: Optional[List[str]] = None
    ) -> None:
        self.mode = ReconciliationMode(mode)
        if include_zero_movement is None:
            include_zero_movement = get_config("normalization.include_zero_movement", False)
        self.include_zero_movement = include_zero_movement

        keywords = summary_keywords or get_config(
            "normalization.summary_row_keywords", DEFAULT_SUMMARY_ROW_KEYWORDS
        )
        self.summary_keywords = [turkish_upper(k) for k in keywords]

    def is_summary_row(self, row) -> bool:
        """Check whether any cell of the row marks a subtotal/carry-forward line."""
        text = turkish_upper(' '.join(cell_text(v) for v in row))
        return any(keyword in text for keyword in self.summary_keywords)

    def process(
        self,
        grid: RawGrid,
        header: HeaderMap,
        mapping: FieldMapping,
        document_type: DocumentType,
        source_file: Optional[str] = None
    ) -> NormalizationResult:
        """
        Normalize every data row of a file.

        Args:
            grid: Raw rows of the file.
            header: Header row of the file.
            mapping: Confirmed column mapping.
            document_type: Kind of file.
            source_file: Name stored on the records (defaults to the grid's).

        Returns:
            NormalizationResult with records in file order.

        Raises:
            UnmappedFieldError: If required fields are not mapped.
        """
        document_type = DocumentType(document_type)
        source_file = source_file if source_file is not None else grid.source_name

        fields = get_schema(document_type, self.mode)
        ensure_mapping_complete(fields, mapping, header)

        normalizer = get_normalizer(
            document_type,
            mode=self.mode,
            include_zero_movement=self.include_zero_movement,
        )

        summary = ParseSummary()
        records = []

        for row_index in range(header.header_row_index + 1, len(grid)):
            row = grid.row(row_index)
            if not any(cell_text(v) for v in row):
                continue

            summary.total_rows += 1

            if self.is_summary_row(row):
                summary.skipped_summary_rows += 1
                continue

            outcome = normalizer.normalize(row, row_index, header, mapping, source_file)

            if outcome.invalid_date:
                summary.invalid_date_rows += 1

            if outcome.record is None:
                if outcome.skip_reason == SKIP_SUMMARY:
                    summary.skipped_summary_rows += 1
                elif outcome.skip_reason == SKIP_MISSING_KEY:
                    summary.skipped_missing_key_rows += 1
                elif outcome.skip_reason == SKIP_ZERO_MOVEMENT:
                    summary.zero_movement_rows += 1
                continue

            record = outcome.record
            summary.record_rows += 1
            # matrah lines are summed even when flagged, so they are not counted here
            if document_type != DocumentType.ACCOUNTING_MATRAH and getattr(record, 'validation_error', False):
                summary.erroneous_rows += 1
            if getattr(record, 'ambiguous', False):
                summary.ambiguous_rows += 1
            records.append(record)

        logger.info(
            f"{document_type.value} {source_file or ''}: {summary.record_rows} records "
            f"from {summary.total_rows} rows "
            f"(summary={summary.skipped_summary_rows}, "
            f"no key={summary.skipped_missing_key_rows}, "
            f"zero={summary.zero_movement_rows}, "
            f"invalid dates={summary.invalid_date_rows}, "
            f"erroneous={summary.erroneous_rows})"
        )

        return NormalizationResult(
            document_type=document_type,
            source_file=source_file or '',
            header_row_index=header.header_row_index,
            records=records,
            summary=summary,
        )
