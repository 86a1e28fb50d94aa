"""
Batch Processing Module.

Several files of the same document type (e.g. twelve monthly e-invoice
lists) are parsed one after another and their records merged in order.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from reconciler.utils.logger import get_logger
from reconciler.mapping.schemas import DocumentType, ReconciliationMode
from reconciler.records.models import CanonicalRecord, ParseSummary
from .handlers import handle_request
from .host import ExecutionHost
from .messages import ParseRequest, Response

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class BatchFile:
    """One queued file."""
    filename: str
    data: bytes
    mapping: Optional[Dict[str, str]] = None
    header_row_index: Optional[int] = None


@dataclass
class BatchError:
    """A file that could not be parsed."""
    file_index: int
    filename: str
    error: str


class ReconciliationBatch:
    """
    Sequential cursor over the files of one document type.

    Files are processed strictly in queue order. A failed file is recorded
    in ``errors`` and keeps the cursor, so file N+1 never starts before
    file N succeeds; records merged from earlier files stay.

    Attributes:
        document_type: Kind of the queued files
        mode: SALES or PURCHASE
        current_file_index: Index of the next file to process
        records: Merged records of every successful file
        summary: Merged row counters
        last_error: Failure of the file under the cursor, if any

    Example:
        >>> batch = ReconciliationBatch(DocumentType.E_INVOICE)
        >>> batch.add_path('ocak.xlsx')
        >>> batch.add_path('subat.xlsx')
        >>> batch.process_all()
        >>> len(batch.records)
        240
    """

    def __init__(
        self,
        document_type: DocumentType,
        mode: ReconciliationMode = ReconciliationMode.SALES,
        host: Optional[ExecutionHost] = None,
        mapping: Optional[Dict[str, str]] = None,
        include_zero_movement: Optional[bool] = None
    ) -> None:
        self.document_type = DocumentType(document_type)
        if self.document_type in (DocumentType.GENERAL_LEDGER, DocumentType.CURRENT_ACCOUNT):
            raise ValueError(f"{self.document_type.value} files are not batched")

        self.mode = ReconciliationMode(mode)
        self.host = host
        self.mapping = mapping
        self.include_zero_movement = include_zero_movement

        self.files: List[BatchFile] = []
        self.current_file_index = 0
        self.records: List[CanonicalRecord] = []
        self.summary = ParseSummary()
        self.errors: List[BatchError] = []
        self.last_error: Optional[BatchError] = None

    def add(
        self,
        filename: str,
        data: bytes,
        mapping: Optional[Dict[str, str]] = None,
        header_row_index: Optional[int] = None
    ) -> None:
        self.files.append(BatchFile(filename, data, mapping, header_row_index))

    def add_path(self, path: Union[str, Path], mapping: Optional[Dict[str, str]] = None) -> None:
        path = Path(path)
        self.add(path.name, path.read_bytes(), mapping)

    @property
    def is_complete(self) -> bool:
        return self.current_file_index >= len(self.files)

    def _request(self, batch_file: BatchFile) -> ParseRequest:
        return ParseRequest(
            data=batch_file.data,
            filename=batch_file.filename,
            document_type=self.document_type,
            mode=self.mode,
            mapping=batch_file.mapping if batch_file.mapping is not None else self.mapping,
            header_row_index=batch_file.header_row_index,
            include_zero_movement=self.include_zero_movement,
        )

    def process_next(
        self,
        mapping: Optional[Dict[str, str]] = None,
        header_row_index: Optional[int] = None
    ) -> Optional[Response]:
        """
        Process the file under the cursor and advance on success.

        A failed file keeps the cursor in place so that it can be retried,
        typically with a corrected mapping or header row.

        Args:
            mapping: Replacement mapping for the file under the cursor.
            header_row_index: Replacement header row for the file under the cursor.

        Returns:
            The file's response, or None when the batch is complete.
        """
        if self.is_complete:
            return None

        index = self.current_file_index
        batch_file = self.files[index]
        if mapping is not None:
            batch_file.mapping = mapping
        if header_row_index is not None:
            batch_file.header_row_index = header_row_index
        request = self._request(batch_file)

        if self.host is not None:
            response = self.host.run(request)
        else:
            response = handle_request(request)

        if response.success:
            result = response.payload
            self.records.extend(result.records)
            self.summary = self.summary.merge(result.summary)
            self.current_file_index += 1
            self.last_error = None
            logger.info(
                f"Batch file {index + 1}/{len(self.files)} {batch_file.filename}: "
                f"{len(result.records)} records"
            )
        else:
            self.last_error = BatchError(index, batch_file.filename, response.error or '')
            self.errors.append(self.last_error)
            logger.error(
                f"Batch file {index + 1}/{len(self.files)} {batch_file.filename} failed: "
                f"{response.error}"
            )
        return response

    @property
    def failed(self) -> bool:
        """The file under the cursor failed and has not been retried successfully."""
        return self.last_error is not None

    def process_all(self) -> List[Response]:
        """Process the remaining files, stopping at the first failure."""
        responses = []
        while not self.is_complete:
            response = self.process_next()
            responses.append(response)
            if not response.success:
                break
        return responses

    def reset(self) -> None:
        """Forget merged records and rewind the cursor; queued files stay."""
        self.current_file_index = 0
        self.records = []
        self.summary = ParseSummary()
        self.errors = []
        self.last_error = None
