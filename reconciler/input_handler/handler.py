"""
Main Input Handler Module.

This module reads uploaded exports into a RawGrid: the rows of the first
worksheet with cell types preserved (text, numbers, typed dates, empty
cells). Excel workbooks are read with openpyxl; CSV exports are accepted as
well since some accounting packages only offer them.

Usage:
    from reconciler.input_handler import InputHandler

    handler = InputHandler()
    result = handler.load("e_fatura_listesi.xlsx")
    grid = result.grid

    # Bytes received from an upload
    grid = handler.read_bytes(data, "muavin.xlsx")

Classes:
    RawGrid: Immutable rows of one sheet
    InputResult: Outcome of loading one file
    InputHandler: Main class for file input handling
"""

import csv
import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import get_file_extension
from reconciler.utils.exceptions import (
    InputError,
    UnsupportedFileTypeError,
    InputFileNotFoundError,
    CorruptedFileError
)


# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class RawGrid:
    """
    Rows of one worksheet, read in row-major order.

    Empty rows are kept (as empty tuples) so that row indices match the
    spreadsheet; trailing empty cells of each row are dropped.

    Attributes:
        rows: Tuple of rows, each a tuple of raw cell values
        source_name: Name of the file the grid was read from
    """
    rows: Tuple[Tuple[Any, ...], ...]
    source_name: str = ''

    def __len__(self) -> int:
        return len(self.rows)

    def row(self, index: int) -> Tuple[Any, ...]:
        """Return one row, or an empty tuple when out of range."""
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return ()

    def cell(self, row_index: int, column_index: int) -> Any:
        """Return one cell value, or None when out of range."""
        row = self.row(row_index)
        if column_index is None or not 0 <= column_index < len(row):
            return None
        return row[column_index]

    @property
    def width(self) -> int:
        """Number of columns of the widest row."""
        return max((len(r) for r in self.rows), default=0)

    def preview(self, limit: int = 50) -> List[Tuple[Any, ...]]:
        """First ``limit`` rows, used to show a file before mapping."""
        return list(self.rows[:limit])

    @classmethod
    def from_rows(cls, rows: List[List[Any]], source_name: str = '') -> 'RawGrid':
        """Build a grid from plain lists (trailing empty cells trimmed)."""
        return cls(rows=tuple(_trim_row(r) for r in rows), source_name=source_name)


def _trim_row(row) -> Tuple[Any, ...]:
    cells = [None if (isinstance(v, str) and not v.strip()) else v for v in row]
    while cells and cells[-1] is None:
        cells.pop()
    return tuple(cells)


@dataclass
class InputResult:
    """
    Outcome of loading one input file.

    Attributes:
        filepath: Original file path
        filename: Original filename
        file_type: 'excel' or 'csv'
        grid: RawGrid of the first sheet (None on failure)
        metadata: Additional file metadata
        success: Whether loading was successful
        error: Error message if loading failed
    """
    filepath: str
    filename: str
    file_type: str
    grid: Optional[RawGrid] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None

    @property
    def row_count(self) -> int:
        return len(self.grid) if self.grid is not None else 0

    def __repr__(self) -> str:
        return (
            f"InputResult(filename='{self.filename}', "
            f"type='{self.file_type}', "
            f"rows={self.row_count}, "
            f"success={self.success})"
        )


class InputHandler:
    """
    Reads spreadsheet exports into RawGrids.

    Only the first worksheet of a workbook is read.

    Attributes:
        supported_extensions: Set of supported file extensions

    Example:
        >>> handler = InputHandler()
        >>> result = handler.load("kebir_2024.xlsx")
        >>> print(f"Loaded {result.row_count} rows")

        >>> results = handler.load_batch("./exports/")
    """

    EXCEL_EXTENSIONS = {'.xlsx', '.xlsm'}
    CSV_EXTENSIONS = {'.csv'}
    CSV_DELIMITERS = ';,\t|'

    def __init__(self, supported_extensions: Optional[List[str]] = None) -> None:
        extensions = supported_extensions or get_config(
            "input.supported_formats",
            sorted(self.EXCEL_EXTENSIONS | self.CSV_EXTENSIONS)
        )
        self.supported_extensions = {ext.lower() for ext in extensions}
        self.csv_encoding = get_config("input.csv_encoding", "utf-8-sig")

        logger.debug(f"InputHandler initialized with extensions: {sorted(self.supported_extensions)}")

    def detect_file_type(self, filename: Union[str, Path]) -> str:
        """
        Detect the type of an input file from its extension.

        Returns:
            'excel' or 'csv'.

        Raises:
            UnsupportedFileTypeError: If the extension is not supported.
        """
        extension = get_file_extension(filename)

        if extension in self.supported_extensions:
            if extension in self.EXCEL_EXTENSIONS:
                return 'excel'
            if extension in self.CSV_EXTENSIONS:
                return 'csv'

        raise UnsupportedFileTypeError(extension, sorted(self.supported_extensions))

    def validate_file(self, filepath: Union[str, Path]) -> Path:
        """
        Validate that a file exists, is supported and is not empty.

        Raises:
            InputFileNotFoundError: If the file doesn't exist.
            UnsupportedFileTypeError: If the file type is not supported.
            CorruptedFileError: If the file is empty.
        """
        path = Path(filepath)

        if not path.exists():
            raise InputFileNotFoundError(str(filepath))

        if not path.is_file():
            raise InputError(f"Path is not a file: {filepath}")

        self.detect_file_type(path)

        if path.stat().st_size == 0:
            raise CorruptedFileError(str(filepath), "File is empty")

        return path

    def read_bytes(self, data: bytes, filename: str) -> RawGrid:
        """
        Read raw file content into a RawGrid.

        Args:
            data: File content.
            filename: Original file name (used for type detection).

        Returns:
            RawGrid of the first sheet.

        Raises:
            UnsupportedFileTypeError: If the file type is not supported.
            CorruptedFileError: If the content cannot be read.
        """
        if not data:
            raise CorruptedFileError(filename, "File is empty")

        file_type = self.detect_file_type(filename)
        if file_type == 'excel':
            rows = self._read_excel(data, filename)
        else:
            rows = self._read_csv(data, filename)

        grid = RawGrid.from_rows(rows, source_name=filename)
        logger.debug(f"Read {len(grid)} rows from {filename}")
        return grid

    def _read_excel(self, data: bytes, filename: str) -> List[List[Any]]:
        try:
            workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise CorruptedFileError(filename, str(e))

        try:
            if not workbook.worksheets:
                raise CorruptedFileError(filename, "Workbook has no sheets")
            sheet = workbook.worksheets[0]
            return [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    def _read_csv(self, data: bytes, filename: str) -> List[List[Any]]:
        try:
            text = data.decode(self.csv_encoding)
        except UnicodeDecodeError:
            # Turkish Windows exports
            text = data.decode('cp1254', errors='replace')

        sample = text[:4096]
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=self.CSV_DELIMITERS)
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ';' if sample.count(';') > sample.count(',') else ','

        reader = csv.reader(io.StringIO(text), delimiter=delimiter)
        return [[cell if cell != '' else None for cell in row] for row in reader]

    def load(self, filepath: Union[str, Path]) -> InputResult:
        """
        Load a file from disk into an InputResult.

        Errors are reported on the result instead of being raised.

        Example:
            >>> result = handler.load("muavin.xlsx")
            >>> if result.success:
            ...     print(result.grid.row(0))
        """
        filepath = str(filepath)
        filename = Path(filepath).name
        logger.info(f"Loading file: {filepath}")

        try:
            path = self.validate_file(filepath)
            grid = self.read_bytes(path.read_bytes(), path.name)

            result = InputResult(
                filepath=filepath,
                filename=filename,
                file_type=self.detect_file_type(path),
                grid=grid,
                metadata={'size_bytes': path.stat().st_size, 'columns': grid.width},
            )
            logger.info(f"Successfully loaded: {filename} ({len(grid)} rows)")
            return result

        except InputError as e:
            logger.error(f"Input error for {filepath}: {e}")
            return InputResult(
                filepath=filepath,
                filename=filename,
                file_type='unknown',
                success=False,
                error=str(e)
            )

        except Exception as e:
            logger.exception(f"Unexpected error loading {filepath}: {e}")
            return InputResult(
                filepath=filepath,
                filename=filename,
                file_type='unknown',
                success=False,
                error=f"Unexpected error: {str(e)}"
            )

    def load_batch(self, directory: Union[str, Path]) -> List[InputResult]:
        """
        Load every supported file of a directory, sorted by name.

        Raises:
            InputFileNotFoundError: If the directory doesn't exist.
        """
        directory = Path(directory)

        if not directory.exists():
            raise InputFileNotFoundError(str(directory))

        if not directory.is_dir():
            raise InputError(f"Path is not a directory: {directory}")

        files = sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in self.supported_extensions
        )
        logger.info(f"Found {len(files)} files to load in {directory}")

        results = [self.load(p) for p in files]

        successful = sum(1 for r in results if r.success)
        logger.info(f"Batch loading complete: {successful} successful, {len(results) - successful} failed")
        return results
