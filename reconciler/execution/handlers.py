"""
Request Handlers Module.

``handle_request`` runs inside a worker. It is a top-level function with
no shared state so it can be shipped to a thread or a process pool.

Author: ML Engineering Team
"""

from typing import Union

from reconciler.utils.logger import get_logger
from reconciler.utils.exceptions import ReconcilerError
from reconciler.input_handler import HeaderDetector, InputHandler, RawGrid
from reconciler.mapping.schemas import DocumentType, FieldMapping, get_schema
from reconciler.mapping.column_mapper import ColumnMapper
from reconciler.records.processor import RecordProcessor
from reconciler.matching.exclusions import ExclusionFilter
from reconciler.matching.matcher import reconcile
from reconciler.ledger.analyzer import LedgerAnalyzer
from reconciler.ledger.current_account import CurrentAccountParser
from .messages import ParseRequest, ReconcileRequest, Response, ResponseKind

# Initialize module logger
logger = get_logger(__name__)


Request = Union[ParseRequest, ReconcileRequest]


def _resolve_mapping(request: ParseRequest, grid: RawGrid):
    """Header and mapping of a column-mapped file."""
    fields = get_schema(request.document_type, request.mode)
    if request.mapping is not None:
        header = HeaderDetector().detect(grid, request.header_row_index)
        return header, FieldMapping.from_dict(request.mapping)

    proposal = ColumnMapper().propose(grid, fields, request.header_row_index)
    return proposal.header, proposal.mapping


def parse_file(request: ParseRequest):
    """
    Run the pipeline of one file.

    Returns:
        NormalizationResult, LedgerAnalysis or CurrentAccountResult.

    Raises:
        ReconcilerError: On unreadable or structurally invalid files.
    """
    document_type = DocumentType(request.document_type)
    grid = InputHandler().read_bytes(request.data, request.filename)

    if document_type == DocumentType.GENERAL_LEDGER:
        return LedgerAnalyzer().analyze(grid, request.filename)

    header, mapping = _resolve_mapping(request, grid)

    if document_type == DocumentType.CURRENT_ACCOUNT:
        parser = CurrentAccountParser(
            include_all_accounts=request.include_all_accounts,
            include_forex_only_movement=request.include_forex_only_movement,
        )
        return parser.parse(grid, header, mapping, request.filename)

    processor = RecordProcessor(
        mode=request.mode,
        include_zero_movement=request.include_zero_movement,
    )
    return processor.process(grid, header, mapping, document_type, request.filename)


def reconcile_records(request: ReconcileRequest):
    """Apply exclusions, then aggregate and classify."""
    einvoices = list(request.einvoices)
    if request.exclusions is not None and not request.exclusions.is_empty():
        einvoices, _ = ExclusionFilter().apply(einvoices, request.exclusions)

    return reconcile(
        einvoices,
        request.vat_records,
        request.matrah_records,
        tolerance=request.tolerance,
        use_tax_id_keys=request.use_tax_id_keys,
    )


def handle_request(request: Request) -> Response:
    """
    Answer one request with exactly one response.

    Errors of a PARSE request become PARSE_ERROR responses carrying the
    error message; they never escape the worker.

    Args:
        request: ParseRequest or ReconcileRequest.

    Returns:
        Response.
    """
    if isinstance(request, ParseRequest):
        try:
            result = parse_file(request)
        except ReconcilerError as e:
            logger.error(f"Failed to parse {request.filename}: {e}")
            return Response(request.request_id, ResponseKind.PARSE_ERROR, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error parsing {request.filename}: {e}")
            return Response(request.request_id, ResponseKind.PARSE_ERROR, error=str(e))
        return Response(request.request_id, ResponseKind.PARSE_SUCCESS, payload=result)

    if isinstance(request, ReconcileRequest):
        try:
            report = reconcile_records(request)
        except Exception as e:
            logger.exception(f"Reconciliation failed: {e}")
            return Response.transport_error(request.request_id, str(e))
        return Response(request.request_id, ResponseKind.RECONCILE_SUCCESS, payload=report)

    raise TypeError(f"Unsupported request: {type(request).__name__}")
