"""
Execution Module.

Request/response protocol, worker pool host and sequential file batches.

Author: ML Engineering Team
"""

from .messages import (
    ParseRequest,
    ReconcileRequest,
    RequestKind,
    Response,
    ResponseKind,
)
from .handlers import handle_request, parse_file, reconcile_records
from .host import ExecutionHost
from .batch import BatchError, BatchFile, ReconciliationBatch

__all__ = [
    'ParseRequest',
    'ReconcileRequest',
    'RequestKind',
    'Response',
    'ResponseKind',
    'handle_request',
    'parse_file',
    'reconcile_records',
    'ExecutionHost',
    'BatchError',
    'BatchFile',
    'ReconciliationBatch',
]
