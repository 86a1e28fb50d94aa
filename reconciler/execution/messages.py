"""
Execution Protocol Module.

Requests and responses exchanged with the execution host. All of them are
plain picklable dataclasses so they can cross a process boundary.

Author: ML Engineering Team
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from reconciler.utils.exceptions import ExecutionTransportError
from reconciler.mapping.schemas import DocumentType, ReconciliationMode
from reconciler.matching.exclusions import ExclusionSelection
from reconciler.records.models import AccountingSideRecord, EInvoiceRecord


class RequestKind(str, Enum):
    PARSE = 'PARSE'
    RECONCILE = 'RECONCILE'


class ResponseKind(str, Enum):
    PARSE_SUCCESS = 'PARSE_SUCCESS'
    PARSE_ERROR = 'PARSE_ERROR'
    RECONCILE_SUCCESS = 'RECONCILE_SUCCESS'
    TRANSPORT_ERROR = 'TRANSPORT_ERROR'


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ParseRequest:
    """
    Parse one file.

    Attributes:
        data: File content
        filename: Original file name (selects the reader)
        document_type: Kind of file
        mode: SALES or PURCHASE
        mapping: Confirmed column mapping; None lets the mapper suggest one
        header_row_index: Explicit header row
        include_zero_movement: Keep accounting rows without amounts
        include_all_accounts: Current accounts: disable the prefix filter
        include_forex_only_movement: Current accounts: keep fx-only rows
        request_id: Correlates the response
    """
    data: bytes
    filename: str
    document_type: DocumentType
    mode: ReconciliationMode = ReconciliationMode.SALES
    mapping: Optional[Dict[str, str]] = None
    header_row_index: Optional[int] = None
    include_zero_movement: Optional[bool] = None
    include_all_accounts: bool = False
    include_forex_only_movement: bool = False
    request_id: str = field(default_factory=new_request_id)

    kind = RequestKind.PARSE


@dataclass
class ReconcileRequest:
    """
    Reconcile normalized records.

    Attributes:
        einvoices: E-invoice records of the batch
        vat_records: Accounting VAT records
        matrah_records: Accounting matrah records
        tolerance: Largest difference still considered reconciled
        use_tax_id_keys: Key invoices by number and tax id
        exclusions: E-invoice statuses to drop before matching
        request_id: Correlates the response
    """
    einvoices: List[EInvoiceRecord] = field(default_factory=list)
    vat_records: List[AccountingSideRecord] = field(default_factory=list)
    matrah_records: List[AccountingSideRecord] = field(default_factory=list)
    tolerance: Optional[float] = None
    use_tax_id_keys: Optional[bool] = None
    exclusions: Optional[ExclusionSelection] = None
    request_id: str = field(default_factory=new_request_id)

    kind = RequestKind.RECONCILE


@dataclass
class Response:
    """
    Outcome of one request: a payload or an error string, never both.

    The payload is a NormalizationResult, LedgerAnalysis or
    CurrentAccountResult for PARSE_SUCCESS and a ReconciliationReport for
    RECONCILE_SUCCESS.
    """
    request_id: str
    kind: ResponseKind
    payload: Any = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind in (ResponseKind.PARSE_SUCCESS, ResponseKind.RECONCILE_SUCCESS)

    @classmethod
    def transport_error(cls, request_id: str, reason: str) -> 'Response':
        return cls(request_id, ResponseKind.TRANSPORT_ERROR, error=ExecutionTransportError(reason).message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'request_id': self.request_id,
            'kind': ResponseKind(self.kind).value,
            'payload': self.payload.to_dict() if hasattr(self.payload, 'to_dict') else self.payload,
            'error': self.error,
        }
