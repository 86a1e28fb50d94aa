"""
Execution Host Module.

Runs requests on a bounded ``concurrent.futures`` pool so long parses do
not block the caller. Each request is handled independently; nothing is
shared between invocations.

Author: ML Engineering Team
"""

from concurrent.futures import (
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    TimeoutError as FutureTimeoutError,
)
from concurrent.futures.process import BrokenProcessPool
from typing import Iterable, List, Optional

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.exceptions import ConfigurationError
from .handlers import Request, handle_request
from .messages import Response

# Initialize module logger
logger = get_logger(__name__)


EXECUTORS = {
    'thread': ThreadPoolExecutor,
    'process': ProcessPoolExecutor,
}


class ExecutionHost:
    """
    Bounded worker pool answering parse and reconcile requests.

    Failures of the pool itself (broken workers, unpicklable payloads,
    timeouts) are turned into TRANSPORT_ERROR responses.

    Attributes:
        executor: 'thread' or 'process'
        max_workers: Pool size
        timeout: Seconds ``run`` waits for a response

    Example:
        >>> with ExecutionHost() as host:
        ...     response = host.run(ParseRequest(data, 'efatura.xlsx', DocumentType.E_INVOICE))
        >>> response.kind
        <ResponseKind.PARSE_SUCCESS: 'PARSE_SUCCESS'>
    """

    def __init__(
        self,
        executor: Optional[str] = None,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.executor = (executor or get_config("execution.executor", "thread")).lower()
        if self.executor not in EXECUTORS:
            raise ConfigurationError("execution.executor", f"Unknown executor: {self.executor}")

        self.max_workers = max_workers or get_config("execution.max_workers", 2)
        self.timeout = timeout if timeout is not None else get_config("execution.timeout_seconds", 120)
        self._pool = None

        logger.debug(f"ExecutionHost configured ({self.executor}, {self.max_workers} workers)")

    @property
    def pool(self):
        if self._pool is None:
            self._pool = EXECUTORS[self.executor](max_workers=self.max_workers)
        return self._pool

    def submit(self, request: Request) -> Future:
        """Queue a request and return the future of its response."""
        return self.pool.submit(handle_request, request)

    def collect(self, request: Request, future: Future, timeout: Optional[float] = None) -> Response:
        """
        Wait for the response of a submitted request.

        Args:
            request: The submitted request.
            future: Future returned by ``submit``.
            timeout: Seconds to wait (defaults to the host timeout).

        Returns:
            The handler's response, or a TRANSPORT_ERROR response.
        """
        timeout = self.timeout if timeout is None else timeout
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.error(f"Request {request.request_id} timed out after {timeout}s")
            return Response.transport_error(request.request_id, f"timed out after {timeout}s")
        except BrokenProcessPool as e:
            logger.error(f"Worker pool broken: {e}")
            self._reset_pool()
            return Response.transport_error(request.request_id, str(e) or "worker pool broken")
        except Exception as e:
            logger.exception(f"Transport failure for request {request.request_id}: {e}")
            return Response.transport_error(request.request_id, str(e) or type(e).__name__)

    def run(self, request: Request, timeout: Optional[float] = None) -> Response:
        """Submit a request and wait for its response."""
        try:
            future = self.submit(request)
        except RuntimeError as e:
            return Response.transport_error(request.request_id, str(e))
        return self.collect(request, future, timeout)

    def run_all(self, requests: Iterable[Request], timeout: Optional[float] = None) -> List[Response]:
        """Run requests concurrently; responses keep the request order."""
        requests = list(requests)
        submitted = []
        for request in requests:
            try:
                submitted.append((request, self.submit(request)))
            except RuntimeError as e:
                submitted.append((request, e))

        responses = []
        for request, future in submitted:
            if isinstance(future, Exception):
                responses.append(Response.transport_error(request.request_id, str(future)))
            else:
                responses.append(self.collect(request, future, timeout))
        return responses

    def _reset_pool(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None

    def close(self) -> None:
        """Shut the pool down, waiting for running requests."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
            logger.debug("ExecutionHost closed")

    def __enter__(self) -> 'ExecutionHost':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
