"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per dispatched request, with timing and a request id.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (Apache-like, default):

        127.0.0.1 - - [16/Oct/2026:12:00:00 +0200] "GET /stats" 200 86 0.21ms #42

    JSON (for log aggregators):

        {"request_id": "a1b2c3d4", "request_number": 42, "method": "GET",
         "path": "/stats", "client_ip": "127.0.0.1", "status_code": 200, ...}

The request number is the value total_requests will have once the request
currently being logged is counted.

=============================================================================
REQUEST CORRELATION
=============================================================================

Every response carries X-Request-ID. A client-supplied X-Request-ID is kept,
otherwise a short random id is generated.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..stats import StatsRegistry

# Configure separately from the module loggers, e.g.
#   logging.getLogger("statserver.access").setLevel(logging.WARNING)
logger = logging.getLogger("statserver.access")

CLF_TIME_FORMAT = "%d/%b/%Y:%H:%M:%S %z"


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    request_number: int
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        client = self.client_ip or "-"
        return (
            f'{client} - - [{self.timestamp}] "{self.method} {self.path}" '
            f"{self.status_code} {self.content_length} "
            f"{self.duration_ms:.2f}ms #{self.request_number}"
        )


class LoggingMiddleware(Middleware):
    """
    Access logging middleware.

    Add it first so its timing covers the rest of the chain.

        pipeline.add(LoggingMiddleware(log_format="json", stats=registry))

    Args:
        log_format: "text" or "json".
        stats: Registry the request number is read from. Without one the
            number is logged as 0.
        include_request_id: Put X-Request-ID on every response.
        log_level: Level for successful requests; 4xx and 5xx go out at
            WARNING.
        skip_paths: Paths that are answered but never logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        stats: Optional[StatsRegistry] = None,
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        self.log_format = log_format
        self.stats = stats
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = frozenset(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header("x-request-id") or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{request_id}] {request.method} {request.path} raised "
                f"{type(e).__name__}: {e} after {elapsed_ms:.2f}ms"
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path not in self.skip_paths:
            self._emit(self._entry(request, response, request_id, elapsed_ms))

        return response

    def _entry(
        self,
        request: HTTPRequest,
        response: HTTPResponse,
        request_id: str,
        elapsed_ms: float,
    ) -> RequestLog:
        # The dispatcher counts after the chain returns, so this request is
        # the next number
        number = self.stats.total_requests + 1 if self.stats is not None else 0

        return RequestLog(
            request_id=request_id,
            request_number=number,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=elapsed_ms,
            timestamp=time.strftime(CLF_TIME_FORMAT),
        )

    def _emit(self, entry: RequestLog) -> None:
        level = logging.WARNING if entry.status_code >= 400 else self.log_level
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict(), ensure_ascii=False))
        else:
            logger.log(level, entry.to_text())
