"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses with JSON bodies.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                         ← status line         │
    │    Content-Type: application/json\r\n          ← set by json()       │
    │    Connection: keep-alive\r\n                  ← set by the server   │
    │    Content-Length: 86\r\n                      ← auto                │
    │    Date: Fri, 16 Oct 2026 12:00:00 GMT\r\n     ← auto                │
    │    Server: statserver/1.0\r\n                  ← auto                │
    │    \r\n                                                              │
    │    {"message": "Server is healthy", ...}       ← body (UTF-8)        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
JSON ENCODING
=============================================================================

Payloads go through json.dumps(ensure_ascii=False, allow_nan=False):

    - quotes, backslashes and control characters are escaped by the encoder,
      so "/echo/say \"hi\"" can never break the document
    - non-ASCII text is written as UTF-8, not \\uXXXX
    - NaN / Infinity raise ValueError instead of producing invalid JSON

json_response() catches that failure and answers 500 instead.

=============================================================================
"""

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Union
import json
import logging

from .status_codes import HTTPStatus, coerce_status, reason_phrase
from ..models import StandardResponse


logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
DEFAULT_SERVER_NAME = "statserver/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 404 Not Found"."""
        code = int(self.status)
        return f"{self.version} {code} {reason_phrase(code)}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME, include_body: bool = True) -> bytes:
        """
        Serialize the response for the wire.

        Content-Length, Date and Server are added unless already set.
        Content-Length always counts body bytes, never characters, and is
        kept when include_body is False (answers to HEAD).
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(StandardResponse("Server is healthy"))
            .no_store()
            .build())

    Every method but build() and to_bytes() returns self.
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._server_name = server_name

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = coerce_status(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON body from a dict, list or dataclass instance.

        Objects with a to_dict() method control their own key order;
        other dataclasses go through dataclasses.asdict().

        Raises:
            TypeError: The payload holds something JSON can't represent.
            ValueError: The payload holds NaN or Infinity.
        """
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        elif is_dataclass(data) and not isinstance(data, type):
            data = asdict(data)

        self._body = json.dumps(data, ensure_ascii=False, allow_nan=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def no_store(self) -> "ResponseBuilder":
        """Cache-Control: no-store, for values that change on every read."""
        self._headers["Cache-Control"] = "no-store"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Fri, 16 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT; pass a UTC datetime.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def json_response(
    status: Union[HTTPStatus, int],
    payload: Any,
    server_name: str = DEFAULT_SERVER_NAME,
) -> HTTPResponse:
    """
    Build a JSON response in one step.

    If the payload cannot be serialized, the failure is logged and a 500
    StandardResponse is returned instead. Never raises for payload errors.

    Args:
        status: Status code for the success case.
        payload: dict, list or dataclass instance.
        server_name: Identifier used in the fallback error body.
    """
    try:
        return ResponseBuilder(server_name).status(status).json(payload).build()
    except (TypeError, ValueError):
        logger.exception("Failed to serialize %s payload", type(payload).__name__)
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, server_name=server_name)


def error_response(
    status: Union[HTTPStatus, int],
    message: str = "",
    server_name: str = DEFAULT_SERVER_NAME,
) -> HTTPResponse:
    """
    StandardResponse-shaped error reply.

    The message defaults to the reason phrase ("Not Found", "Bad Request").
    """
    status = coerce_status(status)
    body = StandardResponse(message or reason_phrase(status), server=server_name)
    return ResponseBuilder(server_name).status(status).json(body).build()


def not_found(server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """404 with message "Not Found"."""
    return error_response(HTTPStatus.NOT_FOUND, server_name=server_name)


def internal_error(server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """500 with message "Internal Server Error". Keeps internals out of the body."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, server_name=server_name)
