"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes this server can put on the wire, with their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK               - every informational endpoint       │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request      - malformed request line / headers   │
    │        │ 404 Not Found        - routing miss (any method, path)    │
    │        │ 408 Request Timeout  - client never finished its request  │
    │        │ 413 Payload Too Large- request exceeds max_request_size   │
    │        │ 431 Header Too Large - no header terminator within limit  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error   - handler or serialization failure   │
    │        │ 501 Not Implemented  - unsupported Transfer-Encoding      │
    │        │ 505 Version          - anything but HTTP/1.0 or HTTP/1.1  │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum
from http import HTTPStatus as _StdlibStatus
from typing import Union


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so a status compares equal to its integer code:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(code: int) -> str:
    """
    Reason phrase for any code a handler may return.

    Codes outside HTTPStatus fall back to the standard library's table,
    then to "Unknown", so a 201 or a 418 still serializes.
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        pass
    try:
        return _StdlibStatus(code).phrase
    except ValueError:
        return "Unknown"


def coerce_status(code: Union[HTTPStatus, int]) -> Union[HTTPStatus, int]:
    """HTTPStatus member when known, plain int otherwise. Rejects codes outside 100-599."""
    code = int(code)
    if not 100 <= code <= 599:
        raise ValueError(f"Invalid HTTP status code: {code}")
    try:
        return HTTPStatus(code)
    except ValueError:
        return code
