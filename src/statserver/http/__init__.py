"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Bytes in, bytes out. Nothing in this package touches a socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   raw bytes ──► RequestParser ──► HTTPRequest                        │
    │                                        │                             │
    │                                        ▼                             │
    │                                     Router ──► handler               │
    │                                                   │                  │
    │                                                   ▼                  │
    │   raw bytes ◄── HTTPResponse.to_bytes() ◄── json_response()          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    request.py       - HTTPRequest, RequestParser, HTTPParseError
    response.py      - HTTPResponse, ResponseBuilder, json_response
    router.py        - Router, Route, RouteMatch
    status_codes.py  - HTTPStatus

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    json_response,
    error_response,
    not_found,
    internal_error,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "json_response",
    "error_response",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    # Status codes
    "HTTPStatus",
]
