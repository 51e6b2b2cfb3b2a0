"""
=============================================================================
API HANDLERS
=============================================================================

The informational endpoints.

    ┌───────────────┬────────┬────────┬──────────────────────────────────┐
    │ Route         │ Method │ Status │ Body                             │
    ├───────────────┼────────┼────────┼──────────────────────────────────┤
    │ /             │ GET    │ 200    │ "Welcome to statserver!"         │
    │ /health       │ GET    │ 200    │ "Server is healthy"              │
    │ /echo/*message│ GET    │ 200    │ "Echo: " + message               │
    │ /stats        │ GET    │ 200    │ StatsSnapshot                    │
    │ anything else │ any    │ 404    │ "Not Found"                      │
    └───────────────┴────────┴────────┴──────────────────────────────────┘

Handlers never touch the request counter. The dispatcher counts every
request once, after its handler returns.

Health and stats answers change from one call to the next, so both carry
Cache-Control: no-store.

=============================================================================
"""

from functools import partial

from ..http.request import HTTPRequest
from ..http.response import DEFAULT_SERVER_NAME, HTTPResponse, json_response
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..models import StandardResponse
from ..stats import StatsRegistry

WELCOME_MESSAGE = "Welcome to statserver!"
HEALTHY_MESSAGE = "Server is healthy"
NOT_FOUND_MESSAGE = "Not Found"


def root(request: HTTPRequest, server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    return json_response(HTTPStatus.OK, StandardResponse(WELCOME_MESSAGE, server=server_name), server_name)


def health(request: HTTPRequest, server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """Liveness check. If this answers at all, the event loop is running."""
    response = json_response(HTTPStatus.OK, StandardResponse(HEALTHY_MESSAGE, server=server_name), server_name)
    response.set_header("Cache-Control", "no-store")
    return response


def echo(request: HTTPRequest, server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """
    Echo the rest of the path back.

    The message arrives percent-decoded and is used verbatim: it may hold
    slashes, quotes, backslashes or any unicode. The JSON encoder escapes
    whatever needs escaping.

        GET /echo/Hello%20World  →  {"message": "Echo: Hello World", ...}
    """
    message = request.path_params.get("message", "")
    body = StandardResponse(f"Echo: {message}", server=server_name)
    return json_response(HTTPStatus.OK, body, server_name)


class StatsHandler:
    """
    Serves /stats from the registry it was built with.

        handler = StatsHandler(registry)
        router.add_route("/stats", handler)

    The registry is held by reference; the handler never writes to it.
    """

    def __init__(self, stats: StatsRegistry, server_name: str = DEFAULT_SERVER_NAME):
        self.stats = stats
        self.server_name = server_name

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        response = json_response(HTTPStatus.OK, self.stats.snapshot(), self.server_name)
        response.set_header("Cache-Control", "no-store")
        return response


def not_found(request: HTTPRequest, server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """Fallback for every (method, path) without a route."""
    body = StandardResponse(NOT_FOUND_MESSAGE, server=server_name)
    return json_response(HTTPStatus.NOT_FOUND, body, server_name)


def register_routes(
    router: Router,
    stats: StatsRegistry,
    server_name: str = DEFAULT_SERVER_NAME,
) -> Router:
    """
    Install the API routes and the not-found fallback on router.

    Returns the router, not yet frozen.
    """
    router.add_route("/", partial(root, server_name=server_name), name="root")
    router.add_route("/health", partial(health, server_name=server_name), name="health")
    router.add_route("/echo/*message", partial(echo, server_name=server_name), name="echo")
    router.add_route("/stats", StatsHandler(stats, server_name), name="stats")
    router.set_fallback(partial(not_found, server_name=server_name))
    return router
