"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler, or to the not-found fallback.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GET /echo/Hello World                                              │
    │        │                                                             │
    │        ▼                                                             │
    │   1. literal table   {("GET", "/"): root,                            │
    │      (dict lookup)    ("GET", "/health"): health,                    │
    │                       ("GET", "/stats"): stats}        → miss        │
    │        │                                                             │
    │        ▼                                                             │
    │   2. pattern routes  GET ^/echo/(?P<message>.+)$       → MATCH       │
    │      (registration   path_params = {"message": "Hello World"}        │
    │       order)                                                         │
    │        │                                                             │
    │        ▼                                                             │
    │   3. fallback        anything else, any method         → 404         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ROUTE PATTERNS
=============================================================================

1. LITERAL: exact string match, no trailing-slash folding

   Pattern: /health
   Matches: /health
   Doesn't match: /health/, /Health, /health/x

2. PARAMETER (:param): exactly one non-empty segment

   Pattern: /users/:id
   Matches: /users/42 → {"id": "42"}
   Doesn't match: /users/, /users/42/posts

3. REMAINDER (*param): the rest of the path, at least one character

   Pattern: /echo/*message
   Matches: /echo/hi     → {"message": "hi"}
            /echo/a/b/c  → {"message": "a/b/c"}
   Doesn't match: /echo, /echo/
   Must be the LAST segment in the pattern.

=============================================================================
METHOD MISMATCH
=============================================================================

POST /health is answered by the fallback (404), not by 405. The route table
is a set of (method, path) pairs and a pair that isn't in it simply doesn't
exist.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found


# Every route handler follows this signature
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(path="/echo/*message", method="GET", handler=echo,
              _pattern=re.compile(r"^/echo/(?P<message>.+)$"),
              _param_names=["message"])

    Literal routes have no pattern.
    """

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)

    @property
    def is_literal(self) -> bool:
        return self._pattern is None


@dataclass
class RouteMatch:
    """A matched route plus the path parameters it captured."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Static route table with a not-found fallback.

    Built once at startup, frozen before the server accepts its first
    connection, then shared read-only by every connection task.

        router = Router()

        @router.get("/health")
        def health(request):
            ...

        @router.get("/echo/*message")
        def echo(request):
            msg = request.path_params["message"]
            ...

        router.set_fallback(not_found_handler)
        router.freeze()

    Args:
        fallback: Handler for requests no route matches. Defaults to the
            built-in 404 response.
    """

    def __init__(self, fallback: Optional[Handler] = None):
        self._literal: Dict[Tuple[str, str], Route] = {}
        self._patterns: List[Route] = []
        self._order: List[Route] = []
        self._fallback = fallback
        self._frozen = False

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Raises:
            RuntimeError: The router is frozen.
            ValueError: The path doesn't start with "/", a "*" segment isn't
                last, or the (method, path) pair is already registered.
        """
        if self._frozen:
            raise RuntimeError("Cannot add routes to a frozen router")
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")

        method = method.upper()
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )

        if route.is_literal:
            key = (method, path)
            if key in self._literal:
                raise ValueError(f"Duplicate route: {method} {path}")
            self._literal[key] = route
        else:
            self._patterns.append(route)

        self._order.append(route)
        return route

    def _compile_pattern(self, path: str) -> Tuple[Optional[re.Pattern], List[str]]:
        """
        Compile a path with :param / *param segments into a regex.

            "/echo/*message"  →  ^/echo/(?P<message>.+)$

        Returns (None, []) for a literal path.
        """
        segments = path.split("/")
        if not any(s.startswith((":", "*")) for s in segments):
            return None, []

        param_names: List[str] = []
        regex_parts = ["^"]

        for i, segment in enumerate(segments[1:], start=1):
            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")

            elif segment.startswith("*"):
                if i != len(segments) - 1:
                    raise ValueError(f"'*' segment must be last: {path!r}")
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                # Non-empty: "/echo/" must not match "/echo/*message"
                regex_parts.append(f"(?P<{param_name}>.+)")

            else:
                regex_parts.append(re.escape(segment))

        regex_parts.append("$")
        return re.compile("".join(regex_parts), re.DOTALL), param_names

    def set_fallback(self, handler: Handler) -> None:
        if self._frozen:
            raise RuntimeError("Cannot change the fallback of a frozen router")
        self._fallback = handler

    def freeze(self) -> None:
        """Make the table read-only. Idempotent."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the route for (method, path).

        Literal routes are checked first, then pattern routes in the order
        they were registered. The path is compared exactly as given.

        Returns:
            RouteMatch, or None when nothing matches.
        """
        route = self._literal.get((method, path))
        if route is not None:
            return RouteMatch(route=route, params={})

        for route in self._patterns:
            if route.method != method:
                continue
            match = route._pattern.match(path)
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and return the handler's response.

        Path parameters are stored on request.path_params before the
        handler runs. Exceptions raised by the handler propagate.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        if self._fallback is not None:
            return self._fallback(request)
        return not_found()

    # =========================================================================
    # DECORATOR-STYLE REGISTRATION
    # =========================================================================

    def route(
        self,
        path: str,
        method: str = "GET",
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @router.route("/health", method="GET")
            def health(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET", name)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All routes in registration order."""
        return list(self._order)

    def print_routes(self) -> None:
        """
        Print the route table, e.g.:

            Registered Routes:
            ------------------------------------------------------------
              GET      /
              GET      /health
              GET      /echo/*message
              GET      /stats
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._order:
            print(f"  {route.method:8} {route.path}")
        print("-" * 60)
