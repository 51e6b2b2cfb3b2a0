"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Chain of responsibility around the router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request ──► LoggingMiddleware ──► ... ──► router.handle           │
    │                     │                             │                  │
    │   response ◄────────┴─────────── ... ◄────────────┘                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The first middleware added is the outermost: it sees the request first and
the response last. A middleware may return without calling next() to
short-circuit the chain.

Everything here is synchronous. The dispatcher runs the whole chain between
two awaits, which is what keeps request counting free of races.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, Iterator, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)

# The rest of the chain, as seen from one middleware
NextHandler = Callable[[HTTPRequest], HTTPResponse]
MiddlewareFunc = Callable[[HTTPRequest, NextHandler], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                start = time.perf_counter()
                response = next(request)
                response.set_header("X-Elapsed", f"{time.perf_counter() - start:.6f}")
                return response

    Runs on the event loop thread; it must not block.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Handle the request, normally by calling next(request)."""

    @property
    def name(self) -> str:
        return type(self).__name__


class MiddlewarePipeline:
    """
    Ordered middleware stack that can wrap a final handler.

        pipeline = MiddlewarePipeline().use(LoggingMiddleware(stats=registry))
        dispatch = pipeline.wrap(router.handle)
        response = dispatch(request)

    The stack is read once, by wrap(); adding middleware afterwards does
    not change a chain that was already built.
    """

    def __init__(self):
        self._stack: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._stack.append(middleware)
        logger.debug(f"Middleware registered: {middleware.name} (position {len(self._stack)})")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for item in middleware:
            self.add(item)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

            [A, B, C] + handler  →  A(B(C(handler)))

        With an empty stack the handler itself is returned.
        """
        chain = handler
        for middleware in reversed(self._stack):
            chain = partial(middleware, next=chain)
        return chain

    def __len__(self) -> int:
        return len(self._stack)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._stack)


class FunctionMiddleware(Middleware):
    """
    Adapts a plain (request, next) -> response function.

        def tag_server(request, next):
            response = next(request)
            response.set_header("X-Served-By", "statserver")
            return response

        pipeline.add(FunctionMiddleware(tag_server))
    """

    def __init__(self, func: MiddlewareFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", type(self).__name__)

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: MiddlewareFunc) -> FunctionMiddleware:
    """Decorator form of FunctionMiddleware."""
    return FunctionMiddleware(func)
