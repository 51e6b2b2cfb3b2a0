"""
Middleware wrapped around the router.

    from statserver.middleware import MiddlewarePipeline, LoggingMiddleware

    pipeline = MiddlewarePipeline().use(LoggingMiddleware(stats=registry))
    handler = pipeline.wrap(router.handle)

Middleware runs synchronously on the event loop thread, once per request
that parsed successfully.
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    function_middleware,
    NextHandler,
)
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    # Base
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",
    "NextHandler",

    # Built-in middleware
    "LoggingMiddleware",
    "RequestLog",
]
