"""
Request handlers.

    from statserver.handlers import register_routes

    router = register_routes(Router(), stats, server_name="statserver/1.0")
    router.freeze()

Every handler takes an HTTPRequest and returns an HTTPResponse.
"""

from .api import (
    WELCOME_MESSAGE,
    HEALTHY_MESSAGE,
    NOT_FOUND_MESSAGE,
    root,
    health,
    echo,
    StatsHandler,
    not_found,
    register_routes,
)

__all__ = [
    "WELCOME_MESSAGE",
    "HEALTHY_MESSAGE",
    "NOT_FOUND_MESSAGE",
    "root",
    "health",
    "echo",
    "StatsHandler",
    "not_found",
    "register_routes",
]
