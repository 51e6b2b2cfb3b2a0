"""
=============================================================================
STATSERVER - Minimal Concurrent HTTP/1.1 Server With Request Statistics
=============================================================================

A small JSON API on top of asyncio streams:

    GET /               {"message": "Welcome to statserver!", ...}
    GET /health         {"message": "Server is healthy", ...}
    GET /echo/{msg}     {"message": "Echo: {msg}", ...}
    GET /stats          {"total_requests": 4, "uptime_seconds": 2.31,
                         "requests_per_second": 1.732}

Every connection is served by its own task on one event loop. The request
counter lives in a StatsRegistry owned by the server and is only ever
touched from that loop, so it needs no lock.

=============================================================================
QUICK START
=============================================================================

    from statserver import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=8080))
    server.run()

Or from a shell:

    statserver --port 8080
    statserver-loadtest http://127.0.0.1:8080 --requests 1000

=============================================================================
PACKAGE LAYOUT
=============================================================================

    statserver/
    ├── server.py          HTTPServer: connection loop, dispatch, counting
    ├── stats.py           StatsRegistry
    ├── models.py          StandardResponse, StatsSnapshot
    ├── config.py          ServerConfig
    ├── loadtest.py        load-test driver
    ├── core/              SocketServer, Connection
    ├── http/              parser, response builder, router, status codes
    ├── middleware/        pipeline, access logging
    └── handlers/          the API endpoints

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_app
from .config import ServerConfig
from .stats import StatsRegistry

__all__ = ["HTTPServer", "create_app", "ServerConfig", "StatsRegistry", "__version__"]
