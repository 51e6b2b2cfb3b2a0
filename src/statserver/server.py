"""
=============================================================================
STATS SERVER
=============================================================================

Ties the pieces together: socket acceptor, request parser, middleware,
router, handlers and the shared StatsRegistry.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           HTTPServer                                 │
    │                                                                      │
    │   SocketServer ──accept──► task per connection                      │
    │                                  │                                   │
    │                                  ▼                                   │
    │                      _process_connection(conn)                       │
    │                      ┌─────────────────────────┐                     │
    │                      │ read_request()          │◄──────┐             │
    │                      │ RequestParser.parse()   │       │ keep-alive  │
    │                      │ _dispatch()  ───────────┼──► middleware       │
    │                      │                         │     ──► router      │
    │                      │                         │     ──► handler     │
    │                      │                         │   stats.increment() │
    │                      │ send_response()         │───────┘             │
    │                      └─────────────────────────┘                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS           event loop accepts, SocketServer spawns a task
    2. READ                      Connection cuts one request out of the stream
    3. PARSE                     RequestParser → HTTPRequest, or 400/413/501/505
    4. MIDDLEWARE                LoggingMiddleware (and anything added by use())
    5. ROUTE                     Router → handler, or the 404 fallback
    6. COUNT                     StatsRegistry.increment(), even after a 500
    7. CONNECTION HEADERS        keep-alive or close
    8. SEND                      write + drain, in request order
    9. KEEP-ALIVE OR CLOSE       back to 2, or close the connection

Steps 3 to 6 contain no await, so a request is parsed, dispatched and
counted without any other task running in between.

=============================================================================
"""

import asyncio
import logging
from typing import Callable, Optional

from .config import ServerConfig
from .core import Connection, SocketServer
from .handlers import register_routes
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    Router,
    error_response,
    internal_error,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from .stats import StatsRegistry

logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Concurrent HTTP/1.1 server for the stats API.

    Usage:
        server = HTTPServer(ServerConfig(port=8080))
        server.run()            # blocks until Ctrl+C / SIGTERM

    From async code:
        await server.serve()    # returns after shutdown()

    From a test, in a background thread:
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5)
        ...
        server.shutdown()

    Args:
        config: Server configuration; validated here.
        stats: Registry to count into. A fresh one is created if omitted.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        stats: Optional[StatsRegistry] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self._stats = stats if stats is not None else StatsRegistry()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = register_routes(Router(), self._stats, self.config.server_name)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(
            LoggingMiddleware(log_format=self.config.log_format, stats=self._stats)
        )

        # middleware.wrap(router.handle), built when serving starts
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware after the access logger. Only before serving."""
        if self._handler is not None:
            raise RuntimeError("Cannot add middleware to a running server")
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def stats(self) -> StatsRegistry:
        return self._stats

    @property
    def port(self) -> int:
        """The bound port (useful with port=0), or the configured one."""
        return self._socket_server.address[1]

    @property
    def url(self) -> str:
        host = self.config.host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> None:
        """
        Claim the listening socket now instead of inside serve().

        Raises:
            OSError: The port is taken or the address isn't available.
        """
        self._socket_server.bind()

    async def serve(self) -> None:
        """Serve until shutdown() is called. The route table is frozen first."""
        self._router.freeze()
        self._handler = self._middleware.wrap(self._router.handle)
        await self._socket_server.start(self._process_connection)
        logger.info("Server stopped")

    def run(self) -> None:
        """
        Set up logging, print the banner and serve (blocking).

        Raises:
            OSError: Binding failed.
        """
        self._setup_logging()
        self.bind()

        logger.info(f"Starting HTTP server on {self.config.host}:{self.port}")
        self._print_startup_banner()

        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    def shutdown(self) -> None:
        """Stop accepting and drain connections. Safe from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until connections are being accepted; False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("statserver").setLevel(level)

    def _print_startup_banner(self) -> None:
        lines = [
            f"{self.config.server_name} running",
            f"{self.url}",
            f"keep-alive: {'on' if self.config.keep_alive else 'off'}"
            f"   backlog: {self.config.backlog}",
            "Press Ctrl+C to stop",
        ]
        width = max(len(line) for line in lines) + 4

        print()
        print("╔" + "═" * width + "╗")
        for line in lines:
            print("║  " + line.ljust(width - 2) + "║")
        print("╚" + "═" * width + "╝")
        print()

        self._router.print_routes()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    async def _process_connection(self, conn: Connection) -> None:
        """
        Serve one connection until it closes (runs in its own task).

        Responses go out in request order: the next request is not read
        until the previous response has been written.
        """
        async with conn:
            while self._socket_server.is_running:
                try:
                    raw_request = await conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Bad request: {e}")
                        await self._send_error(conn, e.status_code)
                        break

                    response = self._dispatch(request)

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}",
                        )
                    else:
                        response.headers["Connection"] = "close"

                    response_bytes = response.to_bytes(
                        self.config.server_name,
                        include_body=request.method != "HEAD",
                    )
                    if not await conn.send_response(response_bytes):
                        break

                    if not keep_alive:
                        break

                    conn.set_keep_alive()

                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Rejected while reading: {e}")
                    await self._send_error(conn, e.status_code)
                    break
                except TimeoutError:
                    logger.debug(f"[{conn.id}] Request timeout")
                    await self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except (ConnectionError, OSError) as e:
                    logger.warning(f"[{conn.id}] Connection error: {e}")
                    break

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run middleware and router, then count the request.

        Never raises: a handler or middleware exception becomes a 500.
        The count happens exactly once per parsed request, whatever the
        outcome.
        """
        try:
            return self._handler(request)
        except Exception:
            logger.exception(f"Handler error: {request.method} {request.path}")
            return internal_error(self.config.server_name)
        finally:
            self._stats.increment()

    async def _send_error(self, conn: Connection, status: int) -> None:
        """Error reply for failures before dispatch. Always closes."""
        response = error_response(status, server_name=self.config.server_name)
        response.headers["Connection"] = "close"
        await conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServerConfig] = None,
    stats: Optional[StatsRegistry] = None,
) -> HTTPServer:
    """
    Build a server with all routes installed.

        app = create_app(ServerConfig(port=3000))
        app.run()
    """
    return HTTPServer(config, stats)
