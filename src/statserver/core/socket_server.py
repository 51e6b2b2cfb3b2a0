"""
=============================================================================
TCP ACCEPTOR
=============================================================================

Owns the listening socket and hands every accepted client to its own
asyncio task.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    1. socket()    create the file descriptor           _create_socket()
    2. bind()      claim host:port                      bind()
    3. listen()    start queueing handshakes (backlog)  bind()
    4. accept()    done by the event loop               asyncio.start_server
    5. close()     release the port                     _cleanup()

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   listening socket ──accept──► Connection ──► task: handler(conn)   │
    │          │                                                           │
    │          ├──accept──► Connection ──► task: handler(conn)            │
    │          │                                                           │
    │          └──accept──► Connection ──► task: handler(conn)            │
    │                                                                      │
    │   The accept loop never awaits a handler. A slow or stalled client   │
    │   only ever blocks its own task.                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   restart immediately, even with old sockets in TIME_WAIT
SO_REUSEPORT   not set, so a second server on a taken port fails to bind
TCP_NODELAY    no Nagle delay; responses are small and latency matters

=============================================================================
SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, kill) call shutdown() when the
server runs on the main thread. shutdown() may be called from any thread:

    1. stop accepting (close the listening socket)
    2. wait up to config.shutdown_timeout for in-flight connection tasks
    3. cancel whatever is still running

=============================================================================
"""

import asyncio
import logging
import os
import signal
import socket
import threading
from typing import Awaitable, Callable, Optional, Set, Tuple

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[Connection], Awaitable[None]]


class SocketServer:
    """
    Async TCP acceptor.

    Usage:
        async def handle_connection(conn: Connection):
            async with conn:
                data = await conn.read_request()
                ...

        server = SocketServer(config)
        await server.start(handle_connection)   # returns after shutdown()

    bind() may be called first on its own to surface "address in use"
    before anything else starts.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._stop_requested = False
        self._running = False
        self._ready = threading.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._signals_installed = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port even when config.port is 0."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    @property
    def active_connections(self) -> int:
        return len(self._tasks)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block the calling thread until the server accepts connections."""
        return self._ready.wait(timeout)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # On Windows SO_REUSEADDR would let a second server steal the port
        if os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setblocking(False)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen. Idempotent.

        Returns:
            The bound (host, port).

        Raises:
            OSError: The address is in use, not available, or privileged.
        """
        if self._socket is not None:
            return self.address

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        return self.address

    def _setup_signals(self) -> None:
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum: int) -> None:
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, shutdown_handler, sig)
            except (NotImplementedError, RuntimeError):
                return  # Windows event loops have no add_signal_handler
        self._signals_installed = True

    def _restore_signals(self) -> None:
        if not self._signals_installed:
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._loop.remove_signal_handler(sig)
        self._signals_installed = False

    async def start(self, connection_handler: ConnectionHandler) -> None:
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Coroutine run once per accepted connection,
                in its own task.
        """
        self.bind()

        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()

        async def on_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            conn = Connection(
                reader=reader,
                writer=writer,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")
            await self._run_handler(connection_handler, conn)

        self._server = await asyncio.start_server(
            on_client,
            sock=self._socket,
            backlog=self.config.backlog,
        )
        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            if not self._stop_requested:
                await self._shutdown_event.wait()
        finally:
            await self._cleanup()

    async def _run_handler(self, handler: ConnectionHandler, conn: Connection) -> None:
        task = asyncio.current_task()
        self._tasks.add(task)
        try:
            await handler(conn)
        except asyncio.CancelledError:
            # Ends the task normally: the stream protocol's done callback
            # calls task.exception(), which raises on a cancelled task.
            logger.debug(f"[{conn.id}] Connection task cancelled")
        except Exception:
            logger.exception(f"[{conn.id}] Unhandled error in connection handler")
        finally:
            self._tasks.discard(task)

    def shutdown(self) -> None:
        """
        Request a graceful shutdown. Safe from any thread, idempotent.
        """
        self._stop_requested = True
        loop = self._loop
        if loop is None or loop.is_closed() or self._shutdown_event is None:
            return

        logger.info("Shutting down socket server...")
        try:
            loop.call_soon_threadsafe(self._shutdown_event.set)
        except RuntimeError:
            pass  # Loop closed between the check and the call

    async def _cleanup(self) -> None:
        self._running = False
        self._restore_signals()

        if self._server is not None:
            self._server.close()

        pending = {t for t in self._tasks if not t.done()}
        if pending:
            logger.info(f"Waiting for {len(pending)} connection(s) to finish...")
            _, still_running = await asyncio.wait(
                pending, timeout=self.config.shutdown_timeout
            )
            for task in still_running:
                task.cancel()
            if still_running:
                logger.warning(f"Cancelled {len(still_running)} connection(s)")
                await asyncio.gather(*still_running, return_exceptions=True)

        if self._server is not None:
            try:
                await asyncio.wait_for(self._server.wait_closed(), 1.0)
            except asyncio.TimeoutError:
                logger.debug("Listening socket close timed out")
            self._server = None

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        self._ready.clear()
        logger.info("Socket server stopped")
