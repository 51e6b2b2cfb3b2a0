"""
pytest configuration and fixtures.
"""

import dataclasses
import socket
import threading
from typing import Callable, Generator, List

import pytest

from statserver import HTTPServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/Hello%20World?lang=en&x=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John"}'
    return (
        b"POST /stats HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let the OS pick a free port
        timeout=5.0,
        keep_alive_timeout=2.0,
        shutdown_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class RunningServer:
    """Runs an HTTPServer in a background thread for the duration of a test."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def start(self) -> "RunningServer":
        self.thread = threading.Thread(target=self.server.run, daemon=True)
        self.thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")
        return self

    def stop(self) -> None:
        self.server.shutdown()
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=5.0)

    def connect(self, timeout: float = 5.0) -> socket.socket:
        """A raw client socket connected to the server."""
        return socket.create_connection(("127.0.0.1", self.port), timeout=timeout)


@pytest.fixture
def serve() -> Generator[Callable[[HTTPServer], RunningServer], None, None]:
    """
    Run an already built HTTPServer, e.g. one with extra routes:

        server = HTTPServer(config)
        server.router.add_route("/boom", broken)
        running = serve(server)

    Every server started through here is stopped at teardown.
    """
    started: List[RunningServer] = []

    def _serve(server: HTTPServer) -> RunningServer:
        running = RunningServer(server).start()
        started.append(running)
        return running

    yield _serve

    for running in started:
        running.stop()


@pytest.fixture
def start_server(config: ServerConfig, serve) -> Callable[..., RunningServer]:
    """
    Factory for running servers. Keyword arguments override the config:

        server = start_server(timeout=0.5)
    """
    def _start(**overrides) -> RunningServer:
        return serve(HTTPServer(dataclasses.replace(config, **overrides)))

    return _start


@pytest.fixture
def running_server(start_server) -> RunningServer:
    """A fresh server with the default test config."""
    return start_server()
