"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── statserver --port 3000                                     │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── STATSERVER_PORT=3000 statserver                            │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There are no configuration files.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the stats server.

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    LIFECYCLE
    - shutdown_timeout

    LOGGING
    - log_level, log_format

    Example:
        config = ServerConfig(port=0, log_level="DEBUG")   # port 0 = any free port
        config.validate()
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080
    """
    The port number to listen on. 0 asks the OS for a free port; the bound
    port is then available as HTTPServer.port.
    """

    backlog: int = 1024
    """
    Maximum number of queued, not yet accepted connections.
    Sized for bursts of about a thousand simultaneous clients.
    """

    buffer_size: int = 8192
    """Bytes requested per read from a client stream."""

    timeout: Optional[float] = 30.0
    """
    Seconds a new connection has to deliver its first complete request.
    None = wait forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """
    Enable HTTP keep-alive. When False every response carries
    "Connection: close".
    """

    keep_alive_timeout: float = 5.0
    """Idle seconds between requests before a keep-alive connection is closed."""

    max_request_size: int = 1024 * 1024  # 1 MB
    """Maximum request size (headers plus body) in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: float = 5.0
    """
    Seconds shutdown waits for in-flight connections before cancelling
    them.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """
    Access log format: 'text' or 'json'.
    JSON is better for log aggregators, text for humans.
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "statserver/1.0"
    """Value of the Server header and of "server" in every JSON body."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        STATSERVER_HOST                Server host (default: 127.0.0.1)
        STATSERVER_PORT                Server port (default: 8080)
        STATSERVER_TIMEOUT             First-request timeout (default: 30)
        STATSERVER_KEEP_ALIVE_TIMEOUT  Idle keep-alive timeout (default: 5)
        STATSERVER_LOG_LEVEL           Logging level (default: INFO)
        STATSERVER_LOG_FORMAT          text or json (default: text)

        Unset variables keep the dataclass default. Values that don't parse
        as numbers raise ValueError.

            STATSERVER_PORT=3000 STATSERVER_LOG_LEVEL=DEBUG statserver
        """
        defaults = cls()
        return cls(
            host=os.getenv("STATSERVER_HOST", defaults.host),
            port=int(os.getenv("STATSERVER_PORT", defaults.port)),
            timeout=float(os.getenv("STATSERVER_TIMEOUT", defaults.timeout)),
            keep_alive_timeout=float(
                os.getenv("STATSERVER_KEEP_ALIVE_TIMEOUT", defaults.keep_alive_timeout)
            ),
            log_level=os.getenv("STATSERVER_LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("STATSERVER_LOG_FORMAT", defaults.log_format).lower(),
        )

    def validate(self) -> None:
        """
        Fail fast on impossible values.

        Raises:
            ValueError: Describing the first invalid field found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'."
            )
