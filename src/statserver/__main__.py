"""
=============================================================================
STATSERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:8080)
    statserver
    python -m statserver

    # Custom port, all interfaces
    statserver --host 0.0.0.0 --port 3000

    # JSON access logs, debug level
    statserver --log-format json --log-level DEBUG

    # One request per connection
    statserver --no-keep-alive

Settings not given on the command line come from STATSERVER_* environment
variables (see ServerConfig.from_env), then from the defaults.

Exit status is 1 when the server can't start, e.g. the port is in use.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statserver",
        description="Minimal concurrent HTTP/1.1 server with request statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Endpoints:
  GET /               welcome message
  GET /health         health check
  GET /echo/{message} echo the message back
  GET /stats          request count, uptime and requests/second

Examples:
  statserver                          # Run with defaults
  statserver --port 3000              # Custom port
  statserver --host 0.0.0.0           # Listen on all interfaces
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)",
    )

    parser.add_argument(
        "--backlog",
        type=int,
        default=None,
        help="Listen backlog (default: 1024)",
    )

    parser.add_argument(
        "--no-keep-alive",
        action="store_true",
        help="Close every connection after one response",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"statserver {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then any flag that was actually given."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.backlog is not None:
        config.backlog = args.backlog
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    if args.no_keep_alive:
        config.keep_alive = False

    return config


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = HTTPServer(config)
        server.run()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
