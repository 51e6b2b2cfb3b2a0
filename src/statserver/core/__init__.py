"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Creates, binds and listens on the TCP socket                     │
    │  • Lets the event loop accept(); one task per client                │
    │  • Graceful shutdown on SIGINT / SIGTERM / shutdown()               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ one task per connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Buffers the byte stream and cuts out whole requests              │
    │  • First-request and keep-alive timeouts                            │
    │  • Writes responses, closes gracefully                              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",     # Listening socket and accept loop
    "Connection",       # One client: request framing and writes
    "ConnectionState",  # Connection lifecycle states
]
