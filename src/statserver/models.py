"""
Response payloads.

Every JSON body the server writes is one of these two shapes:

    StandardResponse                      StatsSnapshot
    ────────────────                      ─────────────
    {                                     {
      "message": "Server is healthy",       "total_requests": 1042,
      "timestamp": "2026-...+02:00",        "uptime_seconds": 12.503,
      "server": "statserver/1.0"            "requests_per_second": 83.339
    }                                     }

ResponseBuilder.json() serializes either through its to_dict(), which fixes
the key order on the wire.
"""

from dataclasses import dataclass, field
from datetime import datetime


def now_iso() -> str:
    """
    Current local time as ISO-8601 with a UTC offset.

    Example: 2026-10-16T14:03:07.512331+02:00
    """
    return datetime.now().astimezone().isoformat()


@dataclass
class StandardResponse:
    """Body of /, /health, /echo/*, the not-found fallback and error replies."""

    message: str
    server: str = "statserver/1.0"
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        # Fixed key order on the wire: message, timestamp, server
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "server": self.server,
        }


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Point-in-time read of the request statistics.

    Attributes:
        total_requests: Requests completed by the dispatcher so far.
        uptime_seconds: Seconds since the registry was created.
        requests_per_second: total_requests / max(uptime_seconds, 1).
    """

    total_requests: int
    uptime_seconds: float
    requests_per_second: float

    def to_dict(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "uptime_seconds": self.uptime_seconds,
            "requests_per_second": self.requests_per_second,
        }
