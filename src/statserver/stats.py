"""
=============================================================================
REQUEST STATISTICS
=============================================================================

Process-wide request counter and start instant, shared by every connection
task the server runs.

=============================================================================
SHARED STATE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       STATS REGISTRY                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   conn task A ──┐                                                    │
    │   conn task B ──┼──► dispatcher ──► increment() ──► _total += 1     │
    │   conn task C ──┘                                                    │
    │                                                                      │
    │   GET /stats  ───►  StatsHandler ──► snapshot()                     │
    │                                        │                             │
    │                                        ├── total_requests  (read)   │
    │                                        └── clock() - _started       │
    │                                                                      │
    │   _started is captured once, in __init__, and never written again.  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY NO LOCK?
=============================================================================

Every connection task runs on the same asyncio event loop thread. A task
only gives up the loop at an `await`, and increment() has none, so two
increments can never interleave. The read in snapshot() is a single
attribute load.

Code running on another thread must not call increment() directly. Hop
onto the loop instead:

    loop.call_soon_threadsafe(registry.increment)

=============================================================================
INTERVIEW QUESTIONS ABOUT SHARED COUNTERS
=============================================================================

Q: "Is `counter += 1` atomic in Python?"
A: "Not across threads. It compiles to a load, an add and a store, and the
   interpreter can switch threads between them. Inside a single event loop
   it is safe because coroutines only switch at await points."

Q: "Why divide by max(uptime, 1)?"
A: "Right after startup uptime is a few milliseconds, so the rate would be
   huge or a division by zero. Treating anything under a second as one
   second keeps the number finite and honest."

=============================================================================
"""

import time
from datetime import datetime, timezone
from typing import Callable

from .models import StatsSnapshot


class StatsRegistry:
    """
    Request counter plus start instant.

    Usage:
        stats = StatsRegistry()
        stats.increment()
        snap = stats.snapshot()
        snap.total_requests       # 1
        snap.requests_per_second  # 1.0 during the first second

    Args:
        clock: Monotonic time source in seconds. Tests pass a fake one.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started = clock()
        self._started_at = datetime.now(timezone.utc)
        self._total = 0

    def increment(self) -> None:
        """Count one request. Call from the event loop thread only."""
        self._total += 1

    @property
    def total_requests(self) -> int:
        return self._total

    @property
    def uptime(self) -> float:
        """Seconds since the registry was created (never negative)."""
        return max(0.0, self._clock() - self._started)

    @property
    def started_at(self) -> datetime:
        """Wall-clock creation time in UTC. Informational only."""
        return self._started_at

    def snapshot(self) -> StatsSnapshot:
        """
        Read the counter and the elapsed time as of now.

        The two reads are not taken atomically together, but both reflect
        the moment of the call.
        """
        total = self._total
        uptime = self.uptime
        rate = total / max(uptime, 1.0)

        return StatsSnapshot(
            total_requests=total,
            uptime_seconds=round(uptime, 3),
            requests_per_second=round(rate, 3),
        )


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# One StatsRegistry per HTTPServer. The server owns it and passes it by
# reference to the dispatcher (increment) and the stats handler (snapshot).
# Nothing here survives a restart.
# =============================================================================
