"""
Unit tests for the request statistics registry.
"""

import asyncio
import dataclasses
import math
import threading
from datetime import datetime, timezone

import pytest

from statserver.models import StatsSnapshot
from statserver.stats import StatsRegistry


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestStatsRegistry:
    """Tests for StatsRegistry."""

    def test_starts_at_zero(self):
        stats = StatsRegistry(clock=FakeClock())
        snap = stats.snapshot()

        assert snap.total_requests == 0
        assert snap.uptime_seconds == 0.0
        assert snap.requests_per_second == 0.0

    def test_increment(self):
        stats = StatsRegistry(clock=FakeClock())
        for _ in range(5):
            stats.increment()

        assert stats.total_requests == 5
        assert stats.snapshot().total_requests == 5

    def test_uptime_follows_clock(self):
        clock = FakeClock()
        stats = StatsRegistry(clock=clock)
        clock.advance(12.5)

        assert stats.uptime == 12.5
        assert stats.snapshot().uptime_seconds == 12.5

    def test_rate_divides_by_one_under_a_second(self):
        """Right after startup the rate is total / 1, never a division by ~0."""
        clock = FakeClock()
        stats = StatsRegistry(clock=clock)
        for _ in range(7):
            stats.increment()
        clock.advance(0.001)

        snap = stats.snapshot()
        assert snap.requests_per_second == 7.0
        assert math.isfinite(snap.requests_per_second)

    def test_rate_after_a_while(self):
        clock = FakeClock()
        stats = StatsRegistry(clock=clock)
        for _ in range(30):
            stats.increment()
        clock.advance(4.0)

        assert stats.snapshot().requests_per_second == 7.5

    def test_values_are_rounded(self):
        clock = FakeClock()
        stats = StatsRegistry(clock=clock)
        stats.increment()
        clock.advance(3.0)

        snap = stats.snapshot()
        assert snap.uptime_seconds == 3.0
        assert snap.requests_per_second == 0.333

    def test_clock_going_backwards_never_gives_negative_uptime(self):
        clock = FakeClock()
        stats = StatsRegistry(clock=clock)
        clock.advance(-5.0)

        assert stats.uptime == 0.0
        assert stats.snapshot().requests_per_second >= 0

    def test_started_at_is_utc(self):
        before = datetime.now(timezone.utc)
        stats = StatsRegistry()
        after = datetime.now(timezone.utc)

        assert before <= stats.started_at <= after
        assert stats.started_at.tzinfo is not None

    def test_total_is_monotonic(self):
        stats = StatsRegistry(clock=FakeClock())
        seen = []
        for _ in range(20):
            stats.increment()
            seen.append(stats.snapshot().total_requests)

        assert seen == sorted(seen)
        assert seen[-1] == 20

    def test_concurrent_tasks_lose_no_increments(self):
        """Thousands of interleaved tasks on one loop all get counted."""
        stats = StatsRegistry()

        async def worker(n: int) -> None:
            for _ in range(n):
                stats.increment()
                await asyncio.sleep(0)

        async def main() -> None:
            await asyncio.gather(*(worker(10) for _ in range(1000)))

        asyncio.run(main())
        assert stats.total_requests == 10_000

    def test_increment_from_other_threads_via_loop(self):
        """Foreign threads hop onto the loop with call_soon_threadsafe."""
        stats = StatsRegistry()

        async def main() -> None:
            loop = asyncio.get_running_loop()

            def hammer() -> None:
                for _ in range(500):
                    loop.call_soon_threadsafe(stats.increment)

            threads = [threading.Thread(target=hammer) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                await loop.run_in_executor(None, t.join)
            # Let the queued callbacks run
            while stats.total_requests < 2000:
                await asyncio.sleep(0.01)

        asyncio.run(asyncio.wait_for(main(), 10))
        assert stats.total_requests == 2000


class TestStatsSnapshot:
    """Tests for the StatsSnapshot payload."""

    def test_to_dict_key_order(self):
        snap = StatsSnapshot(total_requests=4, uptime_seconds=2.5, requests_per_second=1.6)

        assert list(snap.to_dict()) == ["total_requests", "uptime_seconds", "requests_per_second"]
        assert snap.to_dict()["total_requests"] == 4

    def test_is_frozen(self):
        snap = StatsSnapshot(total_requests=1, uptime_seconds=1.0, requests_per_second=1.0)

        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.total_requests = 2
