"""
=============================================================================
LOAD TEST DRIVER
=============================================================================

Fires a burst of concurrent GETs at a running statserver and checks that
the server's own request counter agrees with what the client sent.

    statserver-loadtest http://127.0.0.1:8080 --requests 1000 --concurrency 100

    1. GET /stats                         baseline
    2. N x GET <path>, <concurrency> at a time, one connection each
    3. GET /stats                         after
    4. report: status histogram, duration, client-side rate, and the
       counter delta the server observed

=============================================================================
EXPECTED COUNTER DELTA
=============================================================================

The server counts a request after answering it, so the baseline /stats call
is not in its own answer but is in the next one:

    delta = after.total_requests - before.total_requests
          = (requests that got an HTTP response) + 1

Requests that failed before reaching the server (connection refused, reset
during connect) are not counted by the server and not expected in the delta.

=============================================================================
"""

import argparse
import sys
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import requests


@dataclass
class LoadTestReport:
    """Outcome of one run_load_test() call."""

    url: str
    sent: int
    status_counts: Dict[int, int] = field(default_factory=dict)
    errors: Dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0
    stats_before: Optional[dict] = None
    stats_after: Optional[dict] = None
    latencies: List[float] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        """Responses with a 2xx status."""
        return sum(n for status, n in self.status_counts.items() if 200 <= status < 300)

    @property
    def answered(self) -> int:
        """Requests that got any HTTP response."""
        return sum(self.status_counts.values())

    @property
    def failed(self) -> int:
        return self.sent - self.succeeded

    @property
    def requests_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.sent / self.duration_seconds

    @property
    def counter_delta(self) -> Optional[int]:
        if self.stats_before is None or self.stats_after is None:
            return None
        return self.stats_after["total_requests"] - self.stats_before["total_requests"]

    @property
    def expected_delta(self) -> int:
        return self.answered + 1

    @property
    def counter_consistent(self) -> bool:
        return self.counter_delta == self.expected_delta

    @property
    def mean_latency(self) -> float:
        if not self.latencies:
            return 0.0
        return sum(self.latencies) / len(self.latencies)

    def to_text(self) -> str:
        lines = [
            f"Target:            {self.url}",
            f"Requests sent:     {self.sent}",
            f"Succeeded (2xx):   {self.succeeded}",
            f"Failed:            {self.failed}",
            f"Duration:          {self.duration_seconds:.3f}s",
            f"Client-side rate:  {self.requests_per_second:.1f} req/s",
        ]

        for status, count in sorted(self.status_counts.items()):
            lines.append(f"  HTTP {status}:        {count}")
        for error, count in sorted(self.errors.items()):
            lines.append(f"  {error}: {count}")

        if self.stats_before is not None and self.stats_after is not None:
            lines.append(
                f"Server counter:    {self.stats_before['total_requests']} -> "
                f"{self.stats_after['total_requests']} "
                f"(delta {self.counter_delta}, expected {self.expected_delta})"
            )
            lines.append(f"Server uptime:     {self.stats_after['uptime_seconds']}s")
            lines.append(f"Server avg rate:   {self.stats_after['requests_per_second']} req/s")

        if self.latencies:
            for i, latency in enumerate(self.latencies, start=1):
                lines.append(f"  Request {i}: {latency:.4f}s")
            lines.append(f"Average response time: {self.mean_latency:.4f}s")

        return "\n".join(lines)


def fetch_stats(base_url: str, timeout: float = 5.0) -> dict:
    """GET /stats and return the decoded body."""
    response = requests.get(f"{base_url.rstrip('/')}/stats", timeout=timeout)
    response.raise_for_status()
    return response.json()


def _one_request(url: str, timeout: float) -> Tuple[Optional[int], Optional[str]]:
    """Returns (status, None) on any HTTP response, (None, error name) otherwise."""
    try:
        # Fresh connection per request, no keep-alive reuse
        response = requests.get(url, timeout=timeout, headers={"Connection": "close"})
        return response.status_code, None
    except requests.RequestException as e:
        return None, type(e).__name__


def run_load_test(
    base_url: str,
    total_requests: int = 1000,
    concurrency: int = 100,
    path: str = "/",
    timeout: float = 5.0,
) -> LoadTestReport:
    """
    Send total_requests GETs to base_url + path with concurrency workers.

    Raises:
        ValueError: total_requests or concurrency below 1.
        requests.RequestException: The /stats baseline or final read failed.
    """
    if total_requests < 1:
        raise ValueError("total_requests must be >= 1")
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    base_url = base_url.rstrip("/")
    url = f"{base_url}{path}"
    report = LoadTestReport(url=url, sent=total_requests)

    report.stats_before = fetch_stats(base_url, timeout)

    statuses: Counter = Counter()
    errors: Counter = Counter()

    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = [pool.submit(_one_request, url, timeout) for _ in range(total_requests)]
        for future in as_completed(futures):
            status, error = future.result()
            if status is not None:
                statuses[status] += 1
            else:
                errors[error] += 1
    report.duration_seconds = time.perf_counter() - start

    report.status_counts = dict(statuses)
    report.errors = dict(errors)
    report.stats_after = fetch_stats(base_url, timeout)
    return report


def measure_latency(
    base_url: str,
    samples: int = 10,
    path: str = "/",
    timeout: float = 5.0,
) -> List[float]:
    """Sequential request times in seconds, one per sample."""
    url = f"{base_url.rstrip('/')}{path}"
    latencies = []
    for _ in range(samples):
        t0 = time.perf_counter()
        requests.get(url, timeout=timeout)
        latencies.append(time.perf_counter() - t0)
    return latencies


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="statserver-loadtest",
        description="Concurrent load test against a running statserver",
    )
    parser.add_argument(
        "url",
        nargs="?",
        default="http://127.0.0.1:8080",
        help="Server base URL (default: http://127.0.0.1:8080)",
    )
    parser.add_argument("--requests", "-n", type=int, default=1000,
                        help="Number of requests to send (default: 1000)")
    parser.add_argument("--concurrency", "-c", type=int, default=100,
                        help="Concurrent workers (default: 100)")
    parser.add_argument("--path", default="/",
                        help="Path to request (default: /)")
    parser.add_argument("--timeout", type=float, default=5.0,
                        help="Per-request timeout in seconds (default: 5)")
    parser.add_argument("--latency-samples", type=int, default=0,
                        help="Also time N sequential requests (default: 0)")
    args = parser.parse_args(argv)

    try:
        report = run_load_test(
            args.url,
            total_requests=args.requests,
            concurrency=args.concurrency,
            path=args.path,
            timeout=args.timeout,
        )
        if args.latency_samples > 0:
            report.latencies = measure_latency(
                args.url, args.latency_samples, args.path, args.timeout
            )
    except (requests.RequestException, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(report.to_text())

    if report.failed or not report.counter_consistent:
        sys.exit(1)


if __name__ == "__main__":
    main()
