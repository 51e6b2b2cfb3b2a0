"""
Integration tests for the load-test driver against a running server.
"""

import pytest

from statserver.loadtest import fetch_stats, main, measure_latency, run_load_test


class TestRunLoadTest:
    """run_load_test() against a real server."""

    def test_counter_matches_requests_sent(self, running_server):
        report = run_load_test(running_server.url, total_requests=200, concurrency=20)

        assert report.sent == 200
        assert report.succeeded == 200
        assert report.failed == 0
        assert report.status_counts == {200: 200}
        assert report.counter_delta == 201
        assert report.counter_consistent
        assert report.duration_seconds > 0

    def test_unmatched_path_is_counted_too(self, running_server):
        report = run_load_test(running_server.url, total_requests=50, concurrency=10, path="/missing")

        assert report.status_counts == {404: 50}
        assert report.succeeded == 0
        assert report.counter_consistent

    def test_trailing_slash_in_base_url(self, running_server):
        report = run_load_test(running_server.url + "/", total_requests=5, concurrency=5)

        assert report.url == f"{running_server.url}/"
        assert report.counter_consistent

    def test_fetch_stats(self, running_server):
        assert fetch_stats(running_server.url)["total_requests"] == 0

    def test_measure_latency(self, running_server):
        latencies = measure_latency(running_server.url, samples=3, path="/health")

        assert len(latencies) == 3
        assert all(t > 0 for t in latencies)


class TestLoadTestCLI:
    """The statserver-loadtest entry point."""

    def test_success(self, running_server, capsys):
        main([running_server.url, "-n", "20", "-c", "5", "--latency-samples", "2"])

        out = capsys.readouterr().out
        assert "Succeeded (2xx):   20" in out
        assert "(delta 21, expected 21)" in out
        assert "Average response time:" in out

    def test_failed_requests_exit_1(self, running_server, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([running_server.url, "-n", "5", "-c", "5", "--path", "/missing"])

        assert exc_info.value.code == 1

    def test_unreachable_server_exits_1(self, free_port, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([f"http://127.0.0.1:{free_port}", "-n", "1", "--timeout", "1"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: ")
