"""
Unit tests for the API handlers and their route table.
"""

import json
from datetime import datetime

import pytest

from statserver.handlers import (
    HEALTHY_MESSAGE,
    WELCOME_MESSAGE,
    StatsHandler,
    echo,
    health,
    not_found,
    register_routes,
    root,
)
from statserver.http.request import HTTPRequest
from statserver.http.router import Router
from statserver.http.status_codes import HTTPStatus
from statserver.stats import StatsRegistry


def make_request(method: str = "GET", path: str = "/", **path_params) -> HTTPRequest:
    return HTTPRequest(method=method, path=path, path_params=path_params)


def body_of(response) -> dict:
    return json.loads(response.body.decode("utf-8"))


class TestHandlers:
    """Tests for the individual handler functions."""

    def test_root(self):
        response = root(make_request())

        data = body_of(response)
        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "application/json"
        assert data["message"] == WELCOME_MESSAGE == "Welcome to statserver!"
        assert data["server"] == "statserver/1.0"

    def test_timestamp_is_iso_with_offset(self):
        data = body_of(root(make_request()))

        parsed = datetime.fromisoformat(data["timestamp"])
        assert parsed.utcoffset() is not None

    def test_health(self):
        response = health(make_request(path="/health"))

        assert response.status == HTTPStatus.OK
        assert body_of(response)["message"] == HEALTHY_MESSAGE == "Server is healthy"
        assert response.headers["Cache-Control"] == "no-store"

    def test_server_name_is_used(self):
        data = body_of(health(make_request(path="/health"), server_name="custom/9.9"))

        assert data["server"] == "custom/9.9"

    def test_echo(self):
        response = echo(make_request(path="/echo/HelloWorld", message="HelloWorld"))

        assert response.status == HTTPStatus.OK
        assert body_of(response)["message"] == "Echo: HelloWorld"

    @pytest.mark.parametrize("message", [
        "Hello World",
        'say "hi"',
        "back\\slash",
        "a/b/c",
        "héllo wörld ✓",
        "<script>",
    ])
    def test_echo_is_verbatim(self, message):
        response = echo(make_request(path=f"/echo/{message}", message=message))

        assert body_of(response)["message"] == "Echo: " + message

    def test_not_found(self):
        response = not_found(make_request("DELETE", "/nowhere"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert body_of(response)["message"] == "Not Found"


class TestStatsHandler:
    """Tests for StatsHandler."""

    def test_reports_registry(self):
        stats = StatsRegistry()
        for _ in range(3):
            stats.increment()

        response = StatsHandler(stats)(make_request(path="/stats"))

        data = body_of(response)
        assert response.status == HTTPStatus.OK
        assert data["total_requests"] == 3
        assert data["uptime_seconds"] >= 0
        assert data["requests_per_second"] >= 0
        assert list(data) == ["total_requests", "uptime_seconds", "requests_per_second"]
        assert response.headers["Cache-Control"] == "no-store"

    def test_does_not_count(self):
        stats = StatsRegistry()
        handler = StatsHandler(stats)

        handler(make_request(path="/stats"))
        handler(make_request(path="/stats"))

        assert stats.total_requests == 0

    def test_holds_registry_by_reference(self):
        stats = StatsRegistry()
        handler = StatsHandler(stats)
        stats.increment()

        assert body_of(handler(make_request(path="/stats")))["total_requests"] == 1


class TestRegisterRoutes:
    """Tests for the installed route table."""

    @pytest.fixture
    def router(self) -> Router:
        return register_routes(Router(), StatsRegistry(), "test/1.0")

    def test_route_table(self, router):
        assert [(r.method, r.path) for r in router.routes()] == [
            ("GET", "/"),
            ("GET", "/health"),
            ("GET", "/echo/*message"),
            ("GET", "/stats"),
        ]

    @pytest.mark.parametrize("path,message", [
        ("/", "Welcome to statserver!"),
        ("/health", "Server is healthy"),
        ("/echo/HelloWorld", "Echo: HelloWorld"),
        ("/echo/a/b", "Echo: a/b"),
    ])
    def test_matched_routes(self, router, path, message):
        response = router.handle(make_request(path=path))

        assert response.status == HTTPStatus.OK
        assert body_of(response)["message"] == message
        assert body_of(response)["server"] == "test/1.0"

    def test_stats_route(self, router):
        data = body_of(router.handle(make_request(path="/stats")))

        assert data["total_requests"] == 0

    @pytest.mark.parametrize("method,path", [
        ("GET", "/does-not-exist"),
        ("GET", "/echo"),
        ("GET", "/echo/"),
        ("GET", "/health/"),
        ("POST", "/"),
        ("DELETE", "/stats"),
        ("BREW", "/pot"),
    ])
    def test_fallback(self, router, method, path):
        response = router.handle(make_request(method, path))

        assert response.status == HTTPStatus.NOT_FOUND
        assert body_of(response)["message"] == "Not Found"
        assert body_of(response)["server"] == "test/1.0"
