"""
Unit tests for the command-line entry point.
"""

import socket

import pytest

from statserver import __version__
from statserver.__main__ import build_parser, config_from_args, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("STATSERVER_HOST", "STATSERVER_PORT", "STATSERVER_LOG_LEVEL", "STATSERVER_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == f"statserver {__version__}"

    def test_defaults_come_from_config(self):
        config = config_from_args(build_parser().parse_args([]))

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.keep_alive is True

    def test_flags_override(self):
        args = build_parser().parse_args([
            "-H", "0.0.0.0",
            "-p", "3000",
            "--backlog", "64",
            "-l", "debug",
            "--log-format", "json",
            "--no-keep-alive",
        ])

        config = config_from_args(args)

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.backlog == 64
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        assert config.keep_alive is False

    def test_flags_beat_environment(self, monkeypatch):
        monkeypatch.setenv("STATSERVER_PORT", "4000")
        monkeypatch.setenv("STATSERVER_HOST", "0.0.0.0")

        config = config_from_args(build_parser().parse_args(["--port", "5000"]))

        assert config.port == 5000
        assert config.host == "0.0.0.0"

    def test_invalid_log_level(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--log-level", "loud"])

        assert exc_info.value.code == 2


class TestMain:
    """Tests for main()."""

    def test_port_in_use_exits_1(self, capsys):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
            holder.bind(("127.0.0.1", 0))
            holder.listen(1)
            port = holder.getsockname()[1]

            with pytest.raises(SystemExit) as exc_info:
                main(["--port", str(port), "--log-level", "CRITICAL"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: ")

    def test_invalid_port_exits_1(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--port", "70000"])

        assert exc_info.value.code == 1
        assert "Invalid port" in capsys.readouterr().err
