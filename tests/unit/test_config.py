"""
Unit tests for server configuration.
"""

import pytest

from statserver.config import ServerConfig


ENV_VARS = (
    "STATSERVER_HOST",
    "STATSERVER_PORT",
    "STATSERVER_TIMEOUT",
    "STATSERVER_KEEP_ALIVE_TIMEOUT",
    "STATSERVER_LOG_LEVEL",
    "STATSERVER_LOG_FORMAT",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestServerConfig:
    """Tests for ServerConfig defaults and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.backlog == 1024
        assert config.keep_alive is True
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.server_name == "statserver/1.0"
        config.validate()

    def test_port_zero_is_valid(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"backlog": 0},
        {"buffer_size": 100},
        {"timeout": 0},
        {"keep_alive_timeout": -1.0},
        {"max_request_size": 10},
        {"shutdown_timeout": -1},
        {"log_level": "VERBOSE"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_timeout_none_means_forever(self):
        ServerConfig(timeout=None).validate()

    def test_log_level_case_insensitive(self):
        ServerConfig(log_level="debug").validate()


class TestFromEnv:
    """Tests for ServerConfig.from_env."""

    def test_unset_keeps_defaults(self, clean_env):
        assert ServerConfig.from_env() == ServerConfig()

    def test_reads_variables(self, clean_env):
        clean_env.setenv("STATSERVER_HOST", "0.0.0.0")
        clean_env.setenv("STATSERVER_PORT", "3000")
        clean_env.setenv("STATSERVER_TIMEOUT", "12.5")
        clean_env.setenv("STATSERVER_KEEP_ALIVE_TIMEOUT", "2")
        clean_env.setenv("STATSERVER_LOG_LEVEL", "debug")
        clean_env.setenv("STATSERVER_LOG_FORMAT", "JSON")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.timeout == 12.5
        assert config.keep_alive_timeout == 2.0
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        config.validate()

    def test_bad_number_raises(self, clean_env):
        clean_env.setenv("STATSERVER_PORT", "eighty")

        with pytest.raises(ValueError):
            ServerConfig.from_env()
