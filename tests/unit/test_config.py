"""Tests for environment-variable configuration loading."""

from __future__ import annotations

import pytest

from loadburst._internal.config import LoadBurstConfig, load_config
from loadburst._internal.errors import ConfigError


class TestLoadBurstConfig:
    """Tests for the LoadBurstConfig dataclass."""

    def test_defaults(self):
        """Defaults match the metrics endpoint the tool was built for."""
        config = LoadBurstConfig()
        assert config.target_url == "http://127.0.0.1:6770/metrics"
        assert config.num_requests == 10_000
        assert config.concurrency == 50
        assert config.method == "GET"
        assert config.request_timeout == 30.0
        assert config.accept == "application/json"

    def test_frozen(self):
        config = LoadBurstConfig()
        with pytest.raises(AttributeError):
            config.concurrency = 5  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        """No environment variables yields the documented defaults."""
        assert load_config() == LoadBurstConfig()

    def test_url_built_from_host_port_endpoint(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_HOST", "10.0.0.5")
        monkeypatch.setenv("LOADBURST_PORT", "9000")
        monkeypatch.setenv("LOADBURST_ENDPOINT", "/stats")
        assert load_config().target_url == "http://10.0.0.5:9000/stats"

    def test_accept_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_ACCEPT", "text/plain")
        assert load_config().accept == "text/plain"

    def test_empty_accept_disables_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_ACCEPT", "")
        assert load_config().accept == ""

    def test_endpoint_without_leading_slash(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_ENDPOINT", "health")
        assert load_config().target_url == "http://127.0.0.1:6770/health"

    def test_full_url_takes_precedence(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_URL", "https://api.example.com/v1")
        monkeypatch.setenv("LOADBURST_HOST", "ignored")
        assert load_config().target_url == "https://api.example.com/v1"

    def test_counts_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_NUM_REQUESTS", "500")
        monkeypatch.setenv("LOADBURST_CONCURRENCY", "8")
        config = load_config()
        assert config.num_requests == 500
        assert config.concurrency == 8

    def test_zero_requests_allowed(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_NUM_REQUESTS", "0")
        assert load_config().num_requests == 0

    def test_method_uppercased(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_METHOD", "post")
        assert load_config().method == "POST"

    def test_timeout_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_TIMEOUT", "2.5")
        assert load_config().request_timeout == 2.5

    def test_empty_value_uses_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_CONCURRENCY", "")
        assert load_config().concurrency == 50

    @pytest.mark.parametrize(
        ("name", "value", "match"),
        [
            ("LOADBURST_NUM_REQUESTS", "lots", "must be an integer"),
            ("LOADBURST_NUM_REQUESTS", "-1", "must be >= 0"),
            ("LOADBURST_CONCURRENCY", "0", "must be >= 1"),
            ("LOADBURST_PORT", "http", "must be an integer"),
            ("LOADBURST_PORT", "70000", "must be <= 65535"),
            ("LOADBURST_TIMEOUT", "abc", "must be a number"),
            ("LOADBURST_TIMEOUT", "0", "must be positive"),
            ("LOADBURST_TIMEOUT", "-5.0", "must be positive"),
        ],
    )
    def test_invalid_values_raise(self, monkeypatch: pytest.MonkeyPatch, name: str, value: str, match: str):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigError, match=match):
            load_config()
