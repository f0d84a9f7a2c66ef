"""
Tests for Updater Configuration - upstream selection and refresh schedule

Validates:
- Environment-driven upstream type resolution (UPSTREAM_TYPE)
- Documented schedule defaults
- Invalid schedule values are fatal (ConfigError), never silently replaced
"""
import os
import pytest
from unittest.mock import patch

from explorer_updater.updater_config import (
    ConfigError,
    UpdaterConfig,
    get_updater_config,
    get_upstream_config,
    get_upstream_type,
)


def test_upstream_type_default_mock():
    with patch.dict(os.environ, {}, clear=True):
        assert get_upstream_type() == "MOCK"


def test_upstream_type_case_insensitive():
    with patch.dict(os.environ, {"UPSTREAM_TYPE": "http"}, clear=True):
        assert get_upstream_type() == "HTTP"

    with patch.dict(os.environ, {"UPSTREAM_TYPE": " Mock "}, clear=True):
        assert get_upstream_type() == "MOCK"


def test_upstream_type_invalid_falls_back_to_mock():
    with patch.dict(os.environ, {"UPSTREAM_TYPE": "GRPC"}, clear=True):
        assert get_upstream_type() == "MOCK"


def test_upstream_config_defaults():
    with patch.dict(os.environ, {}, clear=True):
        config = get_upstream_config()
        assert config.base_url == "http://127.0.0.1:8080"
        assert config.blocks_limit == 20


def test_upstream_config_from_env():
    with patch.dict(os.environ, {
        "UPSTREAM_BASE_URL": "https://explorer.example.org/api/",
        "UPSTREAM_BLOCKS_LIMIT": "50",
    }, clear=True):
        config = get_upstream_config()
        assert config.base_url == "https://explorer.example.org/api"
        assert config.blocks_limit == 50


@pytest.mark.parametrize("env", [
    {"UPSTREAM_BASE_URL": "ftp://node"},
    {"UPSTREAM_BLOCKS_LIMIT": "0"},
    {"UPSTREAM_BLOCKS_LIMIT": "many"},
])
def test_upstream_config_invalid(env):
    with patch.dict(os.environ, env, clear=True):
        with pytest.raises(ConfigError):
            get_upstream_config()


def test_updater_config_defaults():
    with patch.dict(os.environ, {}, clear=True):
        config = get_updater_config()
        assert config.refresh_interval_s == 15.0
        assert config.fetch_timeout_s == 10.0
        assert config.series_max_len == 360
        assert config.fetch_attempts == 2
        assert config.retry_delay_s == 1.0
        assert config.stop_grace_s is None


def test_updater_config_from_env():
    with patch.dict(os.environ, {
        "REFRESH_INTERVAL_S": "30",
        "FETCH_TIMEOUT_S": "2.5",
        "SERIES_MAX_LEN": "120",
        "FETCH_ATTEMPTS": "3",
        "RETRY_DELAY_S": "0",
        "STOP_GRACE_S": "4",
    }, clear=True):
        config = get_updater_config()
        assert config.refresh_interval_s == 30.0
        assert config.fetch_timeout_s == 2.5
        assert config.series_max_len == 120
        assert config.fetch_attempts == 3
        assert config.retry_delay_s == 0.0
        assert config.effective_stop_grace_s() == 4.0


@pytest.mark.parametrize("env", [
    {"REFRESH_INTERVAL_S": "0"},
    {"REFRESH_INTERVAL_S": "-1"},
    {"REFRESH_INTERVAL_S": "soon"},
    {"REFRESH_INTERVAL_S": "inf"},
    {"FETCH_TIMEOUT_S": "0"},
    {"FETCH_TIMEOUT_S": "nan"},
    {"SERIES_MAX_LEN": "0"},
    {"SERIES_MAX_LEN": "2.5"},
    {"FETCH_ATTEMPTS": "0"},
    {"RETRY_DELAY_S": "-1"},
    {"STOP_GRACE_S": "0"},
])
def test_updater_config_invalid_is_fatal(env):
    """Invalid schedule values raise instead of falling back to defaults."""
    with patch.dict(os.environ, env, clear=True):
        with pytest.raises(ConfigError):
            get_updater_config()


def test_effective_stop_grace_covers_worst_case_cycle():
    config = UpdaterConfig(fetch_timeout_s=10.0, fetch_attempts=2, retry_delay_s=1.0)
    assert config.effective_stop_grace_s() == pytest.approx(22.0)


def test_validate_rejects_bool_interval():
    with pytest.raises(ConfigError):
        UpdaterConfig(refresh_interval_s=True).validate()
