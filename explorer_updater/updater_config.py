"""
Updater Configuration - Environment-driven upstream selection and refresh schedule

Supports:
- UPSTREAM_TYPE environment variable (MOCK or HTTP)
- HTTP upstream configuration from environment
- Refresh schedule (interval, per-fetch timeout, retries, series length)

Schedule values are validated strictly: an invalid interval or timeout is a
fatal startup error (ConfigError), never a silent fallback.
"""
import math
import os
import logging
from typing import Optional, Literal
from dataclasses import dataclass


logger = logging.getLogger(__name__)

UpstreamType = Literal["MOCK", "HTTP"]

DEFAULT_REFRESH_INTERVAL_S = 15.0
DEFAULT_FETCH_TIMEOUT_S = 10.0
DEFAULT_SERIES_MAX_LEN = 360  # 90 minutes of history at the default interval
DEFAULT_FETCH_ATTEMPTS = 2
DEFAULT_RETRY_DELAY_S = 1.0


class ConfigError(ValueError):
    """Invalid updater configuration (fatal at startup)."""


@dataclass
class UpstreamConfig:
    """HTTP upstream parameters from environment."""
    base_url: str = "http://127.0.0.1:8080"
    blocks_limit: int = 20
    user_agent: str = "explorer-updater/0.1"


@dataclass
class UpdaterConfig:
    """Refresh schedule for the background updater."""
    refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    series_max_len: int = DEFAULT_SERIES_MAX_LEN
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    retry_delay_s: float = DEFAULT_RETRY_DELAY_S
    stop_grace_s: Optional[float] = None

    def validate(self) -> None:
        """
        Raises:
            ConfigError: On the first invalid field
        """
        if not _is_positive_number(self.refresh_interval_s):
            raise ConfigError(
                f"refresh_interval_s must be > 0, got {self.refresh_interval_s!r}"
            )
        if not _is_positive_number(self.fetch_timeout_s):
            raise ConfigError(
                f"fetch_timeout_s must be > 0, got {self.fetch_timeout_s!r}"
            )
        if not isinstance(self.series_max_len, int) or self.series_max_len < 1:
            raise ConfigError(
                f"series_max_len must be an integer >= 1, got {self.series_max_len!r}"
            )
        if not isinstance(self.fetch_attempts, int) or self.fetch_attempts < 1:
            raise ConfigError(
                f"fetch_attempts must be an integer >= 1, got {self.fetch_attempts!r}"
            )
        if not _is_number(self.retry_delay_s) or self.retry_delay_s < 0:
            raise ConfigError(
                f"retry_delay_s must be >= 0, got {self.retry_delay_s!r}"
            )
        if self.stop_grace_s is not None and not _is_positive_number(self.stop_grace_s):
            raise ConfigError(
                f"stop_grace_s must be > 0, got {self.stop_grace_s!r}"
            )

    def effective_stop_grace_s(self) -> float:
        """
        Upper bound on how long stop() waits for an in-flight refresh.

        Defaults to the worst case of one cycle: every attempt timing out
        plus the retry delays between attempts.
        """
        if self.stop_grace_s is not None:
            return self.stop_grace_s
        attempts = self.fetch_attempts
        return attempts * self.fetch_timeout_s + (attempts - 1) * self.retry_delay_s + 1.0


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_positive_number(value) -> bool:
    return _is_number(value) and value > 0


def get_upstream_type() -> UpstreamType:
    """
    Resolve upstream type from environment.

    Returns:
        "MOCK" or "HTTP" (normalized, case-insensitive, default MOCK)
    """
    upstream_type = os.environ.get("UPSTREAM_TYPE", "").strip().upper()

    if not upstream_type:
        upstream_type = "MOCK"

    if upstream_type not in ("MOCK", "HTTP"):
        logger.warning(
            f"Invalid upstream type '{upstream_type}', falling back to MOCK. "
            f"Valid values: MOCK, HTTP"
        )
        upstream_type = "MOCK"

    return upstream_type  # type: ignore


def get_upstream_config() -> UpstreamConfig:
    """
    Load HTTP upstream configuration from environment.

    Environment variables:
    - UPSTREAM_BASE_URL (default: http://127.0.0.1:8080)
    - UPSTREAM_BLOCKS_LIMIT (default: 20)

    Raises:
        ConfigError: If UPSTREAM_BASE_URL is not http(s) or
            UPSTREAM_BLOCKS_LIMIT is not a positive integer
    """
    base_url = os.environ.get("UPSTREAM_BASE_URL", "http://127.0.0.1:8080").strip()
    base_url = base_url.rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"UPSTREAM_BASE_URL must be an http(s) URL, got '{base_url}'")

    blocks_limit = _env_int("UPSTREAM_BLOCKS_LIMIT", 20)
    if blocks_limit < 1:
        raise ConfigError(f"UPSTREAM_BLOCKS_LIMIT must be >= 1, got {blocks_limit}")

    return UpstreamConfig(base_url=base_url, blocks_limit=blocks_limit)


def get_updater_config() -> UpdaterConfig:
    """
    Load refresh schedule from environment.

    Environment variables:
    - REFRESH_INTERVAL_S (default: 15.0)
    - FETCH_TIMEOUT_S (default: 10.0)
    - SERIES_MAX_LEN (default: 360)
    - FETCH_ATTEMPTS (default: 2)
    - RETRY_DELAY_S (default: 1.0)
    - STOP_GRACE_S (optional)

    Raises:
        ConfigError: If any value fails to parse or validate
    """
    stop_grace_s = None
    if os.environ.get("STOP_GRACE_S", "").strip():
        stop_grace_s = _env_float("STOP_GRACE_S", 0.0)

    config = UpdaterConfig(
        refresh_interval_s=_env_float("REFRESH_INTERVAL_S", DEFAULT_REFRESH_INTERVAL_S),
        fetch_timeout_s=_env_float("FETCH_TIMEOUT_S", DEFAULT_FETCH_TIMEOUT_S),
        series_max_len=_env_int("SERIES_MAX_LEN", DEFAULT_SERIES_MAX_LEN),
        fetch_attempts=_env_int("FETCH_ATTEMPTS", DEFAULT_FETCH_ATTEMPTS),
        retry_delay_s=_env_float("RETRY_DELAY_S", DEFAULT_RETRY_DELAY_S),
        stop_grace_s=stop_grace_s,
    )
    config.validate()
    return config


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name} '{raw}': expected a number") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name} '{raw}': expected an integer") from None


def log_updater_config(
    upstream_type: UpstreamType,
    updater: UpdaterConfig,
    upstream: Optional[UpstreamConfig] = None,
) -> None:
    """
    Log concise startup diagnostics (single line per component).
    """
    logger.info(f"Upstream type: {upstream_type}")

    if upstream_type == "HTTP":
        if upstream:
            logger.info(
                f"HTTP upstream: base_url={upstream.base_url} blocks_limit={upstream.blocks_limit}"
            )
        else:
            logger.warning("HTTP upstream config missing")

    logger.info(
        f"Refresh schedule: interval={updater.refresh_interval_s}s "
        f"timeout={updater.fetch_timeout_s}s attempts={updater.fetch_attempts} "
        f"retry_delay={updater.retry_delay_s}s series_max_len={updater.series_max_len} "
        f"stop_grace={updater.effective_stop_grace_s()}s"
    )
