"""
Main entrypoint
Wires DataHub, upstream client and background updater, then runs the CLI status view
"""
import os
import sys
import logging
from typing import Optional

from explorer_updater.datahub import DataHub
from explorer_updater.snapshot import empty_snapshot
from explorer_updater.ui import StatusCLI
from explorer_updater.updater import BackgroundUpdater
from explorer_updater.updater_config import (
    ConfigError,
    UpdaterConfig,
    UpstreamType,
    get_updater_config,
    get_upstream_config,
    get_upstream_type,
    log_updater_config,
)
from explorer_updater.upstream import HttpUpstreamClient, MockUpstreamClient, UpstreamClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def _create_upstream_client(upstream_type: UpstreamType, config: UpdaterConfig) -> UpstreamClient:
    """
    Create the upstream client for the resolved upstream type.

    Raises:
        ConfigError: If HTTP upstream configuration is invalid
    """
    if upstream_type == "HTTP":
        upstream = get_upstream_config()
        log_updater_config(upstream_type, config, upstream)
        return HttpUpstreamClient(upstream, timeout_s=config.fetch_timeout_s)

    log_updater_config(upstream_type, config)
    return MockUpstreamClient()


def _resolve_duration() -> float:
    """MAX_RUNTIME_S env var, then argv[1], then 30 seconds."""
    duration: Optional[float] = None
    max_runtime_s = os.environ.get("MAX_RUNTIME_S")
    if max_runtime_s:
        try:
            duration = float(max_runtime_s)
        except ValueError:
            print(f"Warning: Invalid MAX_RUNTIME_S='{max_runtime_s}', using default")

    if duration is None:
        duration = float(sys.argv[1]) if len(sys.argv) > 1 else 30.0
    return duration


def main() -> int:
    """
    Main entry point.

    Starts:
    - DataHub (snapshot store, empty snapshot until first refresh)
    - BackgroundUpdater (refresh every REFRESH_INTERVAL_S, default 15s)
    - StatusCLI (read-only display)

    Runtime control:
    - MAX_RUNTIME_S env var: overall runtime limit (monotonic time)
    - Command-line arg: duration (if MAX_RUNTIME_S not set)
    - Default: 30 seconds
    - Ctrl+C: immediate shutdown

    Returns:
        Process exit code (2 on configuration failure)
    """
    print("Initializing explorer background updater...")

    duration = _resolve_duration()

    try:
        config = get_updater_config()
        upstream_type = get_upstream_type()
        client = _create_upstream_client(upstream_type, config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    datahub = DataHub(empty_snapshot(config.series_max_len))
    updater = BackgroundUpdater(datahub, client, config)
    ui = StatusCLI(datahub, display_interval_ms=500)

    try:
        try:
            updater.start()
        except ConfigError as e:
            logger.error(f"Refusing to start updater: {e}")
            return 2

        logger.info(f"Starting UI (will run for {duration} seconds)...\n")
        ui.run(duration_seconds=duration)

    finally:
        logger.info("Stopping background updater...")
        updater.stop()
        client.close()
        logger.info("Shutdown complete.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
