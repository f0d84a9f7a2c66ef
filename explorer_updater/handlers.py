"""
Handler-facing read path

Request handlers receive the DataHub (and, for health checks, the updater)
by explicit injection. They only ever call DataHub.get_current(); they never
publish and never trigger a refresh. Each function reads the snapshot once
so a response is rendered from a single consistent version.
"""
from typing import Optional

from explorer_updater.clock import ClockProtocol, SystemClock
from explorer_updater.datahub import DataHub
from explorer_updater.updater import BackgroundUpdater


DEFAULT_HEALTH_MAX_STALENESS_S = 300.0


def _staleness_ms(captured_at_unix_ms: int, clock: ClockProtocol) -> Optional[int]:
    if captured_at_unix_ms == 0:
        return None
    return max(0, clock.now_unix_ms() - captured_at_unix_ms)


def index_json(datahub: DataHub, clock: Optional[ClockProtocol] = None) -> dict:
    """Full snapshot for the index page / JSON API."""
    snapshot = datahub.get_current()
    body = snapshot.to_dict()
    body["available"] = not snapshot.is_empty
    body["staleness_ms"] = _staleness_ms(snapshot.captured_at_unix_ms, clock or SystemClock())
    return body


def mempool_view(datahub: DataHub) -> dict:
    snapshot = datahub.get_current()
    return {
        "available": not snapshot.is_empty,
        "version": snapshot.version,
        "tx_count": snapshot.mempool.tx_count,
        "total_weight": snapshot.mempool.total_weight,
        "series": snapshot.mempool_series.values(),
    }


def miners_view(datahub: DataHub) -> dict:
    snapshot = datahub.get_current()
    return {
        "available": not snapshot.is_empty,
        "version": snapshot.version,
        "miners": [
            {
                "miner_id": m.miner_id,
                "blocks_found": m.blocks_found,
                "share_pct": round(m.share_pct, 2),
            }
            for m in snapshot.miners
        ],
    }


def healthz(
    updater: BackgroundUpdater,
    max_staleness_s: float = DEFAULT_HEALTH_MAX_STALENESS_S,
) -> tuple[int, dict]:
    """
    Returns:
        (200, body) while data is fresh, (503, body) otherwise
    """
    snapshot = updater.datahub.get_current()
    healthy = updater.is_healthy(max_staleness_s)
    body = {
        "healthy": healthy,
        "state": updater.state.value,
        "version": snapshot.version,
        "last_success_unix_ms": snapshot.last_success_unix_ms,
        "failed_stats": list(snapshot.failed_stats),
    }
    return (200 if healthy else 503), body
