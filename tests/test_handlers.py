"""
Tests for the handler-facing read path

Validates:
- Views render the empty snapshot as "not available" instead of failing
- Views reflect the current snapshot once published
- healthz reports 200 while data is fresh and 503 when stale or empty
"""
import json

from explorer_updater.datahub import DataHub
from explorer_updater.handlers import healthz, index_json, mempool_view, miners_view
from explorer_updater.snapshot import MempoolDTO, MinerStatDTO, StatsSnapshot, TimeSeries
from explorer_updater.updater import BackgroundUpdater
from explorer_updater.updater_config import UpdaterConfig
from explorer_updater.upstream import MockUpstreamClient, StatKind


class FrozenClock:
    def __init__(self, unix_ms: int = 10_000, mono_ns: int = 0):
        self.unix_ms = unix_ms
        self.mono_ns = mono_ns

    def now_unix_ms(self) -> int:
        return self.unix_ms

    def now_mono_ns(self) -> int:
        return self.mono_ns


def test_views_on_empty_store():
    datahub = DataHub()

    body = index_json(datahub, clock=FrozenClock())
    assert body["available"] is False
    assert body["version"] == 0
    assert body["staleness_ms"] is None
    json.dumps(body)

    assert mempool_view(datahub) == {
        "available": False,
        "version": 0,
        "tx_count": 0,
        "total_weight": 0,
        "series": [],
    }
    assert miners_view(datahub)["miners"] == []


def test_views_reflect_published_snapshot():
    datahub = DataHub()
    datahub.publish(StatsSnapshot(
        version=3,
        captured_at_unix_ms=4_000,
        tip_height=77,
        mempool=MempoolDTO(tx_count=8, total_weight=800),
        mempool_series=TimeSeries(max_len=5).appended(1_000, 4).appended(4_000, 8),
        miners=(MinerStatDTO("pool-a", 2, 66.666), MinerStatDTO("pool-b", 1, 33.333)),
    ))

    body = index_json(datahub, clock=FrozenClock(unix_ms=10_000))
    assert body["available"] is True
    assert body["tip_height"] == 77
    assert body["staleness_ms"] == 6_000
    assert body["mempool_series"]["points"] == [[1_000, 4], [4_000, 8]]
    assert json.loads(json.dumps(body))["miners"][0]["miner_id"] == "pool-a"

    mempool = mempool_view(datahub)
    assert mempool["tx_count"] == 8
    assert mempool["series"] == [4, 8]

    miners = miners_view(datahub)
    assert miners["miners"][0] == {"miner_id": "pool-a", "blocks_found": 2, "share_pct": 66.67}


def test_views_never_refresh():
    datahub = DataHub()
    client = MockUpstreamClient()
    BackgroundUpdater(datahub, client, UpdaterConfig())

    index_json(datahub)
    mempool_view(datahub)
    miners_view(datahub)

    assert all(count == 0 for count in client.calls.values())
    assert datahub.get_current().is_empty


def test_healthz_fresh_and_stale():
    clock = FrozenClock()
    datahub = DataHub()
    client = MockUpstreamClient()
    updater = BackgroundUpdater(
        datahub, client, UpdaterConfig(fetch_attempts=1, retry_delay_s=0.0), clock=clock
    )

    status, body = healthz(updater, max_staleness_s=60)
    assert status == 503
    assert body["healthy"] is False
    assert body["state"] == "STOPPED"

    updater.refresh_once()
    status, body = healthz(updater, max_staleness_s=60)
    assert status == 200
    assert body["version"] == 1
    assert body["failed_stats"] == []

    client.fail_kinds = set(StatKind)
    clock.unix_ms += 120_000
    clock.mono_ns += 120 * 1_000_000_000
    updater.refresh_once()

    status, body = healthz(updater, max_staleness_s=60)
    assert status == 503
    assert body["version"] == 2
    assert len(body["failed_stats"]) == len(StatKind)
