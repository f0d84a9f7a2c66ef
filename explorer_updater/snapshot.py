"""
StatsSnapshot - Immutable snapshot schema (stats.v1)

Everything a request handler renders comes from one StatsSnapshot.
Nested values are frozen dataclasses and tuples so a published snapshot
cannot be mutated in place; every refresh cycle builds a new one.
"""
from dataclasses import asdict, dataclass, field, replace
from typing import Optional


SCHEMA_VERSION = "stats.v1"


@dataclass(frozen=True)
class SeriesPoint:
    """One (timestamp, value) sample."""
    ts_unix_ms: int
    value: float


@dataclass(frozen=True)
class TimeSeries:
    """
    Bounded sliding window of samples, oldest first.

    Invariants:
    - len(points) <= max_len
    - timestamps strictly increasing
    """
    max_len: int = 360
    points: tuple[SeriesPoint, ...] = ()

    def appended(self, ts_unix_ms: int, value: float) -> "TimeSeries":
        """
        Return a new series with the sample appended.

        The oldest samples are evicted when the window overflows.

        Raises:
            ValueError: If max_len < 1 or ts_unix_ms is not after the latest sample
        """
        if self.max_len < 1:
            raise ValueError(f"max_len must be >= 1, got {self.max_len}")
        if self.points and ts_unix_ms <= self.points[-1].ts_unix_ms:
            raise ValueError(
                f"Non-increasing timestamp {ts_unix_ms} "
                f"(latest is {self.points[-1].ts_unix_ms})"
            )

        points = self.points + (SeriesPoint(ts_unix_ms, value),)
        if len(points) > self.max_len:
            points = points[len(points) - self.max_len:]
        return replace(self, points=points)

    def values(self) -> list[float]:
        return [p.value for p in self.points]

    def latest(self) -> Optional[SeriesPoint]:
        return self.points[-1] if self.points else None

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class BlockHeaderDTO:
    """Recent block header as shown on the index page."""
    height: int
    hash_hex: str
    timestamp_unix_s: int
    pow_algo: str = ""  # SHA3X | RANDOMX
    tx_count: int = 0


@dataclass(frozen=True)
class MinerStatDTO:
    """Leaderboard entry."""
    miner_id: str
    blocks_found: int
    share_pct: float = 0.0


@dataclass(frozen=True)
class MempoolDTO:
    """Mempool summary."""
    tx_count: int = 0
    total_weight: int = 0


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Immutable snapshot published atomically by the background updater.
    Schema version: stats.v1

    version 0 is the empty snapshot served before the first refresh.
    """
    # Schema metadata
    schema_version: str = SCHEMA_VERSION
    run_id: str = ""

    # Versioning
    version: int = 0
    captured_at_unix_ms: int = 0
    captured_at_mono_ns: int = 0

    # Chain
    tip_height: Optional[int] = None
    recent_blocks: tuple[BlockHeaderDTO, ...] = ()

    # Charts
    height_series: TimeSeries = field(default_factory=TimeSeries)
    hash_rate_series: TimeSeries = field(default_factory=TimeSeries)
    mempool_series: TimeSeries = field(default_factory=TimeSeries)

    # Mempool + miners
    mempool: MempoolDTO = field(default_factory=MempoolDTO)
    miners: tuple[MinerStatDTO, ...] = ()

    # Refresh bookkeeping
    last_success_unix_ms: Optional[int] = None
    last_success_mono_ns: Optional[int] = None
    failed_stats: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True until the first refresh has been published."""
        return self.version == 0

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        data = asdict(self)
        for name in ("height_series", "hash_rate_series", "mempool_series"):
            series = getattr(self, name)
            data[name] = {
                "max_len": series.max_len,
                "points": [[p.ts_unix_ms, p.value] for p in series.points],
            }
        data["recent_blocks"] = [asdict(b) for b in self.recent_blocks]
        data["miners"] = [asdict(m) for m in self.miners]
        data["failed_stats"] = list(self.failed_stats)
        data.pop("captured_at_mono_ns")
        data.pop("last_success_mono_ns")
        return data


def empty_snapshot(series_max_len: int = 360, run_id: str = "") -> StatsSnapshot:
    """Default snapshot returned before the first refresh completes."""
    return StatsSnapshot(
        run_id=run_id,
        height_series=TimeSeries(max_len=series_max_len),
        hash_rate_series=TimeSeries(max_len=series_max_len),
        mempool_series=TimeSeries(max_len=series_max_len),
    )
