"""
Background Updater - single-writer refresh loop for explorer statistics

Per cycle:
1. Fetch every statistic independently (one failure never aborts the others),
   each fetch bounded by fetch_timeout_s and retried up to fetch_attempts
2. Transform successful results into snapshot fields
3. Carry forward the previous value of every failed field
4. Build a new snapshot (version = previous + 1, captured_at = now)
5. Publish it via the DataHub

Upstream problems never escape this module; only ConfigError propagates,
and only from start().
"""
import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from explorer_updater.clock import ClockProtocol, SystemClock
from explorer_updater.datahub import DataHub
from explorer_updater.scheduler import RefreshScheduler
from explorer_updater.snapshot import (
    BlockHeaderDTO,
    MempoolDTO,
    MinerStatDTO,
    StatsSnapshot,
    TimeSeries,
)
from explorer_updater.updater_config import UpdaterConfig
from explorer_updater.upstream import (
    FailureReason,
    HashRate,
    StatFailure,
    StatKind,
    StatOk,
    TipInfo,
    UpstreamClient,
)


logger = logging.getLogger(__name__)


class UpdaterState(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


@dataclass(frozen=True)
class RefreshSuccess:
    snapshot: StatsSnapshot


@dataclass(frozen=True)
class RefreshPartialFailure:
    snapshot: StatsSnapshot
    failures: tuple[StatFailure, ...]


@dataclass(frozen=True)
class RefreshFailure:
    """Every statistic failed; snapshot is the carried-forward republish."""
    error: str
    snapshot: StatsSnapshot
    failures: tuple[StatFailure, ...] = ()


RefreshOutcome = Union[RefreshSuccess, RefreshPartialFailure, RefreshFailure]


class BackgroundUpdater:
    """
    Owns the refresh schedule and is the only writer to the DataHub.

    State machine: STOPPED -> RUNNING -> STOPPED. A RUNNING updater has
    exactly one RefreshScheduler.
    """

    def __init__(
        self,
        datahub: DataHub,
        client: UpstreamClient,
        config: Optional[UpdaterConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.datahub = datahub
        self.client = client
        self.config = config or UpdaterConfig()
        self.clock = clock or SystemClock()

        self.run_id = str(uuid.uuid4())

        self._state = UpdaterState.STOPPED
        self._scheduler: Optional[RefreshScheduler] = None
        self._lifecycle_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._last_outcome: Optional[RefreshOutcome] = None

        # Shared by every scheduler this updater creates, so a refresh left
        # running by a timed-out stop() still blocks the next start()'s ticks
        self._refresh_lock = threading.Lock()

        # One worker per StatKind; a stalled fetch keeps its worker until the
        # call returns, so stalls never tie up more than len(StatKind) threads
        self._executor = ThreadPoolExecutor(
            max_workers=len(StatKind), thread_name_prefix="upstream-fetch"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Validate config and begin scheduled refreshes (no-op if running).

        Raises:
            ConfigError: If the refresh schedule is invalid (updater stays STOPPED)
        """
        with self._lifecycle_lock:
            if self._state is UpdaterState.RUNNING:
                return

            self.config.validate()

            self._stop_requested.clear()
            self._scheduler = RefreshScheduler(
                self.refresh_once,
                interval_s=self.config.refresh_interval_s,
                stop_grace_s=self.config.effective_stop_grace_s(),
                name="background-updater",
                refresh_lock=self._refresh_lock,
            )
            self._scheduler.start()
            self._state = UpdaterState.RUNNING
            logger.info(f"Background updater RUNNING (run_id={self.run_id})")

    def stop(self) -> None:
        """Stop scheduling; an in-flight refresh finishes and publishes once more."""
        with self._lifecycle_lock:
            if self._state is UpdaterState.STOPPED:
                return

            self._stop_requested.set()
            if not self._scheduler.stop():
                logger.warning(
                    "Last refresh outlived the stop grace period; "
                    "it will still publish, and a restart waits for it"
                )
            self._scheduler = None
            self._state = UpdaterState.STOPPED
            logger.info("Background updater STOPPED")

    @property
    def state(self) -> UpdaterState:
        return self._state

    @property
    def scheduler(self) -> Optional[RefreshScheduler]:
        return self._scheduler

    @property
    def last_outcome(self) -> Optional[RefreshOutcome]:
        return self._last_outcome

    def is_healthy(self, max_staleness_s: float) -> bool:
        """
        True if some statistic was fetched successfully within max_staleness_s.

        Uses monotonic time, so wall-clock jumps do not affect health.
        """
        last_ok = self.datahub.get_current().last_success_mono_ns
        if last_ok is None:
            return False
        age_ns = self.clock.now_mono_ns() - last_ok
        return age_ns <= max_staleness_s * 1_000_000_000

    # ------------------------------------------------------------------
    # Refresh cycle
    # ------------------------------------------------------------------

    def refresh_once(self) -> RefreshOutcome:
        """Run one fetch-transform-publish cycle and return its outcome."""
        previous = self.datahub.get_current()
        results = self._fetch_all()

        captured_at_unix_ms = max(
            self.clock.now_unix_ms(), previous.captured_at_unix_ms + 1
        )
        captured_at_mono_ns = self.clock.now_mono_ns()

        snapshot, failures = self._build_snapshot(
            previous, results, captured_at_unix_ms, captured_at_mono_ns
        )
        self.datahub.publish(snapshot)

        outcome: RefreshOutcome
        if not failures:
            outcome = RefreshSuccess(snapshot)
            logger.debug(f"Published snapshot v{snapshot.version}")
        elif len(failures) < len(StatKind):
            outcome = RefreshPartialFailure(snapshot, failures)
            for failure in failures:
                logger.warning(
                    f"{failure.kind.value} fetch failed ({failure.reason.value}): "
                    f"{failure.detail}; carried forward in v{snapshot.version}"
                )
        else:
            error = "; ".join(
                f"{f.kind.value}={f.reason.value}" for f in failures
            )
            outcome = RefreshFailure(
                error=f"all statistics failed: {error}",
                snapshot=snapshot,
                failures=failures,
            )
            logger.error(
                f"Refresh cycle failed ({error}); republished stale data as v{snapshot.version}"
            )

        self._last_outcome = outcome
        return outcome

    def _fetch_all(self) -> dict:
        """
        Fetch every StatKind concurrently, retrying failed kinds.

        Returns:
            {StatKind: StatOk | StatFailure}
        """
        results: dict = {}
        pending = list(StatKind)

        for attempt in range(1, self.config.fetch_attempts + 1):
            round_results = self._fetch_round(pending)
            results.update(round_results)
            pending = [k for k in pending if isinstance(round_results[k], StatFailure)]

            if not pending or attempt == self.config.fetch_attempts:
                break
            logger.debug(
                f"Retrying {[k.value for k in pending]} in {self.config.retry_delay_s}s "
                f"(attempt {attempt + 1}/{self.config.fetch_attempts})"
            )
            if self._stop_requested.wait(self.config.retry_delay_s):
                break

        return results

    def _fetch_round(self, kinds: list) -> dict:
        futures: dict[StatKind, Future] = {
            kind: self._executor.submit(self.client.fetch_stat, kind) for kind in kinds
        }
        deadline = time.monotonic() + self.config.fetch_timeout_s

        results = {}
        for kind, future in futures.items():
            remaining_s = max(0.0, deadline - time.monotonic())
            results[kind] = self._collect(kind, future, remaining_s)
        return results

    def _collect(self, kind: StatKind, future: Future, timeout_s: float):
        try:
            result = future.result(timeout=timeout_s)
        except FutureTimeoutError:
            future.cancel()
            return StatFailure(
                kind, FailureReason.TIMEOUT,
                f"no response within {self.config.fetch_timeout_s}s",
            )
        except Exception as e:
            return StatFailure(kind, FailureReason.NETWORK, f"{type(e).__name__}: {e}")

        if not isinstance(result, (StatOk, StatFailure)) or result.kind is not kind:
            return StatFailure(kind, FailureReason.MALFORMED, f"unexpected result {result!r}")
        return result

    def _build_snapshot(
        self,
        previous: StatsSnapshot,
        results: dict,
        captured_at_unix_ms: int,
        captured_at_mono_ns: int,
    ) -> tuple[StatsSnapshot, tuple[StatFailure, ...]]:
        max_len = self.config.series_max_len
        fields = {
            "height_series": _resized(previous.height_series, max_len),
            "hash_rate_series": _resized(previous.hash_rate_series, max_len),
            "mempool_series": _resized(previous.mempool_series, max_len),
        }
        failures = []

        for kind in StatKind:
            result = results[kind]
            if isinstance(result, StatFailure):
                failures.append(result)
                continue
            try:
                fields.update(_apply(kind, result.value, fields, captured_at_unix_ms))
            except (TypeError, ValueError) as e:
                failures.append(StatFailure(kind, FailureReason.MALFORMED, str(e)))

        any_success = len(failures) < len(StatKind)
        snapshot = replace(
            previous,
            run_id=self.run_id,
            version=previous.version + 1,
            captured_at_unix_ms=captured_at_unix_ms,
            captured_at_mono_ns=captured_at_mono_ns,
            last_success_unix_ms=captured_at_unix_ms if any_success else previous.last_success_unix_ms,
            last_success_mono_ns=captured_at_mono_ns if any_success else previous.last_success_mono_ns,
            failed_stats=tuple(f.kind.value for f in failures),
            **fields,
        )
        return snapshot, tuple(failures)


def _resized(series: TimeSeries, max_len: int) -> TimeSeries:
    if series.max_len == max_len:
        return series
    return TimeSeries(max_len=max_len, points=series.points[-max_len:])


def _apply(kind: StatKind, value, fields: dict, ts_unix_ms: int) -> dict:
    """
    Map one successful fetch onto snapshot fields.

    Raises:
        TypeError: If value is not the type the kind promises
        ValueError: If a series append is rejected
    """
    if kind is StatKind.TIP_INFO:
        _expect(value, TipInfo, kind)
        return {
            "tip_height": value.height,
            "height_series": fields["height_series"].appended(ts_unix_ms, value.height),
        }
    if kind is StatKind.RECENT_BLOCKS:
        _expect_tuple_of(value, BlockHeaderDTO, kind)
        return {"recent_blocks": value}
    if kind is StatKind.HASH_RATE:
        _expect(value, HashRate, kind)
        return {
            "hash_rate_series": fields["hash_rate_series"].appended(ts_unix_ms, value.value),
        }
    if kind is StatKind.MEMPOOL:
        _expect(value, MempoolDTO, kind)
        return {
            "mempool": value,
            "mempool_series": fields["mempool_series"].appended(ts_unix_ms, value.tx_count),
        }
    if kind is StatKind.MINERS:
        _expect_tuple_of(value, MinerStatDTO, kind)
        return {"miners": value}
    raise ValueError(f"Unhandled stat kind {kind!r}")


def _expect(value, cls, kind: StatKind) -> None:
    if not isinstance(value, cls):
        raise TypeError(f"{kind.value}: expected {cls.__name__}, got {type(value).__name__}")


def _expect_tuple_of(value, cls, kind: StatKind) -> None:
    if not isinstance(value, tuple) or not all(isinstance(v, cls) for v in value):
        raise TypeError(f"{kind.value}: expected tuple of {cls.__name__}")
