"""
Refresh Scheduler - fixed-interval ticker with at-most-one refresh in flight

Runs a refresh callable in a background thread on a fixed grid
(t0, t0 + interval, t0 + 2*interval, ...). The first tick fires immediately
on start().

Tick policy:
- A refresh runs to completion before the next one may start
- Ticks whose deadline passed while a refresh was running are skipped
  (counted in skipped_ticks), never queued or replayed in a burst

Stop policy:
- stop() wakes the ticker immediately; no new refresh starts afterwards
- An in-flight refresh is allowed to finish (and publish) before the
  thread exits; stop() waits up to stop_grace_s for that
"""
import logging
import threading
import time
from typing import Callable, Optional

from explorer_updater.updater_config import DEFAULT_REFRESH_INTERVAL_S, ConfigError


logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Background ticker driving one refresh callable.

    Thread model: one daemon thread per start(). The refresh lock keeps
    refreshes from overlapping. A previous thread may still be finishing its
    last cycle after a timed-out stop(), so owners that create successive
    schedulers pass them the same refresh_lock.
    """

    def __init__(
        self,
        refresh_fn: Callable[[], object],
        interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
        stop_grace_s: float = 5.0,
        name: str = "refresh-scheduler",
        refresh_lock: Optional[threading.Lock] = None,
    ):
        """
        Args:
            refresh_fn: Callable run once per tick (return value ignored)
            interval_s: Tick period in seconds (default 15s)
            stop_grace_s: Max seconds stop() waits for an in-flight refresh
            name: Thread name (shows up in logs and thread dumps)
            refresh_lock: In-flight guard; shared across schedulers driving
                the same refresh_fn (default: a private lock)

        Raises:
            ConfigError: If interval_s or stop_grace_s is not positive
        """
        if isinstance(interval_s, bool) or not isinstance(interval_s, (int, float)) or interval_s <= 0:
            raise ConfigError(f"interval_s must be > 0, got {interval_s!r}")
        if stop_grace_s <= 0:
            raise ConfigError(f"stop_grace_s must be > 0, got {stop_grace_s!r}")

        self.refresh_fn = refresh_fn
        self.interval_s = float(interval_s)
        self.stop_grace_s = stop_grace_s
        self.name = name

        self._lifecycle_lock = threading.Lock()
        self._refresh_lock = refresh_lock if refresh_lock is not None else threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

        self._tick_count = 0
        self._skipped_ticks = 0

    def start(self) -> None:
        """Start ticking in a background thread (no-op if already running)."""
        with self._lifecycle_lock:
            if self._thread is not None:
                return

            logger.info(f"Starting {self.name} (interval={self.interval_s}s)")
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                name=self.name,
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> bool:
        """
        Stop ticking; let an in-flight refresh finish.

        Returns:
            True if the thread exited within stop_grace_s, False if a refresh
            was still running when the grace period expired
        """
        with self._lifecycle_lock:
            thread = self._thread
            stop_event = self._stop_event
            self._thread = None
            self._stop_event = None

        if thread is None:
            return True

        logger.info(f"Stopping {self.name}")
        stop_event.set()
        thread.join(timeout=self.stop_grace_s)

        if thread.is_alive():
            logger.warning(
                f"{self.name}: in-flight refresh still running after "
                f"{self.stop_grace_s}s grace period; it will finish and the thread will exit"
            )
            return False
        return True

    @property
    def is_running(self) -> bool:
        with self._lifecycle_lock:
            return self._thread is not None

    @property
    def in_flight(self) -> bool:
        return self._refresh_lock.locked()

    @property
    def tick_count(self) -> int:
        """Number of refreshes started."""
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        """Number of ticks dropped because a refresh was still running."""
        return self._skipped_ticks

    def _run_loop(self, stop_event: threading.Event) -> None:
        next_tick = time.monotonic()

        while not stop_event.is_set():
            self._run_tick()

            next_tick += self.interval_s
            now = time.monotonic()
            if now > next_tick:
                # Refresh overran one or more ticks: drop them, realign to the grid
                missed = int((now - next_tick) // self.interval_s) + 1
                self._skipped_ticks += missed
                next_tick += missed * self.interval_s
                logger.debug(f"{self.name}: skipped {missed} tick(s), refresh overran interval")

            stop_event.wait(max(0.0, next_tick - time.monotonic()))

        logger.debug(f"{self.name} thread exiting")

    def _run_tick(self) -> None:
        if not self._refresh_lock.acquire(blocking=False):
            self._skipped_ticks += 1
            logger.debug(f"{self.name}: refresh already in flight, tick skipped")
            return

        try:
            self._tick_count += 1
            self.refresh_fn()
        except Exception as e:
            logger.error(f"{self.name}: refresh raised: {e}", exc_info=True)
        finally:
            self._refresh_lock.release()
