"""
Clock & Time Utility

Provides canonical time semantics for the updater.

Responsibilities:
- Wall-clock time (UTC) for snapshot capture timestamps
- Monotonic time for staleness/age and tick scheduling
- Deterministic clock injection for testing

Architecture:
- Default implementation uses real system time
- Test implementations can inject frozen/mock time
- Health checks use monotonic time only
"""
import time
from typing import Protocol


class ClockProtocol(Protocol):
    """
    Protocol for clock implementations (real or mock).

    Allows deterministic testing by injecting fake time.
    """

    def now_unix_ms(self) -> int:
        """Wall-clock time in milliseconds since epoch (UTC)."""
        ...

    def now_mono_ns(self) -> int:
        """Monotonic time in nanoseconds (for age/staleness)."""
        ...


class SystemClock:
    """
    Real system clock implementation.

    Uses time.time() for wall-clock and time.monotonic_ns() for monotonic.
    """

    def now_unix_ms(self) -> int:
        """Wall-clock time in milliseconds since epoch (UTC)."""
        return int(time.time() * 1000)

    def now_mono_ns(self) -> int:
        """Monotonic time in nanoseconds (for age/staleness)."""
        return time.monotonic_ns()

