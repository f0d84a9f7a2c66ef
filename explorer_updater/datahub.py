"""
DataHub - Atomic snapshot store
Holds the single "current" snapshot reference shared by updater and handlers
"""
import threading
from typing import Optional

from explorer_updater.snapshot import StatsSnapshot, empty_snapshot


class DataHub:
    """
    Snapshot store using copy-on-write semantics.

    Invariants:
    - Background updater (single writer) publishes new snapshots
    - Handlers (many readers) read the current snapshot without blocking
    - Readers never observe partial state or mutations
    - Published versions strictly increase
    """

    def __init__(self, initial: Optional[StatsSnapshot] = None):
        self._snapshot: StatsSnapshot = initial or empty_snapshot()
        self._write_lock = threading.Lock()
        self._publish_count = 0

    def publish(self, snapshot: StatsSnapshot) -> None:
        """
        Publish a new snapshot atomically (single writer: updater only).

        Args:
            snapshot: Immutable StatsSnapshot to publish

        Raises:
            ValueError: If snapshot.version does not advance the current version
        """
        with self._write_lock:
            current = self._snapshot
            if snapshot.version <= current.version:
                raise ValueError(
                    f"Snapshot version must increase: {snapshot.version} <= {current.version}"
                )
            # Single reference swap; readers see the old or the new object
            self._snapshot = snapshot
            self._publish_count += 1

    def get_current(self) -> StatsSnapshot:
        """
        Get the current snapshot (read-only, never blocks).

        Returns:
            Latest published snapshot, or the empty snapshot (version 0)
            before the first publish
        """
        return self._snapshot

    @property
    def publish_count(self) -> int:
        return self._publish_count
