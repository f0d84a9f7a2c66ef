"""
CLI UI - Minimal read-only status display
Displays the current stats snapshot in a single line
"""
import time
from typing import Optional

from explorer_updater.datahub import DataHub
from explorer_updater.formatting import (
    format_hash_rate,
    format_thousands,
    format_timestamp,
    percent_bar,
)
from explorer_updater.snapshot import StatsSnapshot


class StatusCLI:
    """
    Minimal CLI that reads and displays snapshots.

    Read-only: the CLI is a handler like any other and never triggers a
    refresh or writes to the DataHub.
    """

    def __init__(self, datahub: DataHub, display_interval_ms: int = 500):
        self.datahub = datahub
        self.display_interval_ms = display_interval_ms
        self._running = False

    def run(self, duration_seconds: Optional[float] = None) -> None:
        """
        Run the CLI display loop.

        Args:
            duration_seconds: How long to run in seconds (None = run until interrupted)
                             Uses monotonic time for accurate duration measurement.
        """
        self._running = True
        start_time_mono = time.perf_counter()

        print("Explorer background updater")
        print("=" * 80)
        print("Running... Press Ctrl+C to stop")
        print()

        try:
            while self._running:
                if duration_seconds and (time.perf_counter() - start_time_mono) >= duration_seconds:
                    break

                print(f"\r{self.render_line(self.datahub.get_current())}", end="", flush=True)

                time.sleep(self.display_interval_ms / 1000.0)

        except KeyboardInterrupt:
            print("\n\nShutdown requested...")
        finally:
            self._running = False
            print()

    def render_line(self, snapshot: StatsSnapshot) -> str:
        """Format one snapshot as a single padded status line."""
        if snapshot.is_empty:
            return "[WAITING] No data yet".ljust(120)

        top_miner = snapshot.miners[0] if snapshot.miners else None
        rest = sum(m.blocks_found for m in snapshot.miners[1:])
        share = (
            f"{top_miner.miner_id} {percent_bar(top_miner.blocks_found, rest, 0)}"
            if top_miner
            else "NA"
        )
        hash_rate = snapshot.hash_rate_series.latest()
        failed = ",".join(snapshot.failed_stats) if snapshot.failed_stats else "NONE"

        status_line = (
            f"[v{snapshot.version:05d}] "
            f"at={format_timestamp(snapshot.captured_at_unix_ms / 1000)} | "
            f"tip={format_thousands(snapshot.tip_height) or 'NA':>9s} | "
            f"hash={format_hash_rate(hash_rate.value) if hash_rate else 'NA':>14s} | "
            f"mempool={snapshot.mempool.tx_count:4d} | "
            f"top={share} | "
            f"failed={failed}"
        )
        return status_line.ljust(120)

    def stop(self) -> None:
        """Stop the CLI display loop."""
        self._running = False
