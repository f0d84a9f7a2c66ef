"""
Tests for presentation helpers and the CLI status line
"""
import pytest

from explorer_updater.datahub import DataHub
from explorer_updater.formatting import (
    format_hash_rate,
    format_thousands,
    format_timestamp,
    percent_bar,
    transform_value_to_unit,
    unit_format,
    unit_prefix,
)
from explorer_updater.snapshot import MinerStatDTO, StatsSnapshot, TimeSeries
from explorer_updater.ui import StatusCLI


def test_format_timestamp_utc():
    assert format_timestamp(0) == "1970-01-01 00:00:00"
    assert format_timestamp(1_700_000_000) == "2023-11-14 22:13:20"


@pytest.mark.parametrize("a,b,c,expected", [
    (0, 0, 0, ".......... 0% "),
    (1, 1, 0, "*****..... 50% "),
    (1, 0, 0, "********** 100% "),
    (1, 2, 0, "***....... 33% "),
    (2, 1, 0, "*******... 66% "),
])
def test_percent_bar(a, b, c, expected):
    assert percent_bar(a, b, c) == expected


def test_transform_value_to_unit():
    assert transform_value_to_unit(None, "kilo") == 0
    assert transform_value_to_unit(1500, "kilo") == 1.5
    assert transform_value_to_unit(1_234_567, "mega", 2) == 1.23
    assert transform_value_to_unit(2.5e12, "tera") == 2.5
    assert transform_value_to_unit(42, None) == 42


def test_unit_prefix():
    assert unit_prefix("giga") == "G"
    assert unit_prefix("unknown") == ""
    assert unit_prefix(None) == ""


def test_unit_format():
    assert unit_format(None) is None
    assert unit_format(1_234_567) == "1,234,567"
    assert unit_format(1_234_567, "kilo") == "1,234.567"
    assert unit_format(1_234_567, "mega", 2) == "1.23"


def test_format_hash_rate():
    assert format_hash_rate(1.5e15) == "1500.00 TH/s"
    assert format_hash_rate(2.5e9, "giga") == "2.50 GH/s"


def test_format_thousands():
    assert format_thousands(None) is None
    assert format_thousands(1234567.89) == "1,234,567"
    assert format_thousands(12) == "12"


def test_status_line_waiting_before_first_refresh():
    cli = StatusCLI(DataHub())
    line = cli.render_line(DataHub().get_current())
    assert line.startswith("[WAITING]")
    assert len(line) == 120


def test_status_line_renders_snapshot():
    snapshot = StatsSnapshot(
        version=12,
        captured_at_unix_ms=1_700_000_000_000,
        tip_height=1234567,
        hash_rate_series=TimeSeries(max_len=3).appended(1, 1.5e15),
        miners=(MinerStatDTO("pool-a", 3, 75.0), MinerStatDTO("pool-b", 1, 25.0)),
        failed_stats=("MEMPOOL",),
    )
    line = StatusCLI(DataHub()).render_line(snapshot)

    assert "[v00012]" in line
    assert "2023-11-14 22:13:20" in line
    assert "1,234,567" in line
    assert "1500.00 TH/s" in line
    assert "pool-a ********.. 75%" in line
    assert "failed=MEMPOOL" in line


def test_status_cli_run_respects_duration(capsys):
    cli = StatusCLI(DataHub(), display_interval_ms=20)
    cli.run(duration_seconds=0.1)
    out = capsys.readouterr().out
    assert "[WAITING]" in out
