"""
Test: TimeSeries sliding window

Validates:
- Oldest samples evicted on overflow
- Timestamps must strictly increase
- appended() returns a new series, never mutates the original
"""
import pytest

from explorer_updater.snapshot import SeriesPoint, TimeSeries


def test_sliding_window_eviction():
    """Max length 3 fed 1,2,3,4 ends with exactly [2,3,4]."""
    series = TimeSeries(max_len=3)
    for i, value in enumerate([1, 2, 3, 4], start=1):
        series = series.appended(i * 1000, value)

    assert series.values() == [2, 3, 4]
    assert [p.ts_unix_ms for p in series.points] == [2000, 3000, 4000]
    assert len(series) == 3


def test_append_below_capacity_keeps_everything():
    series = TimeSeries(max_len=5).appended(1, 10.0).appended(2, 20.0)

    assert series.values() == [10.0, 20.0]
    assert series.latest() == SeriesPoint(2, 20.0)


def test_append_returns_new_series():
    original = TimeSeries(max_len=2).appended(1, 1.0)
    updated = original.appended(2, 2.0)

    assert original.values() == [1.0]
    assert updated.values() == [1.0, 2.0]
    assert updated.max_len == original.max_len


def test_non_increasing_timestamp_rejected():
    series = TimeSeries(max_len=3).appended(5, 1.0)

    with pytest.raises(ValueError, match="Non-increasing timestamp"):
        series.appended(5, 2.0)

    with pytest.raises(ValueError, match="Non-increasing timestamp"):
        series.appended(4, 2.0)


def test_zero_max_len_rejected():
    with pytest.raises(ValueError, match="max_len"):
        TimeSeries(max_len=0).appended(1, 1.0)


def test_latest_on_empty_series():
    assert TimeSeries().latest() is None
    assert TimeSeries().values() == []
