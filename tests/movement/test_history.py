import pytest

from rehab_service.models import HistoryEntry, MovementHistory, MovementMetrics, PoseFrame


def _entry(ts: float, quality: float = 0.0) -> HistoryEntry:
    return HistoryEntry(ts, PoseFrame.empty(ts), MovementMetrics(movement_quality=quality))


def test_fifo_eviction_at_capacity():
    history = MovementHistory(capacity=100)
    for ts in range(150):
        history.append(_entry(float(ts)))

    assert len(history) == 100
    timestamps = [entry.timestamp_ms for entry in history]
    assert timestamps[0] == 50.0
    assert timestamps[-1] == 149.0


def test_recent_returns_oldest_first():
    history = MovementHistory(capacity=10)
    for ts in range(5):
        history.append(_entry(float(ts), quality=ts * 10))

    assert [e.timestamp_ms for e in history.recent(3)] == [2.0, 3.0, 4.0]
    assert len(history.recent(20)) == 5
    assert history.recent(0) == []
    assert history.quality_series() == [0, 10, 20, 30, 40]


def test_clear():
    history = MovementHistory()
    history.append(_entry(0.0))
    history.clear()
    assert len(history) == 0


def test_invalid_capacity():
    with pytest.raises(ValueError):
        MovementHistory(capacity=0)
