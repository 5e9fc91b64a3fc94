"""Tests for RecentHistoryBuffer."""

import pytest

from modstream.datatypes.chat_datatypes import HistoryEntry
from modstream.moderation.history_buffer import RecentHistoryBuffer


def _entry(i: int) -> HistoryEntry:
    return HistoryEntry(username=f"user{i}", text=f"message {i}")


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        RecentHistoryBuffer(capacity=0)


def test_keeps_insertion_order_below_capacity():
    buffer = RecentHistoryBuffer(capacity=5)
    for i in range(3):
        buffer.add(_entry(i))

    assert len(buffer) == 3
    assert [e.text for e in buffer.snapshot()] == ["message 0", "message 1", "message 2"]


@pytest.mark.parametrize("capacity,added", [(1, 5), (3, 4), (20, 57)])
def test_evicts_oldest_once_full(capacity, added):
    buffer = RecentHistoryBuffer(capacity=capacity)
    for i in range(added):
        buffer.add(_entry(i))

    snapshot = buffer.snapshot()
    assert len(buffer) == capacity
    assert [e.username for e in snapshot] == [f"user{i}" for i in range(added - capacity, added)]


def test_snapshot_is_independent_copy():
    buffer = RecentHistoryBuffer(capacity=3)
    buffer.add(_entry(1))
    buffer.add(_entry(2))

    snapshot = buffer.snapshot()
    snapshot.clear()
    second = buffer.snapshot()
    second[0].text = "tampered"

    third = buffer.snapshot()
    assert len(third) == 2
    assert third[0].text == "message 1"


def test_clear():
    buffer = RecentHistoryBuffer(capacity=3)
    buffer.add(_entry(1))
    buffer.clear()
    assert len(buffer) == 0
    assert buffer.snapshot() == []
