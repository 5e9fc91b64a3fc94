"""
Bounded FIFO of recent chat messages, used as short-term context for the model.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from modstream.datatypes.chat_datatypes import HistoryEntry

DEFAULT_HISTORY_SIZE = 20


class RecentHistoryBuffer:
    """Keeps the last ``capacity`` chat messages of one channel.

    The monitor's consumer task is the only writer. The lock lets other
    readers, such as the operator console, take snapshots from another thread
    or task without observing a half-applied append.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE) -> None:
        if capacity < 1:
            raise ValueError(f"history capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: Deque[HistoryEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, entry: HistoryEntry) -> None:
        """Append an entry, evicting the oldest once the buffer is full."""
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> List[HistoryEntry]:
        """Return an independent copy of the buffer, oldest first."""
        with self._lock:
            return [
                HistoryEntry(username=entry.username, text=entry.text, timestamp=entry.timestamp)
                for entry in self._entries
            ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
