"""
Fixed-window admission control for moderation actions.

The window restarts on the first call made 60 or more seconds after the
current window began. Because the window is fixed rather than sliding, up to
twice the budget can pass in a short burst straddling a window boundary; that
is accepted in exchange for O(1) state.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

WINDOW_SECONDS = 60.0


class ActionRateLimiter:
    """Allows at most ``actions_per_minute`` acquisitions per one-minute window.

    Args:
        actions_per_minute: Budget per window. Zero or less denies everything.
        clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(self, actions_per_minute: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._budget = actions_per_minute
        self._clock = clock
        self._count = 0
        self._window_start = clock()
        self._lock = threading.Lock()

    @property
    def budget(self) -> int:
        return self._budget

    def try_acquire(self) -> bool:
        """Take one unit of budget, returning False when the window is exhausted."""
        with self._lock:
            now = self._clock()
            if now - self._window_start >= WINDOW_SECONDS:
                self._count = 0
                self._window_start = now

            if self._count >= self._budget:
                return False

            self._count += 1
            return True

    def used(self) -> int:
        """Return how much of the current window's budget has been spent."""
        with self._lock:
            if self._clock() - self._window_start >= WINDOW_SECONDS:
                return 0
            return self._count
