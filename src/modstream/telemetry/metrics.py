"""Counters for pipeline observability, injected into the monitor."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Dict, Protocol

ORACLE_SUCCESS = "oracle_success"
ORACLE_FAILURE = "oracle_failure"
ACTIONS_DENIED = "actions_denied"
ACTIONS_EXECUTED = "actions_executed"
ACTIONS_FAILED = "actions_failed"
MESSAGES_DROPPED = "messages_dropped"
AUDIT_FAILURES = "audit_failures"


class MetricsSink(Protocol):
    """Anything that can count named events."""

    def incr(self, name: str, value: int = 1) -> None: ...


class NullMetrics:
    """Sink that discards every event."""

    def incr(self, name: str, value: int = 1) -> None:
        return None


class InMemoryMetrics:
    """Thread-safe counter store, readable from the operator console and tests."""

    def __init__(self) -> None:
        self._counters: Counter[str] = Counter()
        self._lock = threading.Lock()

    def incr(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)
