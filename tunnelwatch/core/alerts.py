"""Bounded, most-recent-first buffer of raised alerts."""

from __future__ import annotations

from collections import deque
from typing import Deque

from tunnelwatch.core.models import Alert

DEFAULT_CAPACITY = 5


class AlertLog:
    """Keep only the newest ``capacity`` alerts, newest first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            msg = f"Alert log capacity must be positive, got {capacity!r}"
            raise ValueError(msg)
        self._entries: Deque[Alert] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or DEFAULT_CAPACITY

    def append(self, alert: Alert) -> None:
        # appendleft on a bounded deque evicts from the right (oldest)
        self._entries.appendleft(alert)

    def clear(self) -> None:
        self._entries.clear()

    def all(self) -> tuple[Alert, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
