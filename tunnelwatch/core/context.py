"""Thread-safe shared context holding the latest published snapshot."""

from __future__ import annotations

import threading

from tunnelwatch.core.models import TunnelSnapshot


class TunnelContext:
    """Stores the latest whole-tick snapshot with synchronisation."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._snapshot = TunnelSnapshot()

    def publish(self, snapshot: TunnelSnapshot) -> None:
        """Swap in a new snapshot; readers never observe a partial tick."""

        with self._lock:
            self._snapshot = snapshot

    def snapshot(self) -> TunnelSnapshot:
        with self._lock:
            return self._snapshot
