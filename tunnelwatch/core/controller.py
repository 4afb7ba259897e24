"""High-level controller scheduling the kernel on a background thread."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from tunnelwatch.core.kernel import TunnelKernel
from tunnelwatch.core.models import TunnelSnapshot

logger = logging.getLogger(__name__)


class SimulationController:
    """Manage kernel execution and expose control hooks for the UI."""

    def __init__(self, kernel: TunnelKernel, history_limit: int = 300) -> None:
        self.kernel = kernel
        self._thread: Optional[threading.Thread] = None
        self._metrics_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._on_state_change: list[Callable[[TunnelSnapshot], None]] = []
        self._history_lock = threading.Lock()
        self._history: dict[str, list[tuple[int, dict[str, Any]]]] = {}
        self._history_limit = history_limit

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                logger.debug("Simulation already running")
                return

            self._closed.clear()
            generation = self.kernel.start()
            self._thread = threading.Thread(
                target=self._run_kernel_loop,
                args=(generation,),
                name="SimulationControllerThread",
                daemon=True,
            )
            self._thread.start()

            if not (self._metrics_thread and self._metrics_thread.is_alive()):
                self._metrics_thread = threading.Thread(
                    target=self._consume_metrics,
                    name="MetricsAggregatorThread",
                    daemon=True,
                )
                self._metrics_thread.start()
        self._notify()

    def _run_kernel_loop(self, generation: int) -> None:
        try:
            self.kernel.run(generation=generation)
        except Exception:
            logger.exception("Kernel encountered an unrecoverable error")
            raise

    def pause(self) -> None:
        """Stop ticking; returns only once the runner thread has exited."""

        with self._lock:
            self.kernel.pause()
            self._join_runner()
        self._notify()

    def resume(self) -> None:
        self.start()

    def toggle_pause(self) -> None:
        if self.kernel.is_running():
            self.pause()
        else:
            self.resume()

    def reset(self) -> None:
        with self._lock:
            self.kernel.reset()
            self._join_runner()
            with self._history_lock:
                self._history.clear()
        self._notify()

    def stop(self) -> None:
        with self._lock:
            self._closed.set()
            self.kernel.shutdown()
            self._join_runner()
            if self._metrics_thread and self._metrics_thread.is_alive():
                self._metrics_thread.join(timeout=3)

    def acknowledge_incident(self) -> None:
        self.kernel.acknowledge_incident()
        self._notify()

    def _join_runner(self) -> None:
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=3)
            if thread.is_alive():
                logger.warning("Simulation thread did not terminate cleanly")

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def register_state_listener(self, callback: Callable[[TunnelSnapshot], None]) -> None:
        self._on_state_change.append(callback)

    def _notify(self) -> None:
        snapshot = self.kernel.snapshot()
        for callback in self._on_state_change:
            callback(snapshot)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def is_running(self) -> bool:
        return self.kernel.is_running()

    def snapshot(self) -> TunnelSnapshot:
        return self.kernel.snapshot()

    # ------------------------------------------------------------------
    # Metrics history
    # ------------------------------------------------------------------
    def _consume_metrics(self) -> None:
        while not self._closed.is_set():
            event = self.kernel.metrics_stream(timeout=0.5)
            if not event:
                continue
            event_type = event.get("type")
            if event_type == "shutdown":
                break
            if event_type != "metrics":
                continue

            subsystem = str(event.get("subsystem", ""))
            tick = int(event.get("tick", 0))
            metrics = event.get("metrics", {})

            with self._history_lock:
                # Events taken from the queue before a reset belong to the old run.
                if tick > self.kernel.current_tick():
                    continue
                bucket = self._history.setdefault(subsystem, [])
                bucket.append((tick, metrics))
                if len(bucket) > self._history_limit:
                    del bucket[0 : len(bucket) - self._history_limit]

    def get_history(self) -> dict[str, list[tuple[int, dict[str, Any]]]]:
        with self._history_lock:
            return {sub: list(entries) for sub, entries in self._history.items()}
