"""Tunnel simulation kernel: the clock that drives the per-tick pipeline."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Iterable
from dataclasses import replace
from enum import Enum
from queue import Empty, Full, Queue
from typing import Any, Optional

from tunnelwatch.core.context import TunnelContext
from tunnelwatch.core.models import TunnelSnapshot
from tunnelwatch.subsystems.base import Subsystem, TickFrame
from tunnelwatch.subsystems.factory import build_subsystems_from_config

logger = logging.getLogger(__name__)


class ClockState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class TunnelKernel:
    """Owns the simulation lifecycle and runs subsystems in pipeline order.

    All mutation happens inside :meth:`tick` while holding the kernel lock,
    and every completed tick is committed as one immutable
    :class:`TunnelSnapshot`. Pausing or resetting bumps the generation
    counter so that ticks scheduled before the change are discarded.
    """

    def __init__(
        self,
        config: dict[str, Any],
        tick_duration: float | None = None,
        max_ticks: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.tick_duration = float(
            tick_duration if tick_duration is not None else config.get("tick_duration", 1 / 60)
        )
        self.time_step = float(config.get("time_step", 0.1))
        self.ventilation_level = float(config.get("ventilation_level", 60.0))
        self.max_ticks = max_ticks

        self._rng = rng if rng is not None else random.Random(config.get("seed"))
        self._subsystems: list[Subsystem] = []
        self._lock = threading.RLock()
        self._state = ClockState.STOPPED
        self._generation = 0
        self._tick_index = 0
        self._elapsed = 0.0
        self._incident_detected = False
        self.context = TunnelContext()
        buffer_size = int(self.config.get("metrics_buffer", 256))
        self._metrics_queue: Queue[dict[str, Any]] = Queue(maxsize=buffer_size)
        self._latest_metrics: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    def bootstrap(self) -> None:
        """Instantiate the subsystem pipeline and publish the initial snapshot."""

        with self._lock:
            if self._state is ClockState.RUNNING:
                msg = "Cannot bootstrap while the simulation is running; pause or reset first"
                raise RuntimeError(msg)

            if not self._subsystems:
                self._subsystems.extend(build_subsystems_from_config(self.config, rng=self._rng))

            if not self._subsystems:
                msg = "No subsystems registered for the simulation"
                raise RuntimeError(msg)

            for subsystem in self._subsystems:
                logger.debug("Registered subsystem: %s", subsystem.identifier)

            # A paused run keeps its state; only reset() returns to tick 0.
            if self._tick_index == 0:
                self._publish_initial()

    def register_subsystems(self, subsystems: Iterable[Subsystem]) -> None:
        """Add subsystems prior to bootstrapping."""

        with self._lock:
            if self._state is ClockState.RUNNING:
                msg = "Cannot register subsystems while the simulation is running"
                raise RuntimeError(msg)
            self._subsystems.extend(subsystems)

    def start(self) -> int:
        """Transition to running and return the generation ticks must carry."""

        with self._lock:
            if not self._subsystems:
                self.bootstrap()
            if self._state is ClockState.RUNNING:
                logger.debug("Simulation already running")
                return self._generation

            self._state = ClockState.RUNNING
            for subsystem in self._subsystems:
                subsystem.on_start()
            self.context.publish(replace(self.context.snapshot(), running=True))
            logger.info(
                "Simulation started (generation=%d, tick=%d)", self._generation, self._tick_index
            )
            return self._generation

    def pause(self) -> None:
        with self._lock:
            if self._state is ClockState.STOPPED:
                return
            self._state = ClockState.STOPPED
            self._generation += 1
            self.context.publish(replace(self.context.snapshot(), running=False))
            logger.info("Simulation paused at tick %d", self._tick_index)

    def reset(self) -> None:
        """Stop the clock and restore every piece of state to its initial value."""

        with self._lock:
            self._state = ClockState.STOPPED
            self._generation += 1
            self._tick_index = 0
            self._elapsed = 0.0
            self._incident_detected = False
            self._latest_metrics.clear()
            self._metrics_queue = Queue(maxsize=self._metrics_queue.maxsize)
            for subsystem in self._subsystems:
                subsystem.reset()
            self._publish_initial()
            logger.info("Simulation reset (generation=%d)", self._generation)

    def shutdown(self) -> None:
        """Stop the clock and notify stream listeners."""

        logger.debug("Initiating kernel shutdown")
        self.pause()
        self._put_event({"type": "shutdown"})

    def run(self, generation: int | None = None) -> None:
        """Drive ticks at ``tick_duration`` intervals until paused or exhausted.

        Each tick receives the measured wall-clock time since the previous
        one, so an overrunning tick still feeds the spawn timer real time.
        """

        if generation is None:
            generation = self.start()

        logger.info("Kernel entering main loop with %d subsystems", len(self._subsystems))

        previous_start: float | None = None
        try:
            while self._should_continue(generation):
                tick_start = time.perf_counter()
                delta = self.tick_duration if previous_start is None else tick_start - previous_start
                previous_start = tick_start
                if not self.tick(delta, generation=generation):
                    break

                elapsed = time.perf_counter() - tick_start
                sleep_time = max(self.tick_duration - elapsed, 0)
                if sleep_time > 0:
                    time.sleep(sleep_time)
        finally:
            with self._lock:
                exhausted = self.max_ticks is not None and self._tick_index >= self.max_ticks
                if exhausted and generation == self._generation:
                    self.pause()
            logger.info("Kernel main loop exited at tick %d", self.current_tick())

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    def tick(self, delta: float | None = None, generation: int | None = None) -> bool:
        """Advance the simulation by one step.

        ``delta`` is the wall-clock time since the previous tick in seconds and
        only feeds the spawn timer; elapsed simulation time always grows by
        ``time_step``. Returns False, leaving all state untouched, when the
        clock is stopped or ``generation`` is stale.
        """

        step = self.tick_duration if delta is None else float(delta)

        with self._lock:
            if self._state is not ClockState.RUNNING:
                logger.debug("Ignoring tick while simulation is stopped")
                return False
            if generation is not None and generation != self._generation:
                logger.debug(
                    "Discarding stale tick (generation=%d, current=%d)", generation, self._generation
                )
                return False

            previous = self.context.snapshot()
            frame = TickFrame(
                tick=self._tick_index + 1,
                delta=step,
                vehicles=previous.vehicles,
                alerts=previous.alerts,
                environment=previous.environment,
            )

            metrics: dict[str, dict[str, Any]] = {}
            for subsystem in self._subsystems:
                snapshot = subsystem.run_tick(frame)
                if snapshot is not None:
                    metrics[subsystem.identifier] = snapshot

            self._tick_index += 1
            self._elapsed += self.time_step
            if frame.incident_raised:
                if not self._incident_detected:
                    logger.warning("Incident detected at tick %d", self._tick_index)
                self._incident_detected = True

            self._commit(frame)
            for identifier, snapshot in metrics.items():
                self.publish_metrics(identifier, snapshot)
            for alert in frame.new_alerts:
                self._put_event({"type": "alert", "tick": self._tick_index, "alert": alert})

        return True

    # ------------------------------------------------------------------
    # Operator actions and status
    # ------------------------------------------------------------------
    def acknowledge_incident(self) -> None:
        """Clear the incident banner; the alert log is left untouched."""

        with self._lock:
            self._incident_detected = False
            self.context.publish(replace(self.context.snapshot(), incident_detected=False))
            logger.info("Incident acknowledged")

    def snapshot(self) -> TunnelSnapshot:
        return self.context.snapshot()

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def subsystems(self) -> list[Subsystem]:
        return list(self._subsystems)

    def current_tick(self) -> int:
        with self._lock:
            return self._tick_index

    def is_running(self) -> bool:
        return self._state is ClockState.RUNNING

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------
    def publish_metrics(self, subsystem: str, metrics: dict[str, Any]) -> None:
        """Store metrics for a subsystem and push to the queue."""

        tick = self._tick_index
        self._latest_metrics[subsystem] = dict(metrics)

        event = {
            "type": "metrics",
            "tick": tick,
            "subsystem": subsystem,
            "metrics": dict(metrics),
        }
        self._put_event(event)

    def _put_event(self, event: dict[str, Any]) -> None:
        try:
            self._metrics_queue.put_nowait(event)
        except Full:
            logger.debug("Metrics queue is full; dropping %s event", event.get("type"))

    def get_latest_metrics(self, subsystem: str | None = None) -> dict[str, Any]:
        """Return latest metrics for requested subsystem or all subsystems."""

        with self._lock:
            if subsystem is None:
                return dict(self._latest_metrics)
            return dict(self._latest_metrics.get(subsystem, {}))

    def metrics_stream(self, timeout: float | None = None) -> Optional[dict[str, Any]]:
        """Retrieve the next metrics event from the queue."""

        try:
            return self._metrics_queue.get(timeout=timeout)
        except Empty:
            return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _publish_initial(self) -> None:
        frame = TickFrame(tick=0, delta=0.0)
        for subsystem in self._subsystems:
            subsystem.contribute(frame)
        self._commit(frame)

    def _commit(self, frame: TickFrame) -> None:
        self.context.publish(
            TunnelSnapshot(
                tick=self._tick_index,
                elapsed=self._elapsed,
                running=self._state is ClockState.RUNNING,
                vehicles=frame.vehicles,
                environment=frame.environment,
                ventilation_level=self.ventilation_level,
                alerts=frame.alerts,
                incident_detected=self._incident_detected,
            )
        )

    def _should_continue(self, generation: int) -> bool:
        with self._lock:
            if self._state is not ClockState.RUNNING or generation != self._generation:
                return False
            if self.max_ticks is None:
                return True
            return self._tick_index < self.max_ticks
