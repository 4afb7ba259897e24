"""Base implementation for the stages of the per-tick pipeline."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

from tunnelwatch.core.models import Alert, EnvironmentReadings, Vehicle

logger = logging.getLogger(__name__)


@dataclass
class TickFrame:
    """Working state of the tick being built.

    The kernel seeds a frame from the previous snapshot, hands it to every
    subsystem in pipeline order and commits it as a new immutable snapshot.
    """

    tick: int
    delta: float
    vehicles: tuple[Vehicle, ...] = ()
    alerts: tuple[Alert, ...] = ()
    new_alerts: list[Alert] = field(default_factory=list)
    environment: EnvironmentReadings = field(default_factory=EnvironmentReadings)
    incident_raised: bool = False


class Subsystem:
    """Base class encapsulating shared subsystem behaviour."""

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.name = name
        self._config = config or {}
        self._rng = rng if rng is not None else random.Random(self._config.get("seed"))
        self._identifier = self._config.get("identifier", name.lower())

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------
    def run_tick(self, frame: TickFrame) -> dict[str, Any] | None:
        """Execute one tick and return the metrics snapshot for it."""

        try:
            self.before_tick(frame)
            self.execute_tick(frame)
            self.after_tick(frame)
        except Exception:
            logger.exception("Subsystem %s encountered an unexpected error", self.name)
            raise
        return self.collect_metrics()

    # ------------------------------------------------------------------
    # Template methods for subclasses
    # ------------------------------------------------------------------
    def on_start(self) -> None:
        """Hook executed when the kernel transitions to running."""

    def before_tick(self, frame: TickFrame) -> None:
        """Hook executed before each tick."""

    def execute_tick(self, frame: TickFrame) -> None:
        """Perform work for the current tick; must be implemented."""

        raise NotImplementedError("Subsystem subclasses must implement execute_tick()")

    def after_tick(self, frame: TickFrame) -> None:
        """Hook executed after each tick but before the frame is committed."""

    def reset(self) -> None:
        """Restore the initial state; called on simulation reset."""

    def contribute(self, frame: TickFrame) -> None:
        """Write this subsystem's current state into a frame outside of a tick."""

    def collect_metrics(self) -> dict[str, Any] | None:
        """Return metrics snapshot for this tick."""

        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @property
    def identifier(self) -> str:
        return self._identifier
