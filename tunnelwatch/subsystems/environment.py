"""Environmental sensor subsystem producing bounded random-walk readings."""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass
from typing import Any

from tunnelwatch.core.models import EnvironmentReadings
from tunnelwatch.subsystems.base import Subsystem, TickFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalSpec:
    initial: float
    step: float
    lower: float
    upper: float


DEFAULT_SIGNALS: dict[str, SignalSpec] = {
    "air_quality": SignalSpec(initial=85.0, step=2.0, lower=70.0, upper=100.0),
    "temperature": SignalSpec(initial=22.0, step=0.5, lower=18.0, upper=28.0),
    "visibility": SignalSpec(initial=95.0, step=1.0, lower=80.0, upper=100.0),
}


class EnvironmentalSignal:
    """A single sensor value that wanders by at most ``step / 2`` per tick."""

    def __init__(self, spec: SignalSpec, rng: random.Random) -> None:
        if spec.lower > spec.upper:
            msg = f"Signal bounds are inverted: [{spec.lower}, {spec.upper}]"
            raise ValueError(msg)
        self.spec = spec
        self._rng = rng
        self.value = _clamp(spec.initial, spec.lower, spec.upper)

    def tick(self) -> float:
        drift = self._rng.uniform(-self.spec.step, self.spec.step) / 2
        self.value = _clamp(self.value + drift, self.spec.lower, self.spec.upper)
        return self.value

    def reset(self) -> None:
        self.value = _clamp(self.spec.initial, self.spec.lower, self.spec.upper)


class EnvironmentMonitor(Subsystem):
    """Track air quality, temperature and visibility inside the tunnel."""

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(name=name, config=config, rng=rng)
        overrides = self._config.get("signals", {})
        self.signals: dict[str, EnvironmentalSignal] = {}
        for key, default in DEFAULT_SIGNALS.items():
            params = {**asdict(default), **overrides.get(key, {})}
            self.signals[key] = EnvironmentalSignal(SignalSpec(**params), self._rng)

    def on_start(self) -> None:
        logger.info(
            "Environment subsystem initialised (%s)",
            ", ".join(f"{key}={signal.value:.1f}" for key, signal in self.signals.items()),
        )

    def execute_tick(self, frame: TickFrame) -> None:
        for signal in self.signals.values():
            signal.tick()
        frame.environment = self.readings()
        logger.debug(
            "Environment tick: air_quality=%.1f temperature=%.2f visibility=%.1f",
            frame.environment.air_quality,
            frame.environment.temperature,
            frame.environment.visibility,
        )

    def readings(self) -> EnvironmentReadings:
        return EnvironmentReadings(
            air_quality=self.signals["air_quality"].value,
            temperature=self.signals["temperature"].value,
            visibility=self.signals["visibility"].value,
        )

    def reset(self) -> None:
        for signal in self.signals.values():
            signal.reset()

    def contribute(self, frame: TickFrame) -> None:
        frame.environment = self.readings()

    def collect_metrics(self) -> dict[str, Any]:
        return {key: round(signal.value, 2) for key, signal in self.signals.items()}


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
