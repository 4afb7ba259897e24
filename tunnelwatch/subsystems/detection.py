"""Rule-based anomaly detection over the live vehicle population."""

from __future__ import annotations

import itertools
import logging
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from tunnelwatch.core.alerts import DEFAULT_CAPACITY, AlertLog
from tunnelwatch.core.models import Alert, Severity, Vehicle, zone_for_position
from tunnelwatch.subsystems.base import Subsystem, TickFrame

logger = logging.getLogger(__name__)

# Process-wide so alert ids stay unique across resets and detector instances.
_alert_sequence = itertools.count(1)


@dataclass(frozen=True)
class AnomalyRule:
    """A predicate over a vehicle plus the alert it produces on a match."""

    name: str
    severity: Severity
    predicate: Callable[[Vehicle], bool]
    describe: Callable[[Vehicle], str]

    def matches(self, vehicle: Vehicle) -> bool:
        return self.predicate(vehicle)


def stall_rule(speed_threshold: float = 0.2) -> AnomalyRule:
    return AnomalyRule(
        name="stall",
        severity=Severity.WARNING,
        predicate=lambda vehicle: vehicle.speed < speed_threshold,
        describe=lambda vehicle: (
            f"Slow/stopped {vehicle.type.value} detected in Lane {vehicle.lane + 1} "
            f"at {_round_half_up(vehicle.position)}%"
        ),
    )


def heat_rule(temperature_threshold: float = 30.0) -> AnomalyRule:
    return AnomalyRule(
        name="heat",
        severity=Severity.CRITICAL,
        predicate=lambda vehicle: vehicle.temperature > temperature_threshold,
        describe=lambda vehicle: (
            f"Hot spot detected: {vehicle.type.value} showing {_round_half_up(vehicle.temperature)}°C "
            f"in Lane {vehicle.lane + 1}"
        ),
    )


def default_rules(speed_threshold: float = 0.2, temperature_threshold: float = 30.0) -> list[AnomalyRule]:
    return [stall_rule(speed_threshold), heat_rule(temperature_threshold)]


class AnomalyDetector:
    """Evaluate anomaly rules against vehicles that have not been flagged yet.

    A vehicle carries a single ``detected`` flag shared by every rule: the
    first rule that ever matches raises the only alert that vehicle will
    produce. A stalled vehicle that later overheats is therefore never
    reported as a hot spot.
    """

    def __init__(
        self,
        rules: Sequence[AnomalyRule] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.rules = list(rules) if rules is not None else default_rules()
        self._clock = clock

    def scan(self, vehicles: Iterable[Vehicle]) -> tuple[tuple[Vehicle, ...], list[Alert]]:
        """Return the vehicles with updated flags and the alerts raised, oldest first."""

        scanned: list[Vehicle] = []
        alerts: list[Alert] = []
        for vehicle in vehicles:
            if not vehicle.detected:
                for rule in self.rules:
                    if rule.matches(vehicle):
                        vehicle = replace(vehicle, detected=True)
                        alerts.append(self._build_alert(rule, vehicle))
                        break
            scanned.append(vehicle)
        return tuple(scanned), alerts

    def _build_alert(self, rule: AnomalyRule, vehicle: Vehicle) -> Alert:
        now = self._clock()
        sequence = next(_alert_sequence)
        return Alert(
            id=f"AI-{int(now.timestamp() * 1000)}-{sequence}",
            timestamp=now.strftime("%H:%M:%S"),
            severity=rule.severity,
            message=rule.describe(vehicle),
            sequence=sequence,
            vehicle_id=vehicle.id,
            zone=zone_for_position(vehicle.position),
        )


class IncidentDetector(Subsystem):
    """Run the anomaly detector each tick and keep the rolling alert log."""

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(name=name, config=config, rng=rng)
        cfg = self._config
        self.detector = AnomalyDetector(
            rules=default_rules(
                speed_threshold=float(cfg.get("stall_speed", 0.2)),
                temperature_threshold=float(cfg.get("heat_threshold", 30.0)),
            )
        )
        self.alert_log = AlertLog(int(cfg.get("alert_log_size", DEFAULT_CAPACITY)))
        self._raised_this_tick = 0
        self._raised_total = 0
        self._counts = {severity.value: 0 for severity in Severity}

    def execute_tick(self, frame: TickFrame) -> None:
        vehicles, alerts = self.detector.scan(frame.vehicles)
        frame.vehicles = vehicles
        for alert in alerts:
            self.alert_log.append(alert)
            self._counts[alert.severity.value] += 1
            level = logging.WARNING if alert.severity is Severity.CRITICAL else logging.INFO
            logger.log(level, "[%s] %s (%s)", alert.severity.value.upper(), alert.message, alert.zone)

        self._raised_this_tick = len(alerts)
        self._raised_total += len(alerts)
        frame.new_alerts.extend(alerts)
        if alerts:
            frame.incident_raised = True
        frame.alerts = self.alert_log.all()

    def reset(self) -> None:
        self.alert_log.clear()
        self._raised_this_tick = 0
        self._raised_total = 0
        self._counts = {severity.value: 0 for severity in Severity}

    def contribute(self, frame: TickFrame) -> None:
        frame.alerts = self.alert_log.all()

    def collect_metrics(self) -> dict[str, Any]:
        return {
            "alerts_this_tick": self._raised_this_tick,
            "alerts_total": self._raised_total,
            "warnings_total": self._counts[Severity.WARNING.value],
            "critical_total": self._counts[Severity.CRITICAL.value],
            "log_size": len(self.alert_log),
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
