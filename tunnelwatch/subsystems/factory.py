"""Factory for constructing pipeline subsystems from configuration."""

from __future__ import annotations

import random
from typing import Any

from tunnelwatch.subsystems.base import Subsystem
from tunnelwatch.subsystems.detection import IncidentDetector
from tunnelwatch.subsystems.environment import EnvironmentMonitor
from tunnelwatch.subsystems.traffic import TrafficManager

SUBSYSTEM_REGISTRY: dict[str, type[Subsystem]] = {
    "traffic": TrafficManager,
    "detection": IncidentDetector,
    "environment": EnvironmentMonitor,
}

# Detection must see post-motion positions, so traffic always runs first.
PIPELINE_ORDER: tuple[str, ...] = ("traffic", "detection", "environment")

DEFAULT_PIPELINE: dict[str, dict[str, Any]] = {
    stage: {"type": stage} for stage in PIPELINE_ORDER
}


def build_subsystems_from_config(
    config: dict[str, Any],
    rng: random.Random | None = None,
) -> list[Subsystem]:
    """Build the configured subsystems, sorted into pipeline order.

    The order of the ``subsystems`` mapping is irrelevant; entries of the
    same type keep their relative order.
    """

    subsystems_config = config.get("subsystems") or DEFAULT_PIPELINE
    staged: list[tuple[int, Subsystem]] = []

    for subsystem_id, subsystem_params in subsystems_config.items():
        subsystem_type = subsystem_params.get("type", subsystem_id)
        subsystem_cls = SUBSYSTEM_REGISTRY.get(subsystem_type)
        if subsystem_cls is None:
            raise KeyError(f"Unknown subsystem type: {subsystem_type}")

        params = {"identifier": subsystem_id, **subsystem_params}
        if subsystem_type == "detection" and "alert_log_size" in config:
            params.setdefault("alert_log_size", config["alert_log_size"])
        instance = subsystem_cls(name=subsystem_cls.__name__, config=params, rng=rng)
        staged.append((PIPELINE_ORDER.index(subsystem_type), instance))

    staged.sort(key=lambda entry: entry[0])
    return [instance for _, instance in staged]
