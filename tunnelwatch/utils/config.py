"""Configuration helpers for the tunnel simulation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "data" / "scenario_default.json"

DEFAULT_SETTINGS: dict[str, Any] = {
    "tick_duration": 1 / 60,
    "time_step": 0.1,
    "seed": None,
    "alert_log_size": 5,
    "metrics_buffer": 256,
    "ventilation_level": 60.0,
    "report_ticks": 600,
}


def load_simulation_config(path: Path) -> dict[str, Any]:
    """Load a scenario from a JSON file, filling in top-level defaults."""

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        msg = f"Simulation configuration must be a JSON object, got {type(data)!r}"
        raise TypeError(msg)

    subsystems = data.get("subsystems", {})
    if not isinstance(subsystems, dict):
        msg = f"'subsystems' must be a JSON object keyed by subsystem id, got {type(subsystems)!r}"
        raise TypeError(msg)

    return {**DEFAULT_SETTINGS, **data}
