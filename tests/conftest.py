"""Shared fixtures for the tunnel simulation tests."""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Callable

import pytest

from tunnelwatch.core.kernel import TunnelKernel
from tunnelwatch.core.models import Vehicle, VehicleType


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2024, 5, 17, 14, 30, 5)


@pytest.fixture
def make_vehicle() -> Callable[..., Vehicle]:
    counter = iter(range(10_000))

    def _make(**overrides: Any) -> Vehicle:
        params: dict[str, Any] = {
            "id": f"T-{next(counter)}",
            "lane": 0,
            "type": VehicleType.CAR,
            "speed": 0.6,
            "temperature": 25.0,
            "color": "#3b82f6",
            "position": 0.0,
        }
        params.update(overrides)
        return Vehicle(**params)

    return _make


@pytest.fixture
def busy_config() -> dict[str, Any]:
    """A scenario that spawns often and produces plenty of anomalies."""

    return {
        "tick_duration": 0.001,
        "time_step": 0.1,
        "alert_log_size": 5,
        "metrics_buffer": 100_000,
        "subsystems": {
            "traffic": {
                "type": "traffic",
                "spawn_interval_ms": [200, 400],
                "slowdown_probability": 0.05,
            },
            "detection": {"type": "detection"},
            "environment": {"type": "environment"},
        },
    }


@pytest.fixture
def kernel(busy_config: dict[str, Any]) -> TunnelKernel:
    kernel = TunnelKernel(busy_config, rng=random.Random(99))
    kernel.bootstrap()
    return kernel
