from __future__ import annotations

import random

import pytest

from tunnelwatch.subsystems.base import TickFrame
from tunnelwatch.subsystems.environment import (
    DEFAULT_SIGNALS,
    EnvironmentalSignal,
    EnvironmentMonitor,
    SignalSpec,
)


def test_defaults_match_initial_readings(rng):
    monitor = EnvironmentMonitor("EnvironmentMonitor", rng=rng)
    readings = monitor.readings()

    assert readings.air_quality == 85.0
    assert readings.temperature == 22.0
    assert readings.visibility == 95.0


@pytest.mark.parametrize("key", sorted(DEFAULT_SIGNALS))
def test_signals_stay_within_bounds_over_long_runs(key):
    spec = DEFAULT_SIGNALS[key]
    signal = EnvironmentalSignal(spec, random.Random(key))

    for _ in range(20_000):
        value = signal.tick()
        assert spec.lower <= value <= spec.upper


def test_step_is_bounded_by_half_delta(rng):
    spec = SignalSpec(initial=50.0, step=2.0, lower=0.0, upper=100.0)
    signal = EnvironmentalSignal(spec, rng)

    previous = signal.value
    for _ in range(500):
        current = signal.tick()
        assert abs(current - previous) <= 1.0
        previous = current


def test_large_steps_are_clamped(rng):
    spec = SignalSpec(initial=95.0, step=500.0, lower=80.0, upper=100.0)
    signal = EnvironmentalSignal(spec, rng)

    values = {signal.tick() for _ in range(200)}

    assert min(values) >= 80.0
    assert max(values) <= 100.0
    assert {80.0, 100.0} <= values


def test_inverted_bounds_are_rejected(rng):
    with pytest.raises(ValueError):
        EnvironmentalSignal(SignalSpec(initial=1.0, step=1.0, lower=10.0, upper=0.0), rng)


def test_monitor_tick_writes_frame_and_reset_restores_defaults(rng):
    monitor = EnvironmentMonitor("EnvironmentMonitor", rng=rng)
    frame = TickFrame(tick=1, delta=0.016)
    for _ in range(50):
        monitor.run_tick(frame)

    assert frame.environment == monitor.readings()

    monitor.reset()

    assert monitor.readings().air_quality == 85.0
    assert monitor.readings().temperature == 22.0
    assert monitor.readings().visibility == 95.0


def test_signal_overrides_from_config(rng):
    monitor = EnvironmentMonitor(
        "EnvironmentMonitor",
        config={"signals": {"visibility": {"initial": 90.0}}},
        rng=rng,
    )

    assert monitor.readings().visibility == 90.0
    assert monitor.signals["visibility"].spec.upper == 100.0
