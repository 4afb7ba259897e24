from __future__ import annotations

import random
import time
from collections import Counter

import pytest

from tunnelwatch.core.kernel import ClockState, TunnelKernel
from tunnelwatch.core.models import EnvironmentReadings
from tunnelwatch.subsystems.environment import DEFAULT_SIGNALS


def _drain(kernel: TunnelKernel) -> list[dict]:
    events = []
    event = kernel.metrics_stream(timeout=0)
    while event is not None:
        events.append(event)
        event = kernel.metrics_stream(timeout=0)
    return events


def test_bootstrap_publishes_initial_snapshot(kernel):
    snapshot = kernel.snapshot()

    assert kernel.state is ClockState.STOPPED
    assert snapshot.vehicle_count == 0
    assert snapshot.elapsed == 0.0
    assert snapshot.environment == EnvironmentReadings(85.0, 22.0, 95.0)
    assert snapshot.running is False
    assert [subsystem.identifier for subsystem in kernel.subsystems] == [
        "traffic",
        "detection",
        "environment",
    ]


def test_tick_is_ignored_while_stopped(kernel):
    before = kernel.snapshot()

    assert kernel.tick(1.0) is False
    assert kernel.snapshot() is before


def test_elapsed_time_is_decoupled_from_delta(kernel):
    kernel.start()

    kernel.tick(5.0)
    kernel.tick(0.001)

    snapshot = kernel.snapshot()
    assert snapshot.tick == 2
    assert snapshot.elapsed == pytest.approx(0.2)
    assert snapshot.running is True


def test_invariants_hold_over_a_long_run(kernel):
    kernel.start()
    previous = {vehicle.id: vehicle for vehicle in kernel.snapshot().vehicles}
    alert_ids_per_vehicle: Counter[str] = Counter()
    seen_alerts: set[str] = set()

    for _ in range(3000):
        assert kernel.tick(0.1) is True
        snapshot = kernel.snapshot()

        for vehicle in snapshot.vehicles:
            assert 0.0 <= vehicle.position < 100.0
            if vehicle.id in previous:
                assert vehicle.position >= previous[vehicle.id].position
                assert vehicle.speed <= previous[vehicle.id].speed
                if previous[vehicle.id].detected:
                    assert vehicle.detected

        assert len(snapshot.alerts) <= 5
        sequences = [alert.sequence for alert in snapshot.alerts]
        assert sequences == sorted(sequences, reverse=True)
        for alert in snapshot.alerts:
            if alert.id not in seen_alerts:
                seen_alerts.add(alert.id)
                alert_ids_per_vehicle[alert.vehicle_id] += 1

        for key, spec in DEFAULT_SIGNALS.items():
            value = getattr(snapshot.environment, key)
            assert spec.lower <= value <= spec.upper

        previous = {vehicle.id: vehicle for vehicle in snapshot.vehicles}

    assert seen_alerts, "expected the busy scenario to raise alerts"
    assert max(alert_ids_per_vehicle.values()) == 1


def test_alert_events_are_streamed(kernel):
    kernel.start()
    for _ in range(500):
        kernel.tick(0.1)

    events = _drain(kernel)
    alert_events = [event for event in events if event["type"] == "alert"]
    metric_sources = {event["subsystem"] for event in events if event["type"] == "metrics"}

    assert metric_sources == {"traffic", "detection", "environment"}
    assert alert_events
    assert len({event["alert"].id for event in alert_events}) == len(alert_events)


def test_pause_freezes_state(kernel):
    kernel.start()
    for _ in range(30):
        kernel.tick(0.1)
    kernel.pause()
    frozen = kernel.snapshot()

    assert kernel.tick(0.1) is False
    assert kernel.tick(0.1) is False

    snapshot = kernel.snapshot()
    assert snapshot is frozen
    assert snapshot.vehicle_count == frozen.vehicle_count
    assert snapshot.elapsed == frozen.elapsed
    assert snapshot.environment == frozen.environment
    assert snapshot.running is False


def test_stale_generation_is_discarded(kernel):
    old_generation = kernel.start()
    kernel.pause()
    new_generation = kernel.start()

    assert new_generation != old_generation
    assert kernel.tick(0.1, generation=old_generation) is False
    assert kernel.tick(0.1, generation=new_generation) is True


def test_reset_wins_over_pending_tick(kernel):
    generation = kernel.start()
    kernel.tick(0.1, generation=generation)

    kernel.reset()
    kernel.start()

    assert kernel.tick(0.1, generation=generation) is False
    assert kernel.snapshot().tick == 0


def test_reset_restores_initial_state(kernel):
    kernel.start()
    for _ in range(400):
        kernel.tick(0.1)
    assert kernel.snapshot().vehicle_count > 0

    kernel.reset()
    snapshot = kernel.snapshot()

    assert kernel.state is ClockState.STOPPED
    assert snapshot.vehicles == ()
    assert snapshot.vehicle_count == 0
    assert snapshot.elapsed == 0.0
    assert snapshot.tick == 0
    assert snapshot.environment == EnvironmentReadings(85.0, 22.0, 95.0)
    assert snapshot.alerts == ()
    assert snapshot.incident_detected is False
    assert snapshot.running is False
    assert kernel.metrics_stream(timeout=0) is None


def test_vehicle_ids_restart_after_reset(busy_config):
    busy_config["subsystems"]["traffic"]["spawn_interval_ms"] = [1, 1]
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()
    for _ in range(3):
        kernel.tick(0.1)

    kernel.reset()
    kernel.start()
    kernel.tick(0.1)

    assert [vehicle.id for vehicle in kernel.snapshot().vehicles] == ["V-0"]


def test_incident_flag_persists_until_acknowledged(busy_config):
    busy_config["subsystems"]["detection"]["heat_threshold"] = 0.0
    busy_config["subsystems"]["traffic"]["spawn_interval_ms"] = [1, 1]
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()

    kernel.tick(0.1)
    assert kernel.snapshot().incident_detected is True
    alerts = kernel.snapshot().alerts

    kernel.acknowledge_incident()

    snapshot = kernel.snapshot()
    assert snapshot.incident_detected is False
    assert snapshot.alerts == alerts

    kernel.tick(0.1)
    assert kernel.snapshot().incident_detected is True


def test_incident_flag_not_cleared_by_quiet_ticks(busy_config):
    busy_config["subsystems"]["detection"]["heat_threshold"] = 0.0
    busy_config["subsystems"]["traffic"]["spawn_interval_ms"] = [50, 50]
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()
    kernel.tick(0.1)
    assert kernel.snapshot().incident_detected is True

    # Zero-length frames never reach the spawn threshold, so no new alerts.
    for _ in range(5):
        kernel.tick(0.0)

    assert kernel.snapshot().incident_detected is True
    assert len(kernel.snapshot().alerts) == 1


def test_seeded_kernels_are_reproducible(busy_config):
    first = TunnelKernel(busy_config, rng=random.Random(77))
    second = TunnelKernel(busy_config, rng=random.Random(77))
    for kernel in (first, second):
        kernel.start()
        for _ in range(200):
            kernel.tick(0.1)

    assert first.snapshot().vehicles == second.snapshot().vehicles
    assert first.snapshot().environment == second.snapshot().environment


def test_unknown_subsystem_type_is_rejected():
    kernel = TunnelKernel({"subsystems": {"radar": {"type": "radar"}}})

    with pytest.raises(KeyError):
        kernel.bootstrap()


def test_run_stops_after_max_ticks(busy_config):
    kernel = TunnelKernel(busy_config, tick_duration=0.0, max_ticks=25, rng=random.Random(1))

    kernel.run()

    assert kernel.current_tick() == 25
    assert kernel.is_running() is False
    assert kernel.snapshot().running is False


def test_shutdown_emits_marker(kernel):
    kernel.start()
    kernel.tick(0.1)
    kernel.shutdown()

    events = _drain(kernel)

    assert events[-1] == {"type": "shutdown"}
    assert kernel.is_running() is False


def test_custom_pipeline_can_be_registered():
    from tunnelwatch.subsystems.environment import EnvironmentMonitor

    kernel = TunnelKernel({}, rng=random.Random(2))
    kernel.register_subsystems([EnvironmentMonitor("EnvironmentMonitor", rng=random.Random(2))])
    kernel.bootstrap()
    kernel.start()
    kernel.tick(10.0)

    assert [subsystem.identifier for subsystem in kernel.subsystems] == ["environmentmonitor"]
    assert kernel.snapshot().vehicles == ()
    assert set(kernel.get_latest_metrics()) == {"environmentmonitor"}
    assert set(kernel.get_latest_metrics("environmentmonitor")) == {
        "air_quality",
        "temperature",
        "visibility",
    }


def test_subsystems_cannot_be_registered_while_running(kernel):
    kernel.start()

    with pytest.raises(RuntimeError):
        kernel.register_subsystems([])


def test_bootstrap_is_rejected_while_running(busy_config):
    busy_config["subsystems"]["detection"]["heat_threshold"] = 0.0
    busy_config["subsystems"]["traffic"]["spawn_interval_ms"] = [1, 1]
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()
    for _ in range(3):
        kernel.tick(0.1)
    before = kernel.snapshot()

    with pytest.raises(RuntimeError):
        kernel.bootstrap()

    assert kernel.snapshot() == before
    assert len(before.alerts) == 3


def test_bootstrap_after_pause_keeps_the_run(busy_config):
    busy_config["subsystems"]["traffic"]["spawn_interval_ms"] = [1, 1]
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()
    for _ in range(3):
        kernel.tick(0.1)
    kernel.pause()
    before = kernel.snapshot()

    kernel.bootstrap()

    assert kernel.snapshot() == before
    kernel.start()
    kernel.tick(0.1)
    assert [vehicle.id for vehicle in kernel.snapshot().vehicles] == ["V-0", "V-1", "V-2", "V-3"]


def test_pipeline_order_does_not_depend_on_config_order(busy_config):
    busy_config["subsystems"] = {
        "detection": {"type": "detection", "heat_threshold": 0.0},
        "environment": {"type": "environment"},
        "traffic": {"type": "traffic", "spawn_interval_ms": [1, 1]},
    }
    kernel = TunnelKernel(busy_config, rng=random.Random(5))
    kernel.start()

    kernel.tick(0.1)

    assert [subsystem.identifier for subsystem in kernel.subsystems] == [
        "traffic",
        "detection",
        "environment",
    ]
    snapshot = kernel.snapshot()
    assert [vehicle.detected for vehicle in snapshot.vehicles] == [True]
    assert len(snapshot.alerts) == 1
    assert snapshot.alerts[0].zone == "CAM-01"


def test_run_feeds_measured_time_to_each_tick():
    from tunnelwatch.subsystems.base import Subsystem

    class SlowStage(Subsystem):
        def __init__(self) -> None:
            super().__init__("SlowStage")
            self.deltas: list[float] = []

        def execute_tick(self, frame) -> None:
            self.deltas.append(frame.delta)
            time.sleep(0.03)

    stage = SlowStage()
    kernel = TunnelKernel({}, tick_duration=0.01, max_ticks=4, rng=random.Random(3))
    kernel.register_subsystems([stage])

    kernel.run()

    assert stage.deltas[0] == pytest.approx(0.01)
    assert len(stage.deltas) == 4
    assert all(delta >= 0.03 for delta in stage.deltas[1:])
