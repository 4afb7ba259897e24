"""Traffic subsystem spawning vehicles and integrating their motion."""

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import replace
from typing import Any, Iterable, Sequence

from tunnelwatch.core.models import LANE_COUNT, TUNNEL_LENGTH, Vehicle, VehicleType
from tunnelwatch.subsystems.base import Subsystem, TickFrame

logger = logging.getLogger(__name__)

# Four cars for every truck; emergency vehicles are never generated here.
DEFAULT_TYPE_POOL: tuple[VehicleType, ...] = (
    VehicleType.CAR,
    VehicleType.CAR,
    VehicleType.CAR,
    VehicleType.TRUCK,
    VehicleType.CAR,
)
DEFAULT_SPEED_RANGES: dict[VehicleType, tuple[float, float]] = {
    VehicleType.CAR: (0.5, 0.8),
    VehicleType.TRUCK: (0.3, 0.5),
}
VEHICLE_COLORS = ("#3b82f6", "#ef4444", "#10b981", "#f59e0b", "#8b5cf6")


class VehicleGenerator:
    """Create vehicles with randomised type, lane, speed, colour and temperature."""

    def __init__(
        self,
        rng: random.Random,
        lanes: int = LANE_COUNT,
        type_pool: Sequence[VehicleType] = DEFAULT_TYPE_POOL,
        speed_ranges: dict[VehicleType, tuple[float, float]] | None = None,
        temperature_range: tuple[float, float] = (20.0, 35.0),
    ) -> None:
        self._rng = rng
        self._lanes = lanes
        self._type_pool = tuple(type_pool)
        self._speed_ranges = dict(speed_ranges or DEFAULT_SPEED_RANGES)
        self._temperature_range = temperature_range
        self._ids = itertools.count()

    def spawn(self) -> Vehicle:
        vehicle_type = self._type_pool[int(self._rng.random() * len(self._type_pool))]
        low, high = self._speed_ranges.get(vehicle_type, self._speed_ranges[VehicleType.CAR])
        temp_low, temp_high = self._temperature_range
        return Vehicle(
            id=f"V-{next(self._ids)}",
            lane=int(self._rng.random() * self._lanes),
            type=vehicle_type,
            speed=low + self._rng.random() * (high - low),
            temperature=temp_low + self._rng.random() * (temp_high - temp_low),
            color=VEHICLE_COLORS[int(self._rng.random() * len(VEHICLE_COLORS))],
        )

    def reset(self) -> None:
        self._ids = itertools.count()


class SpawnTimer:
    """Gate spawning on a randomised interval, redrawn after every spawn."""

    def __init__(self, rng: random.Random, interval_ms: tuple[float, float] = (2000.0, 4000.0)) -> None:
        self._rng = rng
        self._interval_ms = interval_ms
        self._since_last_ms = 0.0
        self._threshold_ms = self._draw()

    def _draw(self) -> float:
        low, high = self._interval_ms
        return self._rng.uniform(low, high)

    @property
    def threshold_ms(self) -> float:
        return self._threshold_ms

    def advance(self, delta_seconds: float) -> bool:
        """Accumulate ``delta_seconds``; return True when a vehicle is due."""

        self._since_last_ms += delta_seconds * 1000.0
        if self._since_last_ms <= self._threshold_ms:
            return False
        self._since_last_ms = 0.0
        self._threshold_ms = self._draw()
        return True

    def reset(self) -> None:
        self._since_last_ms = 0.0
        self._threshold_ms = self._draw()


class MotionIntegrator:
    """Advance vehicles by their speed and drop those leaving the tunnel."""

    def __init__(
        self,
        rng: random.Random,
        slowdown_probability: float = 0.005,
        slowdown_factor: float = 0.3,
        tunnel_length: float = TUNNEL_LENGTH,
    ) -> None:
        self._rng = rng
        self._slowdown_probability = slowdown_probability
        self._slowdown_factor = slowdown_factor
        self._tunnel_length = tunnel_length
        self.slowdowns = 0
        self.exited = 0

    def advance(self, vehicles: Iterable[Vehicle]) -> tuple[Vehicle, ...]:
        self.slowdowns = 0
        self.exited = 0
        updated: list[Vehicle] = []
        for vehicle in vehicles:
            speed = vehicle.speed
            # Draw for every vehicle so the random stream does not depend on the
            # probability setting.
            if self._rng.random() < self._slowdown_probability:
                speed *= self._slowdown_factor
                self.slowdowns += 1
            position = vehicle.position + vehicle.speed
            if position >= self._tunnel_length:
                self.exited += 1
                continue
            updated.append(replace(vehicle, position=position, speed=speed))
        return tuple(updated)


class TrafficManager(Subsystem):
    """Maintain the live vehicle population inside the tunnel."""

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(name=name, config=config, rng=rng)
        cfg = self._config
        self._lanes = int(cfg.get("lanes", LANE_COUNT))
        self.generator = VehicleGenerator(
            self._rng,
            lanes=self._lanes,
            type_pool=_type_pool_from_weights(cfg.get("type_weights")),
            speed_ranges=_speed_ranges_from_config(cfg.get("speed_ranges")),
            temperature_range=tuple(cfg.get("temperature_range", (20.0, 35.0))),
        )
        self.spawn_timer = SpawnTimer(
            self._rng,
            interval_ms=tuple(cfg.get("spawn_interval_ms", (2000.0, 4000.0))),
        )
        self.integrator = MotionIntegrator(
            self._rng,
            slowdown_probability=float(cfg.get("slowdown_probability", 0.005)),
            slowdown_factor=float(cfg.get("slowdown_factor", 0.3)),
        )
        self._spawned_total = 0
        self._spawned_this_tick = 0
        self._exited_total = 0
        self._vehicles = 0
        self._avg_speed = 0.0

    def on_start(self) -> None:
        logger.info("Traffic subsystem initialised (lanes=%d)", self._lanes)

    def execute_tick(self, frame: TickFrame) -> None:
        vehicles = frame.vehicles
        self._spawned_this_tick = 0
        if self.spawn_timer.advance(frame.delta):
            spawned = self.generator.spawn()
            vehicles = vehicles + (spawned,)
            self._spawned_this_tick = 1
            self._spawned_total += 1
            logger.debug(
                "Spawned %s %s in lane %d (speed=%.2f temp=%.1f)",
                spawned.type.value,
                spawned.id,
                spawned.lane + 1,
                spawned.speed,
                spawned.temperature,
            )

        frame.vehicles = self.integrator.advance(vehicles)
        self._exited_total += self.integrator.exited
        self._vehicles = len(frame.vehicles)
        self._avg_speed = (
            sum(vehicle.speed for vehicle in frame.vehicles) / self._vehicles if self._vehicles else 0.0
        )

        logger.debug(
            "Traffic tick: vehicles=%d spawned=%d exited=%d slowdowns=%d",
            self._vehicles,
            self._spawned_this_tick,
            self.integrator.exited,
            self.integrator.slowdowns,
        )

    def reset(self) -> None:
        self.generator.reset()
        self.spawn_timer.reset()
        self._spawned_total = 0
        self._spawned_this_tick = 0
        self._exited_total = 0
        self._vehicles = 0
        self._avg_speed = 0.0

    def contribute(self, frame: TickFrame) -> None:
        frame.vehicles = ()

    def collect_metrics(self) -> dict[str, Any]:
        return {
            "vehicles": self._vehicles,
            "spawned_total": self._spawned_total,
            "spawned_this_tick": self._spawned_this_tick,
            "exited_total": self._exited_total,
            "slowdowns": self.integrator.slowdowns,
            "avg_speed": round(self._avg_speed, 3),
        }


def _type_pool_from_weights(weights: dict[str, int] | None) -> tuple[VehicleType, ...]:
    if not weights:
        return DEFAULT_TYPE_POOL
    pool: list[VehicleType] = []
    for type_name, weight in weights.items():
        pool.extend([VehicleType(type_name)] * int(weight))
    if not pool:
        msg = "Vehicle type weights must contain at least one positive weight"
        raise ValueError(msg)
    return tuple(pool)


def _speed_ranges_from_config(
    ranges: dict[str, Sequence[float]] | None,
) -> dict[VehicleType, tuple[float, float]]:
    merged = dict(DEFAULT_SPEED_RANGES)
    for type_name, (low, high) in (ranges or {}).items():
        merged[VehicleType(type_name)] = (float(low), float(high))
    return merged
