"""Value types shared by the tunnel simulation core and its front ends."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

TUNNEL_LENGTH = 100.0
LANE_COUNT = 3


class VehicleType(str, Enum):
    CAR = "car"
    TRUCK = "truck"
    EMERGENCY = "emergency"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Vehicle:
    """A simulated tunnel occupant.

    Instances are immutable; the motion and detection stages return updated
    copies via :func:`dataclasses.replace`.
    """

    id: str
    lane: int
    type: VehicleType
    speed: float
    temperature: float
    color: str
    position: float = 0.0
    detected: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass(frozen=True)
class Alert:
    """Operator-facing record of a detected anomaly."""

    id: str
    timestamp: str
    severity: Severity
    message: str
    sequence: int
    vehicle_id: str | None = None
    zone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass(frozen=True)
class CameraZone:
    """One monitoring camera covering the band ``[lower, upper)`` of the tunnel."""

    index: int
    id: str
    lower: float
    upper: float
    marker: float
    active: bool = True

    def contains(self, position: float) -> bool:
        return self.lower <= position < self.upper


CAMERA_ZONES: tuple[CameraZone, ...] = (
    CameraZone(index=1, id="CAM-01", lower=0.0, upper=25.0, marker=20.0),
    CameraZone(index=2, id="CAM-02", lower=25.0, upper=50.0, marker=40.0),
    CameraZone(index=3, id="CAM-03", lower=50.0, upper=75.0, marker=60.0),
    CameraZone(index=4, id="CAM-04", lower=75.0, upper=TUNNEL_LENGTH, marker=80.0),
)


def zone_for_position(position: float) -> str:
    """Return the id of the camera zone covering ``position``."""

    for zone in CAMERA_ZONES[:-1]:
        if position < zone.upper:
            return zone.id
    return CAMERA_ZONES[-1].id


def get_camera_zone(index: int) -> CameraZone:
    """Look up a camera zone by its 1-based index."""

    valid = isinstance(index, int) and not isinstance(index, bool)
    if not valid or not 1 <= index <= len(CAMERA_ZONES):
        msg = f"Camera zone index must be between 1 and {len(CAMERA_ZONES)}, got {index!r}"
        raise ValueError(msg)
    return CAMERA_ZONES[index - 1]


@dataclass(frozen=True)
class EnvironmentReadings:
    air_quality: float = 85.0
    temperature: float = 22.0
    visibility: float = 95.0


@dataclass(frozen=True)
class TunnelSnapshot:
    """Read-only view of the simulation after a completed tick."""

    tick: int = 0
    elapsed: float = 0.0
    running: bool = False
    vehicles: tuple[Vehicle, ...] = ()
    environment: EnvironmentReadings = field(default_factory=EnvironmentReadings)
    ventilation_level: float = 60.0
    alerts: tuple[Alert, ...] = ()
    incident_detected: bool = False

    @property
    def vehicle_count(self) -> int:
        return len(self.vehicles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick": self.tick,
            "elapsed": round(self.elapsed, 3),
            "running": self.running,
            "vehicle_count": self.vehicle_count,
            "vehicles": [vehicle.to_dict() for vehicle in self.vehicles],
            "air_quality": self.environment.air_quality,
            "temperature": self.environment.temperature,
            "visibility": self.environment.visibility,
            "ventilation_level": self.ventilation_level,
            "alerts": [alert.to_dict() for alert in self.alerts],
            "incident_detected": self.incident_detected,
        }
