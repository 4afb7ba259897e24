"""Camera selection state kept by the front ends, outside the simulation core."""

from __future__ import annotations

from tunnelwatch.core.models import CameraZone, TunnelSnapshot, Vehicle, get_camera_zone


class CameraView:
    """Track which camera feed is highlighted and which vehicles it shows.

    Selecting a zone never touches simulation or detection state; it only
    changes how a snapshot is read.
    """

    def __init__(self, zone_index: int = 1) -> None:
        self._zone = get_camera_zone(zone_index)

    @property
    def zone(self) -> CameraZone:
        return self._zone

    def select_zone(self, zone_index: int) -> CameraZone:
        """Highlight the zone at ``zone_index`` (1-4); raises ValueError otherwise."""

        self._zone = get_camera_zone(zone_index)
        return self._zone

    def in_view(self, vehicle: Vehicle) -> bool:
        return self._zone.contains(vehicle.position)

    def vehicles_in_view(self, snapshot: TunnelSnapshot) -> list[Vehicle]:
        return [vehicle for vehicle in snapshot.vehicles if self.in_view(vehicle)]
