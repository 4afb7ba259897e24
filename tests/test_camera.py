from __future__ import annotations

import pytest

from tunnelwatch.core.models import TunnelSnapshot
from tunnelwatch.viz.camera import CameraView


def test_defaults_to_first_camera():
    assert CameraView().zone.id == "CAM-01"


def test_select_zone_changes_highlight():
    camera = CameraView()

    zone = camera.select_zone(3)

    assert zone.id == "CAM-03"
    assert camera.zone is zone


@pytest.mark.parametrize("index", [0, 5, 42])
def test_out_of_range_selection_is_rejected(index):
    camera = CameraView(zone_index=2)

    with pytest.raises(ValueError):
        camera.select_zone(index)

    assert camera.zone.id == "CAM-02"


def test_vehicles_in_view_uses_half_open_band(make_vehicle):
    inside = make_vehicle(position=25.0)
    edge = make_vehicle(position=50.0)
    before = make_vehicle(position=24.9)
    snapshot = TunnelSnapshot(vehicles=(inside, edge, before))
    camera = CameraView(zone_index=2)

    assert camera.vehicles_in_view(snapshot) == [inside]


def test_selection_does_not_touch_snapshot(make_vehicle):
    snapshot = TunnelSnapshot(vehicles=(make_vehicle(position=80.0),))
    camera = CameraView()

    camera.select_zone(4)

    assert snapshot.vehicles[0].position == 80.0
    assert len(camera.vehicles_in_view(snapshot)) == 1
