import pytest

from scancore.annotate.models import PlaneClassification
from scancore.scene.projector import Camera, SceneProjector
from scancore.scene.room import estimate_room_summary, summarize_document
from tests.utils_scene import forward_camera_frame, horizontal, wall


def _room():
    return [
        wall("A", center=[0.0, 1.3, -2.0], normal=[0.0, 0.0, 1.0], width=4.0, height=2.4),
        wall("B", center=[2.0, 1.3, -0.5], normal=[-1.0, 0.0, 0.0], width=3.0, height=2.4),
        horizontal("F", 0.0),
        horizontal("C", 2.6, classification=PlaneClassification.CEILING),
    ]


def test_room_from_perpendicular_walls_and_floor_to_ceiling():
    summary = estimate_room_summary(_room())
    assert summary.width == pytest.approx(4.0)
    assert summary.length == pytest.approx(3.0)
    assert summary.height == pytest.approx(2.6)
    assert summary.area == pytest.approx(12.0)
    assert summary.perimeter == pytest.approx(14.0)
    assert summary.volume == pytest.approx(31.2)
    assert summary.wall_count == 2
    assert summary.description == "4.0 x 3.0 x 2.6 m"


def test_two_perpendicular_walls_give_a_rectangle_not_a_square():
    planes = [
        wall("A", center=[0.0, 1.0, -2.0], normal=[0.0, 0.0, 1.0], width=4.0),
        wall("B", center=[2.0, 1.0, -0.5], normal=[-1.0, 0.0, 0.0], width=3.0),
    ]
    summary = estimate_room_summary(planes)
    assert (summary.width, summary.length) == pytest.approx((4.0, 3.0))
    assert summary.area == pytest.approx(12.0)


def test_parallel_walls_fall_back_to_second_widest():
    planes = [
        wall("A", center=[0.0, 1.0, 0.0], normal=[1.0, 0.0, 0.0], width=2.0),
        wall("B", center=[3.0, 1.0, 0.0], normal=[-1.0, 0.0, 0.0], width=4.0, height=2.8),
    ]
    summary = estimate_room_summary(planes)
    assert (summary.width, summary.length) == pytest.approx((4.0, 2.0))
    # no floor/ceiling pair: tallest wall
    assert summary.height == pytest.approx(2.8)


def test_single_wall_is_square():
    summary = estimate_room_summary([wall("A", [0, 1, 0], [1, 0, 0], width=3.5)])
    assert summary.width == summary.length == pytest.approx(3.5)


def test_no_walls_means_no_summary():
    assert estimate_room_summary([horizontal("F", 0.0)]) is None
    assert estimate_room_summary([]) is None


def test_doors_and_windows_are_counted_separately():
    planes = _room() + [
        wall("D", [1.0, 1.0, -2.0], [0.0, 0.0, 1.0], width=0.9, classification=PlaneClassification.DOOR),
        wall("W", [2.0, 1.5, -1.0], [-1.0, 0.0, 0.0], width=1.2, classification=PlaneClassification.WINDOW),
    ]
    summary = estimate_room_summary(planes)
    assert (summary.wall_count, summary.door_count, summary.window_count) == (2, 1, 1)


def test_document_summary_matches_live_summary():
    frame = forward_camera_frame()
    projector = SceneProjector(Camera.from_flat(frame.intrinsics, frame.transform, frame.image_width, frame.image_height))
    document = projector.project_scene(planes=_room())
    assert summarize_document(document) == estimate_room_summary(_room())
