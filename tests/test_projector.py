import math

import numpy as np
import pytest

from scancore.scene.items import LiveMeasurement, PlacedFrame
from scancore.scene.projector import Camera, SceneProjector, frame_corners
from scancore.settings import ProjectionSettings
from tests.utils_scene import camera_data, forward_camera_frame, horizontal, wall

OPENCV = ProjectionSettings(convention="opencv")


def _identity_projector(settings=OPENCV, width=1000, height=1500):
    return SceneProjector(Camera.from_data(camera_data(width, height)), settings)


def _forward_projector():
    frame = forward_camera_frame()
    camera = Camera.from_flat(frame.intrinsics, frame.transform, frame.image_width, frame.image_height)
    return SceneProjector(camera)


def test_identity_camera_maps_unit_depth_points_to_xy():
    projector = _identity_projector()
    result = projector.project([0.3, 0.4, 1.0])
    assert result.point == pytest.approx((0.3, 0.4))
    assert result.visible


def test_arkit_convention_flips_y_and_z():
    projector = _identity_projector(ProjectionSettings(convention="arkit"))
    result = projector.project([0.3, -0.4, -1.0])
    assert result.point == pytest.approx((0.3, 0.4))
    assert result.in_front


def test_forward_camera_projects_wall_quad():
    projector = _forward_projector()
    plane = wall("W", center=[0.0, 0.0, -2.0], normal=[0.0, 0.0, 1.0], width=2.0, height=2.0)
    data = projector.plane_data(plane)
    tl, tr, br, bl = data.projectedVertices
    assert tl == pytest.approx([0.25, 0.25])
    assert tr == pytest.approx([0.75, 0.25])
    assert br == pytest.approx([0.75, 0.75])
    assert bl == pytest.approx([0.25, 0.75])
    assert data.classification.value == "wall"
    assert data.widthMeters == 2.0


def test_points_behind_camera_are_clamped_and_not_in_front():
    projector = _forward_projector()
    result = projector.project([5.0, 0.0, 1.0])
    assert not result.in_front
    assert not result.visible
    assert 0.0 <= result.point[0] <= 1.0 and 0.0 <= result.point[1] <= 1.0


@pytest.mark.parametrize(
    "intrinsics, transform, size",
    [
        ([0.0] * 9, list(np.eye(4).ravel()), (1000, 1000)),
        ([500.0, 0, 0, 0, 500.0, 0, 500.0, 500.0, 1.0], [0.0] * 16, (1000, 1000)),
        ([500.0, 0, 0, 0, 500.0, 0, 500.0, 500.0, 1.0], list(np.eye(4).ravel()), (0, 0)),
    ],
)
def test_degenerate_cameras_never_produce_nan(intrinsics, transform, size):
    projector = SceneProjector(Camera.from_flat(intrinsics, transform, *size))
    for point in ([0.0, 0.0, -2.0], [0.0, 0.0, 0.0], [1.0, 2.0, 3.0]):
        result = projector.project(point)
        assert all(math.isfinite(v) for v in result.point)
        assert 0.0 <= result.point[0] <= 1.0 and 0.0 <= result.point[1] <= 1.0
        assert not result.visible


def test_malformed_flat_matrices_fall_back_to_identity():
    camera = Camera.from_flat([math.nan] * 9, [1.0] * 3, 1000, 1000)
    assert np.allclose(camera.intrinsics, np.eye(3))
    assert np.allclose(camera.transform, np.eye(4))
    result = SceneProjector(camera).project([5.0, 5.0, -2.0])
    assert all(math.isfinite(v) for v in result.point)


def test_measurement_with_both_endpoints_off_screen_is_dropped():
    projector = _forward_projector()
    behind = LiveMeasurement(np.array([0.0, 0.0, 1.0]), np.array([1.0, 0.0, 1.0]))
    assert projector.measurement_data(behind) is None
    outside = LiveMeasurement(np.array([-50.0, 0.0, -2.0]), np.array([50.0, 0.0, -2.0]))
    assert projector.measurement_data(outside) is None


def test_measurement_with_one_visible_endpoint_is_kept():
    projector = _forward_projector()
    half = LiveMeasurement(np.array([0.0, 0.0, -2.0]), np.array([50.0, 0.0, -2.0]))
    data = projector.measurement_data(half)
    assert data is not None
    assert data.isFromAR
    assert data.pointA.as_tuple() == pytest.approx((0.5, 0.5))
    assert data.pointB.x == 1.0
    assert data.distanceMeters == pytest.approx(50.0)


def test_frame_corners_follow_image_order():
    placed = PlacedFrame(
        position=np.array([0.0, 0.0, -2.0]),
        width_m=1.0,
        height_m=1.0,
        right=np.array([1.0, 0.0, 0.0]),
        up=np.array([0.0, 1.0, 0.0]),
    )
    tl, tr, br, bl = frame_corners(placed)
    assert np.allclose(tl, [-0.5, 0.5, -2.0])
    assert np.allclose(br, [0.5, -0.5, -2.0])
    data = _forward_projector().perspective_frame_data(placed)
    assert data.corners2D[0] == pytest.approx([0.375, 0.375])
    assert data.corners2D[2] == pytest.approx([0.625, 0.625])


def test_frame_with_degenerate_basis_uses_plane_axes():
    plane = wall("W", center=[0.0, 0.0, -2.0], normal=[0.0, 0.0, 1.0])
    placed = PlacedFrame(
        position=np.array([0.0, 0.0, -2.0]),
        width_m=1.0,
        height_m=1.0,
        right=np.zeros(3),
        up=np.zeros(3),
        plane_id="W",
    )
    corners = frame_corners(placed, plane)
    assert all(np.all(np.isfinite(c)) for c in corners)
    assert np.allclose(corners[1] - corners[0], [1.0, 0.0, 0.0])


def test_project_scene_builds_document():
    projector = _forward_projector()
    planes = [
        wall("W", center=[0.0, 0.0, -2.0], normal=[0.0, 0.0, 1.0], width=2.0, height=2.0),
        horizontal("F", -1.0),
    ]
    document = projector.project_scene(planes=planes, lidar_available=True, image_scale=2.0)
    assert [p.id for p in document.planes] == ["W", "F"]
    assert [d.planeId for d in document.wallDimensions] == ["W"]
    assert document.wallDimensions[0].areaSquareMeters == pytest.approx(4.0)
    assert document.lidarMetadata.planeCount == 2
    assert document.lidarMetadata.isLiDARAvailable
    assert document.imageScale == 2.0
    assert document.camera.imageWidth == 1000
