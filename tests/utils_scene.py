"""Builders shared by the scene and annotation tests."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from scancore.annotate.models import (
    AnnotationDocument,
    CameraData,
    Frame,
    Measurement,
    NormalizedPoint,
    PerspectiveFrame,
    PlaneClassification,
    PlaneData,
    TextAnnotation,
)
from scancore.geometry.vectors import WORLD_UP, basis_matrix, matrix_to_flat, unit
from scancore.scene.planes import Plane
from scancore.scene.sensor import CameraFrame, RaycastHit


def wall(
    plane_id: str,
    center: Sequence[float],
    normal: Sequence[float],
    width: float = 1.0,
    height: float = 2.5,
    classification: PlaneClassification = PlaneClassification.UNKNOWN,
) -> Plane:
    n = unit(normal)
    right = unit(np.cross(WORLD_UP, n))
    forward = np.cross(right, n)
    return Plane(plane_id, "vertical", basis_matrix(center, right, n, forward), width, height, classification)


def horizontal(
    plane_id: str,
    y: float,
    classification: PlaneClassification = PlaneClassification.FLOOR,
    width: float = 4.0,
    depth: float = 3.0,
) -> Plane:
    normal = [0.0, -1.0, 0.0] if classification == PlaneClassification.CEILING else [0.0, 1.0, 0.0]
    right = [1.0, 0.0, 0.0]
    forward = np.cross(right, normal)
    return Plane(plane_id, "horizontal", basis_matrix([0.0, y, 0.0], right, normal, forward), width, depth, classification)


def pt(x: float, y: float) -> NormalizedPoint:
    return NormalizedPoint(x=x, y=y)


def camera_data(width: int = 1000, height: int = 1500) -> CameraData:
    return CameraData(
        intrinsics=[float(width), 0.0, 0.0, 0.0, float(height), 0.0, 0.0, 0.0, 1.0],
        transform=matrix_to_flat(np.eye(4)),
        imageWidth=width,
        imageHeight=height,
    )


def plane_data(plane_id: str, quad: Sequence[Sequence[float]], width: float = 2.0, height: float = 2.5) -> PlaneData:
    return PlaneData(
        id=plane_id,
        alignment="vertical",
        classification=PlaneClassification.WALL,
        transform=matrix_to_flat(np.eye(4)),
        extentX=width,
        extentZ=height,
        center3D=[0.0, 0.0, 0.0],
        normal=[0.0, 0.0, 1.0],
        projectedVertices=[list(v) for v in quad],
        widthMeters=width,
        heightMeters=height,
    )


def ar_measurement(a: Tuple[float, float], b: Tuple[float, float], meters: float, item_id: str = "AR-1") -> Measurement:
    return Measurement(id=item_id, distanceMeters=meters, pointA=pt(*a), pointB=pt(*b), isFromAR=True)


def offsite_measurement(a: Tuple[float, float], b: Tuple[float, float], meters: float, item_id: str = "M-1") -> Measurement:
    return Measurement(id=item_id, distanceMeters=meters, pointA=pt(*a), pointB=pt(*b), isFromAR=False)


def frame(item_id: str, x: float, y: float, size: float = 0.2) -> Frame:
    return Frame(id=item_id, topLeft=pt(x, y), width=size, height=size, label=item_id)


def perspective_frame(item_id: str, corners: Sequence[Sequence[float]]) -> PerspectiveFrame:
    xs = [c[0] for c in corners]
    ys = [c[1] for c in corners]
    return PerspectiveFrame(
        id=item_id,
        center2D=pt(sum(xs) / 4.0, sum(ys) / 4.0),
        corners2D=[list(c) for c in corners],
        widthMeters=0.5,
        heightMeters=0.4,
    )


def text(item_id: str, x: float, y: float, content: str = "note") -> TextAnnotation:
    return TextAnnotation(id=item_id, position=pt(x, y), text=content)


def document(**fields) -> AnnotationDocument:
    fields.setdefault("camera", camera_data())
    return AnnotationDocument(**fields)


class FakeSensor:
    """Sensor session double with a fixed camera frame and scripted raycasts."""

    def __init__(self, frame: Optional[CameraFrame], lidar: bool = True) -> None:
        self._frame = frame
        self._lidar = lidar
        self.hits: dict[Tuple[float, float], RaycastHit] = {}

    @property
    def is_lidar_available(self) -> bool:
        return self._lidar

    def current_frame(self) -> Optional[CameraFrame]:
        return self._frame

    def raycast(self, view_point: Tuple[float, float]) -> Optional[RaycastHit]:
        return self.hits.get(tuple(view_point))


def forward_camera_frame(width: int = 1000, height: int = 1000, focal: float = 500.0) -> CameraFrame:
    """Camera at the origin looking down -Z, principal point at the image center."""
    intrinsics = [focal, 0.0, 0.0, 0.0, focal, 0.0, width / 2.0, height / 2.0, 1.0]
    return CameraFrame(
        intrinsics=intrinsics,
        transform=matrix_to_flat(np.eye(4)),
        image_width=width,
        image_height=height,
        image=b"\xff\xd8jpeg",
        view_width=width / 2.0,
    )
