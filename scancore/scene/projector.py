"""Pinhole projection of the live scene into a normalized 2D document."""

from __future__ import annotations

import base64
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from scancore.annotate.models import (
    AnnotationDocument,
    CameraData,
    CornerData,
    LidarMetadata,
    Measurement,
    NormalizedPoint,
    PerspectiveFrame,
    PlaneData,
    PlaneDimension,
    WallDimension,
    utcnow,
)
from scancore.exceptions import DegenerateGeometry
from scancore.geometry.contract import MIN_NORMAL_LENGTH, clamp01
from scancore.geometry.vectors import (
    WORLD_FORWARD,
    WORLD_RIGHT,
    WORLD_UP,
    Vec3,
    matrix_from_flat,
    matrix_to_flat,
    unit,
    unit_or,
    vec3,
)
from scancore.scene.corners import DetectedCorner
from scancore.scene.items import LiveMeasurement, PlacedFrame
from scancore.scene.planes import Plane
from scancore.settings import ProjectionSettings

# arkit camera space looks down -Z with +Y up; flip into the +Z forward, +Y down pixel frame
_ARKIT_TO_PIXEL = np.diag([1.0, -1.0, -1.0])


def _matrix_or_identity(values: Sequence[float] | NDArray[np.float64], size: int, name: str) -> NDArray[np.float64]:
    arr = np.asarray(values, dtype=np.float64)
    if arr.shape == (size, size) and np.all(np.isfinite(arr)):
        return arr.copy()
    try:
        return matrix_from_flat(arr.ravel(), size)
    except DegenerateGeometry as exc:
        logger.warning("Camera {} unusable ({}); using identity", name, exc.message)
        return np.eye(size)


@dataclass(eq=False)
class Camera:
    intrinsics: NDArray[np.float64]
    transform: NDArray[np.float64]
    image_width: int
    image_height: int

    @classmethod
    def from_flat(
        cls,
        intrinsics: Sequence[float],
        transform: Sequence[float],
        image_width: int,
        image_height: int,
    ) -> "Camera":
        """Build from column-major flat matrices; malformed ones fall back to identity."""
        return cls(
            intrinsics=_matrix_or_identity(intrinsics, 3, "intrinsics"),
            transform=_matrix_or_identity(transform, 4, "transform"),
            image_width=int(image_width),
            image_height=int(image_height),
        )

    @classmethod
    def from_data(cls, data: CameraData) -> "Camera":
        return cls.from_flat(data.intrinsics, data.transform, data.imageWidth, data.imageHeight)

    def to_data(self) -> CameraData:
        return CameraData(
            intrinsics=matrix_to_flat(self.intrinsics),
            transform=matrix_to_flat(self.transform),
            imageWidth=max(0, self.image_width),
            imageHeight=max(0, self.image_height),
        )

    @property
    def position(self) -> Vec3:
        return vec3(self.transform[:3, 3])


@dataclass(frozen=True)
class Projection:
    point: Tuple[float, float]
    raw: Tuple[float, float]
    in_front: bool
    in_bounds: bool

    @property
    def visible(self) -> bool:
        return self.in_front and self.in_bounds

    @property
    def on_border(self) -> bool:
        x, y = self.point
        return x <= 0.0 or x >= 1.0 or y <= 0.0 or y >= 1.0

    @property
    def off_screen(self) -> bool:
        return not self.in_front or self.on_border

    def normalized(self) -> NormalizedPoint:
        return NormalizedPoint(x=self.point[0], y=self.point[1])

    def as_list(self) -> List[float]:
        return [self.point[0], self.point[1]]


_NOWHERE = Projection(point=(0.0, 0.0), raw=(0.0, 0.0), in_front=False, in_bounds=False)


class SceneProjector:
    """Projects world points to normalized image coordinates for one camera pose.

    Never raises for degenerate input: singular poses, zero focal length,
    points behind the camera and empty images yield non-visible projections
    with coordinates clamped into [0, 1].
    """

    def __init__(self, camera: Camera, settings: Optional[ProjectionSettings] = None) -> None:
        self.camera = camera
        self.settings = settings or ProjectionSettings()
        self._view: Optional[NDArray[np.float64]]
        try:
            self._view = np.linalg.inv(camera.transform)
        except np.linalg.LinAlgError:
            logger.warning("Camera transform is singular; nothing will be visible")
            self._view = None
        k = camera.intrinsics
        self._focal_ok = abs(float(k[0, 0])) > 0.0 and abs(float(k[1, 1])) > 0.0

    def project(self, point: Sequence[float] | Vec3) -> Projection:
        width, height = self.camera.image_width, self.camera.image_height
        if self._view is None or width <= 0 or height <= 0:
            return _NOWHERE

        world = np.append(vec3(point), 1.0)
        cam = (self._view @ world)[:3]
        if self.settings.convention == "arkit":
            cam = _ARKIT_TO_PIXEL @ cam
        depth = float(cam[2])
        in_front = depth > self.settings.min_depth
        if not in_front:
            # keep the direction but avoid dividing by ~0 or mirroring through the camera
            cam = np.array([cam[0], cam[1], max(abs(depth), self.settings.min_depth)])

        pixel = self.camera.intrinsics @ cam
        if abs(float(pixel[2])) < 1e-12:
            return _NOWHERE
        u = float(pixel[0] / pixel[2])
        v = float(pixel[1] / pixel[2])
        nx, ny = u / width, v / height
        if not (math.isfinite(nx) and math.isfinite(ny)):
            return _NOWHERE

        in_bounds = self._focal_ok and 0.0 <= nx <= 1.0 and 0.0 <= ny <= 1.0
        return Projection(point=(clamp01(nx), clamp01(ny)), raw=(nx, ny), in_front=in_front, in_bounds=in_bounds)

    def project_many(self, points: Iterable[Sequence[float] | Vec3]) -> List[List[float]]:
        return [self.project(p).as_list() for p in points]

    # --- per-entity conversion -------------------------------------------

    def plane_data(self, plane: Plane) -> PlaneData:
        return PlaneData(
            id=plane.id,
            alignment=plane.alignment,
            classification=plane.effective_classification,
            transform=matrix_to_flat(plane.transform),
            extentX=plane.extent_x,
            extentZ=plane.extent_z,
            center3D=[float(v) for v in plane.center],
            normal=[float(v) for v in plane.normal],
            projectedVertices=self.project_many(plane.corner_points()),
            widthMeters=plane.width,
            heightMeters=plane.height,
        )

    def wall_dimension(self, plane: Plane) -> WallDimension:
        return WallDimension(
            planeId=plane.id,
            widthMeters=plane.width,
            heightMeters=plane.height,
            areaSquareMeters=plane.width * plane.height,
            vertices2D=self.project_many(plane.corner_points()),
        )

    def corner_data(self, corner: DetectedCorner) -> CornerData:
        return CornerData(
            id=corner.id,
            position3D=[float(v) for v in corner.position],
            position2D=self.project(corner.position).normalized(),
            angleDegrees=corner.angle_degrees,
            planeIdA=corner.plane_id_a,
            planeIdB=corner.plane_id_b,
        )

    def measurement_data(self, measurement: LiveMeasurement) -> Optional[Measurement]:
        """2D measurement, or None when both endpoints fall off the image."""
        a = self.project(measurement.point_a)
        b = self.project(measurement.point_b)
        if a.off_screen and b.off_screen:
            logger.debug("Dropping off-screen measurement {}", measurement.id)
            return None
        return Measurement(
            id=measurement.id,
            distanceMeters=measurement.distance,
            pointA=a.normalized(),
            pointB=b.normalized(),
            isFromAR=True,
        )

    def perspective_frame_data(self, frame: PlacedFrame, plane: Optional[Plane] = None) -> PerspectiveFrame:
        return PerspectiveFrame(
            id=frame.id,
            planeId=frame.plane_id,
            center2D=self.project(frame.position).normalized(),
            corners2D=self.project_many(frame_corners(frame, plane)),
            widthMeters=frame.width_m,
            heightMeters=frame.height_m,
            imageBase64=base64.b64encode(frame.image).decode("ascii") if frame.image else None,
            label=frame.label,
            color=frame.color,
        )

    # --- whole scene -----------------------------------------------------

    def project_scene(
        self,
        *,
        planes: Sequence[Plane],
        corners: Sequence[DetectedCorner] = (),
        measurements: Sequence[LiveMeasurement] = (),
        frames: Sequence[PlacedFrame] = (),
        lidar_available: bool = False,
        image_scale: float = 1.0,
        captured_at: Optional[datetime] = None,
    ) -> AnnotationDocument:
        by_id: Dict[str, Plane] = {p.id: p for p in planes}
        projected_measurements = [m for m in (self.measurement_data(x) for x in measurements) if m is not None]
        document = AnnotationDocument(
            capturedAt=captured_at or utcnow(),
            camera=self.camera.to_data(),
            planes=[self.plane_data(p) for p in planes],
            corners=[self.corner_data(c) for c in corners],
            wallDimensions=[self.wall_dimension(p) for p in planes if p.is_vertical],
            measurements=projected_measurements,
            perspectiveFrames=[
                self.perspective_frame_data(f, by_id.get(f.plane_id) if f.plane_id else None) for f in frames
            ],
            lidarMetadata=LidarMetadata(
                isLiDARAvailable=lidar_available,
                planeCount=len(planes),
                planeDimensions=[PlaneDimension(width=p.width, height=p.height) for p in planes],
            ),
            imageScale=image_scale,
        )
        logger.info(
            "Projected scene: {} planes, {} corners, {}/{} measurements, {} frames",
            len(document.planes),
            len(document.corners),
            len(projected_measurements),
            len(measurements),
            len(document.perspectiveFrames),
        )
        return document


def frame_basis(frame: PlacedFrame, plane: Optional[Plane] = None) -> Tuple[Vec3, Vec3]:
    """Unit right/up vectors of a frame face.

    A degenerate right falls back to the plane's right, then world X; a
    degenerate up is rebuilt from normal x right, then world Y.
    """
    try:
        right = unit(frame.right, MIN_NORMAL_LENGTH)
    except DegenerateGeometry:
        logger.debug("Frame {} has no usable right vector", frame.id)
        right = plane.right if plane is not None else WORLD_RIGHT.copy()
    try:
        up = unit(frame.up, MIN_NORMAL_LENGTH)
    except DegenerateGeometry:
        logger.debug("Frame {} has no usable up vector", frame.id)
        normal = plane.normal if plane is not None else WORLD_FORWARD
        up = unit_or(np.cross(normal, right), WORLD_UP)
    return right, up


def frame_corners(frame: PlacedFrame, plane: Optional[Plane] = None) -> List[Vec3]:
    """World corners TL, TR, BR, BL of a placed frame."""
    right, up = frame_basis(frame, plane)
    r = right * (frame.width_m / 2.0)
    u = up * (frame.height_m / 2.0)
    pos = frame.position
    return [pos - r + u, pos + r + u, pos + r - u, pos - r - u]


__all__ = ["Camera", "Projection", "SceneProjector", "frame_basis", "frame_corners"]
