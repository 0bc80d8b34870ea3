"""Canonical JSON schema for offsite annotation documents.

Field names are part of the stored format and stay camelCase.
"""

from __future__ import annotations

import json
import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from scancore.exceptions import SerializationFailure
from scancore.geometry.contract import DEFAULT_COLOR, MIN_PIXEL_DISTANCE, clamp01


def new_id() -> str:
    return str(uuid.uuid4()).upper()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Entity(BaseModel):
    model_config = ConfigDict(validate_assignment=True)


class NormalizedPoint(_Entity):
    """2D image position in [0, 1]. x = 0 left, y = 0 top."""
    x: float
    y: float

    @property
    def is_valid(self) -> bool:
        return 0.0 <= self.x <= 1.0 and 0.0 <= self.y <= 1.0

    def clamped(self) -> "NormalizedPoint":
        return NormalizedPoint(x=clamp01(self.x), y=clamp01(self.y))

    def offset(self, dx: float, dy: float) -> "NormalizedPoint":
        return NormalizedPoint(x=self.x + dx, y=self.y + dy)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


class PlaneClassification(str, Enum):
    WALL = "wall"
    FLOOR = "floor"
    CEILING = "ceiling"
    DOOR = "door"
    WINDOW = "window"
    UNKNOWN = "unknown"


Alignment = Literal["vertical", "horizontal"]


class CameraData(_Entity):
    """Pinhole camera at capture time. Matrices are flattened column-major."""
    intrinsics: List[float] = Field(..., min_length=9, max_length=9)
    transform: List[float] = Field(..., min_length=16, max_length=16)
    imageWidth: int = Field(..., ge=0)
    imageHeight: int = Field(..., ge=0)

    @property
    def image_size(self) -> Optional[Tuple[float, float]]:
        if self.imageWidth <= 0 or self.imageHeight <= 0:
            return None
        return (float(self.imageWidth), float(self.imageHeight))


class PlaneData(_Entity):
    id: str
    alignment: Alignment
    classification: PlaneClassification = PlaneClassification.UNKNOWN
    transform: List[float] = Field(..., min_length=16, max_length=16)
    extentX: float = Field(..., ge=0.0)
    extentZ: float = Field(..., ge=0.0)
    center3D: List[float] = Field(..., min_length=3, max_length=3)
    normal: List[float] = Field(..., min_length=3, max_length=3)
    projectedVertices: List[List[float]] = Field(default_factory=list, description="TL, TR, BR, BL normalized")
    widthMeters: float = Field(..., ge=0.0)
    heightMeters: float = Field(..., ge=0.0)

    @field_validator("projectedVertices")
    def _quad_or_empty(cls, value: List[List[float]]) -> List[List[float]]:  # noqa: D401
        if value and len(value) != 4:
            raise ValueError("projectedVertices must hold exactly 4 points when present")
        for vertex in value:
            if len(vertex) != 2:
                raise ValueError("projectedVertices entries must be [x, y]")
        return value

    @property
    def is_vertical(self) -> bool:
        return self.alignment == "vertical"

    @property
    def is_horizontal(self) -> bool:
        return self.alignment == "horizontal"


class CornerData(_Entity):
    id: str = Field(default_factory=new_id)
    position3D: List[float] = Field(..., min_length=3, max_length=3)
    position2D: NormalizedPoint
    angleDegrees: float = Field(..., ge=0.0, le=180.0)
    planeIdA: str
    planeIdB: str

    @model_validator(mode="after")
    def _distinct_planes(self) -> "CornerData":
        if self.planeIdA == self.planeIdB:
            raise ValueError("a corner needs two distinct planes")
        return self


class WallDimension(_Entity):
    id: str = Field(default_factory=new_id)
    planeId: str
    widthMeters: float = Field(..., ge=0.0)
    heightMeters: float = Field(..., ge=0.0)
    areaSquareMeters: float = Field(0.0, ge=0.0)
    vertices2D: List[List[float]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _derive_area(cls, data):
        if isinstance(data, dict) and "areaSquareMeters" not in data:
            width = float(data.get("widthMeters", 0.0) or 0.0)
            height = float(data.get("heightMeters", 0.0) or 0.0)
            data = {**data, "areaSquareMeters": width * height}
        return data


class Measurement(_Entity):
    id: str = Field(default_factory=new_id)
    distanceMeters: float = Field(..., ge=0.0)
    pointA: NormalizedPoint
    pointB: NormalizedPoint
    isFromAR: bool = Field(True, frozen=True, description="True for sensor-tracked distances")


class Frame(_Entity):
    id: str = Field(default_factory=new_id)
    topLeft: NormalizedPoint
    width: float = Field(..., ge=0.0)
    height: float = Field(..., ge=0.0)
    label: Optional[str] = None
    color: str = DEFAULT_COLOR
    widthMeters: Optional[float] = Field(None, ge=0.0)
    heightMeters: Optional[float] = Field(None, ge=0.0)
    imageBase64: Optional[str] = None
    imageFilename: Optional[str] = None
    isCornerFrame: bool = False


class PerspectiveFrame(_Entity):
    id: str = Field(default_factory=new_id)
    planeId: Optional[str] = None
    center2D: NormalizedPoint
    corners2D: List[List[float]] = Field(..., description="TL, TR, BR, BL normalized")
    widthMeters: float = Field(..., ge=0.0)
    heightMeters: float = Field(..., ge=0.0)
    imageBase64: Optional[str] = None
    imageFilename: Optional[str] = None
    label: Optional[str] = None
    color: str = DEFAULT_COLOR

    @field_validator("corners2D")
    def _four_corners(cls, value: List[List[float]]) -> List[List[float]]:  # noqa: D401
        if len(value) != 4 or any(len(corner) != 2 for corner in value):
            raise ValueError("corners2D must hold exactly 4 [x, y] points")
        return value


class TextAnnotation(_Entity):
    id: str = Field(default_factory=new_id)
    position: NormalizedPoint
    text: str = Field(..., min_length=1)
    color: str = "#FFFFFF"


class PlaneDimension(_Entity):
    width: float
    height: float


class LidarMetadata(_Entity):
    isLiDARAvailable: bool
    planeCount: int = Field(..., ge=0)
    planeDimensions: List[PlaneDimension] = Field(default_factory=list)


def pixel_distance(a: NormalizedPoint, b: NormalizedPoint, image_size: Tuple[float, float]) -> float:
    """Distance in pixels; normalized deltas are scaled per axis."""
    width, height = image_size
    return math.hypot((b.x - a.x) * width, (b.y - a.y) * height)


class AnnotationDocument(BaseModel):
    """Editable 2D record derived from a single capture."""

    capturedAt: datetime = Field(default_factory=utcnow)
    camera: Optional[CameraData] = None
    planes: List[PlaneData] = Field(default_factory=list)
    corners: List[CornerData] = Field(default_factory=list)
    wallDimensions: List[WallDimension] = Field(default_factory=list)
    measurements: List[Measurement] = Field(default_factory=list)
    frames: List[Frame] = Field(default_factory=list)
    perspectiveFrames: List[PerspectiveFrame] = Field(default_factory=list)
    textAnnotations: List[TextAnnotation] = Field(default_factory=list)
    lidarMetadata: Optional[LidarMetadata] = None
    imageScale: float = 1.0
    lastModified: Optional[datetime] = None

    @model_validator(mode="after")
    def _unique_ids(self) -> "AnnotationDocument":
        for name in ("planes", "corners", "wallDimensions", "measurements", "frames", "perspectiveFrames", "textAnnotations"):
            ids = [item.id for item in getattr(self, name)]
            if len(ids) != len(set(ids)):
                raise ValueError(f"duplicate ids in {name}")
        return self

    # --- views -----------------------------------------------------------

    @property
    def walls(self) -> List[PlaneData]:
        return [plane for plane in self.planes if plane.is_vertical]

    @property
    def floors(self) -> List[PlaneData]:
        return [
            plane for plane in self.planes
            if plane.is_horizontal and plane.classification == PlaneClassification.FLOOR
        ]

    @property
    def image_size(self) -> Optional[Tuple[float, float]]:
        return self.camera.image_size if self.camera else None

    @property
    def meters_per_pixel(self) -> Optional[float]:
        """Average meters/pixel over every AR measurement, using the stored image size."""
        size = self.image_size
        if size is None:
            return None
        total = 0.0
        count = 0
        for measurement in self.measurements:
            if not measurement.isFromAR:
                continue
            pixels = pixel_distance(measurement.pointA, measurement.pointB, size)
            if pixels <= MIN_PIXEL_DISTANCE:
                continue
            total += measurement.distanceMeters / pixels
            count += 1
        if count == 0:
            return None
        return total / count

    def measurement(self, item_id: str) -> Optional[Measurement]:
        return next((m for m in self.measurements if m.id == item_id), None)

    def frame(self, item_id: str) -> Optional[Frame]:
        return next((f for f in self.frames if f.id == item_id), None)

    def perspective_frame(self, item_id: str) -> Optional[PerspectiveFrame]:
        return next((f for f in self.perspectiveFrames if f.id == item_id), None)

    def text_annotation(self, item_id: str) -> Optional[TextAnnotation]:
        return next((t for t in self.textAnnotations if t.id == item_id), None)

    def snapshot(self) -> "AnnotationDocument":
        return self.model_copy(deep=True)

    # --- wire format -----------------------------------------------------

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self, *, indent: int | None = 2) -> str:
        try:
            return self.model_dump_json(indent=indent, exclude_none=True)
        except (TypeError, ValueError) as exc:
            raise SerializationFailure(f"Could not encode document: {exc}") from exc

    @classmethod
    def from_payload(cls, payload: dict) -> "AnnotationDocument":
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise SerializationFailure(
                "Invalid annotation document",
                {"errors": str(exc.error_count())},
            ) from exc

    @classmethod
    def from_json(cls, raw: str | bytes) -> "AnnotationDocument":
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SerializationFailure(f"Malformed JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SerializationFailure("Annotation document must be a JSON object")
        return cls.from_payload(payload)


__all__ = [
    "AnnotationDocument",
    "CameraData",
    "CornerData",
    "Frame",
    "LidarMetadata",
    "Measurement",
    "NormalizedPoint",
    "PerspectiveFrame",
    "PlaneClassification",
    "PlaneData",
    "PlaneDimension",
    "TextAnnotation",
    "WallDimension",
    "new_id",
    "pixel_distance",
    "utcnow",
]
