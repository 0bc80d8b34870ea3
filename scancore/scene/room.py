"""Rough room dimensions from the detected planes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from scancore.annotate.models import AnnotationDocument, PlaneClassification
from scancore.geometry.contract import DEFAULT_ROOM_HEIGHT, PERPENDICULAR_MAX_DOT
from scancore.geometry.vectors import WORLD_UP, Vec3, unit_or, vec3
from scancore.scene.planes import Plane


@dataclass(frozen=True)
class RoomSummary:
    width: float  # m, always >= length
    length: float
    height: float
    wall_count: int = 0
    door_count: int = 0
    window_count: int = 0

    @property
    def area(self) -> float:
        return self.width * self.length

    @property
    def perimeter(self) -> float:
        return 2.0 * (self.width + self.length)

    @property
    def volume(self) -> float:
        return self.width * self.length * self.height

    @property
    def description(self) -> str:
        return f"{self.width:.1f} x {self.length:.1f} x {self.height:.1f} m"


@dataclass
class _Surface:
    id: str
    vertical: bool
    classification: PlaneClassification
    normal: Vec3
    width: float
    height: float
    elevation: float


def estimate_room_summary(planes: Sequence[Plane]) -> Optional[RoomSummary]:
    """Summary from live planes; None without any vertical plane."""
    surfaces = [
        _Surface(
            id=p.id,
            vertical=p.is_vertical,
            classification=p.effective_classification,
            normal=p.normal,
            width=p.width,
            height=p.height,
            elevation=float(p.center[1]),
        )
        for p in planes
    ]
    return _summarize(surfaces)


def summarize_document(document: AnnotationDocument) -> Optional[RoomSummary]:
    """Same estimate computed from the planes frozen into a document."""
    surfaces = [
        _Surface(
            id=p.id,
            vertical=p.is_vertical,
            classification=p.classification,
            normal=unit_or(p.normal, WORLD_UP),
            width=p.widthMeters,
            height=p.heightMeters,
            elevation=float(vec3(p.center3D)[1]),
        )
        for p in document.planes
    ]
    return _summarize(surfaces)


def _summarize(surfaces: List[_Surface]) -> Optional[RoomSummary]:
    walls = [s for s in surfaces if s.vertical]
    if not walls:
        return None
    floors = [s for s in surfaces if s.classification == PlaneClassification.FLOOR]
    ceilings = [s for s in surfaces if s.classification == PlaneClassification.CEILING]

    widest = max(walls, key=lambda w: w.width)
    max_width = widest.width
    # length runs along the widest wall's perpendicular neighbours
    max_length = max(
        (
            other.width
            for other in walls
            if other.id != widest.id and abs(float(np.dot(widest.normal, other.normal))) < PERPENDICULAR_MAX_DOT
        ),
        default=0.0,
    )

    if max_length == 0.0:
        widths = sorted((w.width for w in walls), reverse=True)
        max_length = widths[1] if len(widths) >= 2 else max_width

    height = max((w.height for w in walls), default=DEFAULT_ROOM_HEIGHT)
    if floors and ceilings:
        height = abs(ceilings[0].elevation - floors[0].elevation)

    return RoomSummary(
        width=max(max_width, max_length),
        length=min(max_width, max_length),
        height=height,
        wall_count=sum(1 for w in walls if w.classification == PlaneClassification.WALL),
        door_count=sum(1 for s in surfaces if s.classification == PlaneClassification.DOOR),
        window_count=sum(1 for s in surfaces if s.classification == PlaneClassification.WINDOW),
    )


__all__ = ["RoomSummary", "estimate_room_summary", "summarize_document"]
