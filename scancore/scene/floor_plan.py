"""Top-down floor plan built from the vertical planes of a scan."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger
from shapely.geometry import LineString, MultiLineString

from scancore.annotate.models import AnnotationDocument, PlaneClassification
from scancore.geometry.contract import MIN_JOIN_DISTANCE, MIN_SEGMENT_DIRECTION, WALL_THICKNESS
from scancore.scene.corners import DetectedCorner
from scancore.scene.planes import Plane
from scancore.scene.room import RoomSummary
from scancore.settings import FloorPlanSettings

# (x, z) in meters, world frame seen from above
PlanPoint = Tuple[float, float]
Bounds = Tuple[float, float, float, float]  # min_x, min_z, max_x, max_z


@dataclass
class FloorPlanSegment:
    """One vertical plane collapsed onto the floor as a line segment."""

    start: PlanPoint
    end: PlanPoint
    classification: PlaneClassification = PlaneClassification.WALL
    width_m: float = 0.0
    height_m: float = 0.0
    thickness_m: float = WALL_THICKNESS
    plane_id: Optional[str] = None

    @property
    def line(self) -> LineString:
        return LineString([self.start, self.end])

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    @property
    def midpoint(self) -> PlanPoint:
        return ((self.start[0] + self.end[0]) / 2.0, (self.start[1] + self.end[1]) / 2.0)

    @property
    def angle(self) -> float:
        """Radians from +X towards +Z."""
        return math.atan2(self.end[1] - self.start[1], self.end[0] - self.start[0])


@dataclass
class FloorPlan:
    walls: List[FloorPlanSegment] = field(default_factory=list)
    doors: List[FloorPlanSegment] = field(default_factory=list)
    windows: List[FloorPlanSegment] = field(default_factory=list)
    bounds: Optional[Bounds] = None
    summary: Optional[RoomSummary] = None

    @property
    def segments(self) -> List[FloorPlanSegment]:
        return self.walls + self.doors + self.windows

    @property
    def is_empty(self) -> bool:
        return not self.segments


@dataclass
class _PlanWall:
    id: str
    classification: PlaneClassification
    center: PlanPoint
    direction: PlanPoint  # horizontal part of the plane's local X axis
    width: float
    height: float


@dataclass
class _PlanCorner:
    position: PlanPoint
    plane_id_a: str
    plane_id_b: str


class FloorPlanGenerator:
    """Collapses vertical planes into wall, door and window segments.

    Segment ends are first pulled onto detected corners of their plane, then
    loose ends of neighbouring segments are joined at their midpoint.
    """

    def __init__(self, settings: Optional[FloorPlanSettings] = None) -> None:
        self.settings = settings or FloorPlanSettings()

    def from_planes(
        self,
        planes: Sequence[Plane],
        corners: Sequence[DetectedCorner] = (),
        room_summary: Optional[RoomSummary] = None,
    ) -> FloorPlan:
        walls = [
            _PlanWall(
                id=p.id,
                classification=p.effective_classification,
                center=(float(p.transform[0, 3]), float(p.transform[2, 3])),
                direction=(float(p.transform[0, 0]), float(p.transform[2, 0])),
                width=p.width,
                height=p.height,
            )
            for p in planes
            if p.is_vertical
        ]
        plan_corners = [
            _PlanCorner((float(c.position[0]), float(c.position[2])), c.plane_id_a, c.plane_id_b) for c in corners
        ]
        return self._build(walls, plan_corners, room_summary)

    def from_document(self, document: AnnotationDocument) -> FloorPlan:
        """Same plan from the planes and corners frozen into a document.

        The flat transform is column-major: entries 12 and 14 are the center,
        0 and 2 the local X axis.
        """
        walls = [
            _PlanWall(
                id=p.id,
                classification=p.classification,
                center=(p.transform[12], p.transform[14]),
                direction=(p.transform[0], p.transform[2]),
                width=p.widthMeters,
                height=p.heightMeters,
            )
            for p in document.planes
            if p.is_vertical
        ]
        plan_corners = [_PlanCorner((c.position3D[0], c.position3D[2]), c.planeIdA, c.planeIdB) for c in document.corners]
        return self._build(walls, plan_corners, None)

    # --- building --------------------------------------------------------

    def _build(
        self,
        walls: Sequence[_PlanWall],
        corners: Sequence[_PlanCorner],
        room_summary: Optional[RoomSummary],
    ) -> FloorPlan:
        if not walls:
            return FloorPlan()

        plan = FloorPlan()
        for wall in walls:
            segment = self._segment(wall)
            if segment is None:
                logger.debug("Plane {} has no horizontal direction, skipped", wall.id)
                continue
            if wall.classification == PlaneClassification.DOOR:
                plan.doors.append(segment)
            elif wall.classification == PlaneClassification.WINDOW:
                plan.windows.append(segment)
            else:
                plan.walls.append(segment)

        for group in (plan.walls, plan.doors, plan.windows):
            self._snap_to_corners(group, corners)
            self._join_nearby(group)

        extent = _extent(plan.segments)
        if extent is not None:
            pad = self.settings.bounds_padding_m
            plan.bounds = (extent[0] - pad, extent[1] - pad, extent[2] + pad, extent[3] + pad)
        plan.summary = self._summary(plan, extent, room_summary)
        logger.debug(
            "Floor plan: {} walls, {} doors, {} windows",
            len(plan.walls),
            len(plan.doors),
            len(plan.windows),
        )
        return plan

    def _segment(self, wall: _PlanWall) -> Optional[FloorPlanSegment]:
        dx, dz = wall.direction
        norm = math.hypot(dx, dz)
        if norm <= MIN_SEGMENT_DIRECTION:
            return None
        half = wall.width / 2.0
        ux, uz = dx / norm * half, dz / norm * half
        cx, cz = wall.center
        return FloorPlanSegment(
            start=(cx - ux, cz - uz),
            end=(cx + ux, cz + uz),
            classification=wall.classification,
            width_m=wall.width,
            height_m=wall.height,
            thickness_m=self.settings.wall_thickness_m,
            plane_id=wall.id,
        )

    def _snap_to_corners(self, segments: List[FloorPlanSegment], corners: Sequence[_PlanCorner]) -> None:
        radius = self.settings.corner_join_radius_m
        for corner in corners:
            for segment in segments:
                if segment.plane_id not in (corner.plane_id_a, corner.plane_id_b):
                    continue
                to_start = _distance(segment.start, corner.position)
                to_end = _distance(segment.end, corner.position)
                if to_start < to_end and to_start < radius:
                    segment.start = corner.position
                elif to_end < radius:
                    segment.end = corner.position

    def _join_nearby(self, segments: List[FloorPlanSegment]) -> None:
        threshold = self.settings.proximity_join_m
        for i, first in enumerate(segments):
            for second in segments[i + 1 :]:
                for end_a, end_b in (("end", "start"), ("start", "end"), ("end", "end"), ("start", "start")):
                    a = getattr(first, end_a)
                    b = getattr(second, end_b)
                    gap = _distance(a, b)
                    if MIN_JOIN_DISTANCE < gap < threshold:
                        mid = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
                        setattr(first, end_a, mid)
                        setattr(second, end_b, mid)

    @staticmethod
    def _summary(plan: FloorPlan, extent: Optional[Bounds], room_summary: Optional[RoomSummary]) -> Optional[RoomSummary]:
        if extent is None:
            return None
        counts = {"wall_count": len(plan.walls), "door_count": len(plan.doors), "window_count": len(plan.windows)}
        if room_summary is not None:
            return RoomSummary(width=room_summary.width, length=room_summary.length, height=room_summary.height, **counts)
        span_x = extent[2] - extent[0]
        span_z = extent[3] - extent[1]
        return RoomSummary(width=max(span_x, span_z), length=min(span_x, span_z), height=0.0, **counts)


def _distance(a: PlanPoint, b: PlanPoint) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _extent(segments: Iterable[FloorPlanSegment]) -> Optional[Bounds]:
    lines = [s.line for s in segments]
    if not lines:
        return None
    min_x, min_z, max_x, max_z = MultiLineString(lines).bounds
    return (float(min_x), float(min_z), float(max_x), float(max_z))


__all__ = ["FloorPlan", "FloorPlanGenerator", "FloorPlanSegment"]
