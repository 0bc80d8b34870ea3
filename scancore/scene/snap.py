"""Snap free 3D points to detected corners, plane vertices and plane edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import numpy as np
from loguru import logger

from scancore.geometry.vectors import Vec3, closest_point_on_segment, distance, vec3
from scancore.scene.corners import DetectedCorner
from scancore.scene.planes import Plane
from scancore.settings import SceneSettings


class SnapKind(str, Enum):
    CORNER = "corner"
    VERTEX = "vertex"
    EDGE = "edge"


@dataclass
class SnapTarget:
    kind: SnapKind
    position: Vec3 = field(compare=False)
    plane_id: Optional[str] = None
    corner_id: Optional[str] = None


@dataclass
class SnapResult:
    point: Vec3 = field(compare=False)
    target: Optional[SnapTarget] = None

    @property
    def snapped(self) -> bool:
        return self.target is not None


class EdgeSnapEngine:
    """Corner snapping wins over vertex/edge snapping; otherwise the point is returned as-is."""

    def __init__(self, settings: Optional[SceneSettings] = None) -> None:
        self.settings = settings or SceneSettings()

    def snap(
        self,
        point: Sequence[float] | Vec3,
        corners: Sequence[DetectedCorner],
        planes: Sequence[Plane],
    ) -> SnapResult:
        p = vec3(point)

        corner = self._nearest_corner(p, corners)
        if corner is not None:
            logger.debug("Snapped to corner {}", corner.id)
            return SnapResult(
                point=vec3(corner.position),
                target=SnapTarget(SnapKind.CORNER, vec3(corner.position), corner_id=corner.id),
            )

        edge = self._nearest_edge(p, planes)
        if edge is not None:
            logger.debug("Snapped to plane {} ({})", edge.plane_id, edge.kind.value)
            return SnapResult(point=vec3(edge.position), target=edge)

        return SnapResult(point=p)

    def _nearest_corner(self, p: Vec3, corners: Sequence[DetectedCorner]) -> Optional[DetectedCorner]:
        best: Optional[DetectedCorner] = None
        best_distance = self.settings.corner_snap_radius_m
        for corner in corners:
            d = distance(p, corner.position)
            if d < best_distance:
                best_distance = d
                best = corner
        return best

    def _nearest_edge(self, p: Vec3, planes: Sequence[Plane]) -> Optional[SnapTarget]:
        best: Optional[SnapTarget] = None
        best_distance = self.settings.edge_snap_radius_m
        for plane in planes:
            if not plane.is_vertical:
                continue
            for vertex in plane.corner_points():
                d = distance(p, vertex)
                if d < best_distance:
                    best_distance = d
                    best = SnapTarget(SnapKind.VERTEX, np.array(vertex), plane_id=plane.id)
            for seg_a, seg_b in plane.boundary_segments():
                candidate = closest_point_on_segment(p, seg_a, seg_b)
                d = distance(p, candidate)
                if d < best_distance:
                    best_distance = d
                    best = SnapTarget(SnapKind.EDGE, candidate, plane_id=plane.id)
        return best


__all__ = ["EdgeSnapEngine", "SnapKind", "SnapResult", "SnapTarget"]
