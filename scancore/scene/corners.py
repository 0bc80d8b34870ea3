"""Wall corner inference from pairs of vertical planes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from scancore.exceptions import DegenerateGeometry
from scancore.geometry.vectors import Vec3, angle_between_deg, distance, unit
from scancore.scene.planes import Plane
from scancore.settings import SceneSettings

_CORNER_NAMESPACE = uuid.UUID("6f1c2a7e-3d44-4b8e-9a51-0c2d7f9e4b10")


def corner_id(plane_id_a: str, plane_id_b: str) -> str:
    """Stable id for the corner between two planes."""
    return str(uuid.uuid5(_CORNER_NAMESPACE, f"{plane_id_a}|{plane_id_b}")).upper()


@dataclass
class DetectedCorner:
    id: str
    position: Vec3 = field(compare=False)
    angle_degrees: float
    plane_id_a: str
    plane_id_b: str


class CornerDetector:
    """Pairs vertical planes whose normals meet at roughly a right angle.

    The whole corner list is rebuilt on every call; callers re-run detection
    after any plane add, update or removal.
    """

    def __init__(self, settings: Optional[SceneSettings] = None) -> None:
        self.settings = settings or SceneSettings()

    def detect(self, planes: Sequence[Plane]) -> List[DetectedCorner]:
        walls = [p for p in planes if p.is_vertical]
        normals: List[Optional[Vec3]] = []
        for plane in walls:
            try:
                normals.append(unit(plane.raw_normal, self.settings.min_normal_length))
            except DegenerateGeometry:
                logger.debug("Skipping plane {} with degenerate normal", plane.id)
                normals.append(None)

        corners: List[DetectedCorner] = []
        for i in range(len(walls)):
            n1 = normals[i]
            if n1 is None:
                continue
            for j in range(i + 1, len(walls)):
                n2 = normals[j]
                if n2 is None:
                    continue
                corner = self._pair(walls[i], n1, walls[j], n2)
                if corner is not None:
                    corners.append(corner)
        logger.debug("Detected {} corners from {} vertical planes", len(corners), len(walls))
        return corners

    def _pair(self, a: Plane, n1: Vec3, b: Plane, n2: Vec3) -> Optional[DetectedCorner]:
        if a.id == b.id:
            return None
        angle = angle_between_deg(n1, n2)
        if not (self.settings.corner_min_angle_deg <= angle <= self.settings.corner_max_angle_deg):
            return None
        if distance(a.center, b.center) >= self.settings.corner_max_distance_m:
            return None
        return DetectedCorner(
            id=corner_id(a.id, b.id),
            position=closest_corner_midpoint(a, b),
            angle_degrees=angle,
            plane_id_a=a.id,
            plane_id_b=b.id,
        )

    def is_corner_pair(self, a: Plane, b: Plane, near: Optional[Vec3] = None) -> bool:
        """True when ``b`` forms a corner with ``a``.

        With ``near`` the distance test uses that point instead of ``a``'s center.
        """
        if a.id == b.id or not (a.is_vertical and b.is_vertical):
            return False
        try:
            n1 = unit(a.raw_normal, self.settings.min_normal_length)
            n2 = unit(b.raw_normal, self.settings.min_normal_length)
        except DegenerateGeometry:
            return False
        angle = angle_between_deg(n1, n2)
        if not (self.settings.corner_min_angle_deg <= angle <= self.settings.corner_max_angle_deg):
            return False
        origin = a.center if near is None else near
        return distance(origin, b.center) < self.settings.corner_max_distance_m


def closest_corner_midpoint(a: Plane, b: Plane) -> Vec3:
    """Midpoint of the closest pair among the 4x4 boundary corners.

    Approximation: axis-misaligned planes can bias the result.
    """
    best_pair = None
    best_distance = float("inf")
    for pa in a.corner_points():
        for pb in b.corner_points():
            d = distance(pa, pb)
            if d < best_distance:
                best_distance = d
                best_pair = (pa, pb)
    if best_pair is None:
        return (a.center + b.center) / 2.0
    return np.asarray((best_pair[0] + best_pair[1]) / 2.0, dtype=np.float64)


__all__ = ["CornerDetector", "DetectedCorner", "closest_corner_midpoint", "corner_id"]
