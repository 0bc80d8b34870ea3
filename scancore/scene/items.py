"""3D items the user places during a live scan."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from scancore.annotate.models import new_id
from scancore.geometry.contract import DEFAULT_COLOR
from scancore.geometry.vectors import WORLD_RIGHT, WORLD_UP, Vec3, distance, vec3


@dataclass(eq=False)
class LiveMeasurement:
    """Sensor-tracked distance between two world points."""

    point_a: Vec3
    point_b: Vec3
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        self.point_a = vec3(self.point_a)
        self.point_b = vec3(self.point_b)

    @property
    def distance(self) -> float:
        return distance(self.point_a, self.point_b)


@dataclass(eq=False)
class PlacedFrame:
    """Picture frame in world space; ``right``/``up`` span its face."""

    position: Vec3
    width_m: float
    height_m: float
    right: Vec3 = field(default_factory=lambda: WORLD_RIGHT.copy())
    up: Vec3 = field(default_factory=lambda: WORLD_UP.copy())
    plane_id: Optional[str] = None
    image: Optional[bytes] = None
    is_corner_frame: bool = False
    label: Optional[str] = None
    color: str = DEFAULT_COLOR
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        self.position = vec3(self.position)
        self.right = vec3(self.right)
        self.up = vec3(self.up)
        self.width_m = max(0.0, float(self.width_m))
        self.height_m = max(0.0, float(self.height_m))

    @property
    def normal(self) -> Vec3:
        return np.cross(self.right, self.up)


__all__ = ["LiveMeasurement", "PlacedFrame"]
