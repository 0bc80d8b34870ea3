"""2D tests and view mapping on normalized image coordinates and view pixels."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

from shapely.geometry import LineString, Point, box

Point2 = Tuple[float, float]


def point_in_polygon(point: Point2, vertices: Sequence[Sequence[float]]) -> bool:
    """Even-odd ray casting.

    Works for concave and self-intersecting rings, where shapely would treat
    the polygon as invalid. Vertices with fewer than two coordinates are skipped.
    """
    verts = [(float(v[0]), float(v[1])) for v in vertices if len(v) >= 2]
    if len(verts) < 3:
        return False
    px, py = float(point[0]), float(point[1])
    inside = False
    j = len(verts) - 1
    for i in range(len(verts)):
        xi, yi = verts[i]
        xj, yj = verts[j]
        if (yi > py) != (yj > py):
            x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < x_cross:
                inside = not inside
        j = i
    return inside


def distance_2d(a: Point2, b: Point2) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def distance_to_segment(point: Point2, seg_a: Point2, seg_b: Point2) -> float:
    if distance_2d(seg_a, seg_b) == 0.0:
        return distance_2d(point, seg_a)
    return float(LineString([seg_a, seg_b]).distance(Point(point)))


def rect_contains(point: Point2, left: float, top: float, width: float, height: float) -> bool:
    """Axis-aligned containment, boundary included."""
    if width < 0 or height < 0:
        return False
    return bool(box(left, top, left + width, top + height).covers(Point(point)))


@dataclass(frozen=True)
class AspectFit:
    """Image drawn aspect-fit and centered inside a view.

    Maps normalized image coordinates to view pixels and back. A degenerate
    image size maps with scale 1.
    """

    image_width: float
    image_height: float
    scale: float
    offset_x: float
    offset_y: float

    @classmethod
    def of(cls, image_size: Tuple[float, float], view_size: Tuple[float, float]) -> "AspectFit":
        iw, ih = float(image_size[0]), float(image_size[1])
        vw, vh = float(view_size[0]), float(view_size[1])
        if iw <= 0 or ih <= 0:
            return cls(vw, vh, 1.0, 0.0, 0.0)
        scale = min(vw / iw, vh / ih)
        return cls(iw, ih, scale, (vw - iw * scale) / 2.0, (vh - ih * scale) / 2.0)

    @property
    def drawn_width(self) -> float:
        return self.image_width * self.scale

    @property
    def drawn_height(self) -> float:
        return self.image_height * self.scale

    def to_view(self, x: float, y: float) -> Point2:
        return (x * self.drawn_width + self.offset_x, y * self.drawn_height + self.offset_y)

    def to_normalized(self, px: float, py: float) -> Point2:
        if self.drawn_width == 0 or self.drawn_height == 0:
            return (0.0, 0.0)
        return ((px - self.offset_x) / self.drawn_width, (py - self.offset_y) / self.drawn_height)
