from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from scancore.annotate.models import Alignment, PlaneClassification
from scancore.exceptions import DegenerateGeometry
from scancore.geometry.vectors import WORLD_FORWARD, WORLD_RIGHT, WORLD_UP, Vec3, matrix_from_flat, unit_or, vec3


@dataclass(eq=False)
class Plane:
    """A flat surface patch reported by the sensor.

    The local frame follows the sensor convention: column 1 of ``transform`` is
    the plane normal, columns 0 and 2 span the surface and column 3 is the
    center. ``extent_x`` runs along column 0 and ``extent_z`` along column 2.
    """

    id: str
    alignment: Alignment
    transform: NDArray[np.float64]
    extent_x: float
    extent_z: float
    classification: PlaneClassification = PlaneClassification.UNKNOWN

    def __post_init__(self) -> None:
        matrix = np.asarray(self.transform, dtype=np.float64)
        if matrix.shape != (4, 4):
            matrix = matrix_from_flat(matrix.ravel(), 4)
        if not np.all(np.isfinite(matrix)):
            raise DegenerateGeometry("Plane transform has non-finite entries", {"plane_id": self.id})
        if self.extent_x < 0 or self.extent_z < 0:
            raise DegenerateGeometry(
                "Plane extent must be non-negative",
                {"plane_id": self.id, "extent": f"{self.extent_x}x{self.extent_z}"},
            )
        self.transform = matrix
        self.extent_x = float(self.extent_x)
        self.extent_z = float(self.extent_z)

    @classmethod
    def from_flat(
        cls,
        plane_id: str,
        alignment: Alignment,
        transform: Sequence[float],
        extent_x: float,
        extent_z: float,
        classification: PlaneClassification = PlaneClassification.UNKNOWN,
    ) -> "Plane":
        return cls(plane_id, alignment, matrix_from_flat(transform, 4), extent_x, extent_z, classification)

    @property
    def is_vertical(self) -> bool:
        return self.alignment == "vertical"

    @property
    def center(self) -> Vec3:
        return vec3(self.transform[:3, 3])

    @property
    def raw_normal(self) -> Vec3:
        return vec3(self.transform[:3, 1])

    @property
    def normal(self) -> Vec3:
        return unit_or(self.raw_normal, WORLD_UP)

    @property
    def right(self) -> Vec3:
        return unit_or(self.transform[:3, 0], WORLD_RIGHT)

    @property
    def forward(self) -> Vec3:
        return unit_or(self.transform[:3, 2], WORLD_FORWARD)

    @property
    def width(self) -> float:
        return self.extent_x

    @property
    def height(self) -> float:
        return self.extent_z

    @property
    def effective_classification(self) -> PlaneClassification:
        """Sensor label, or wall/floor by alignment when the sensor gave none."""
        if self.classification != PlaneClassification.UNKNOWN:
            return self.classification
        return PlaneClassification.WALL if self.is_vertical else PlaneClassification.FLOOR

    def corner_points(self) -> List[Vec3]:
        """Boundary corners in perimeter order TL, TR, BR, BL."""
        c = self.center
        r = self.right * (self.extent_x / 2.0)
        f = self.forward * (self.extent_z / 2.0)
        return [c - r - f, c + r - f, c + r + f, c - r + f]

    def boundary_segments(self) -> List[tuple[Vec3, Vec3]]:
        pts = self.corner_points()
        return [(pts[i], pts[(i + 1) % 4]) for i in range(4)]


class PlaneEventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass
class PlaneEvent:
    kind: PlaneEventKind
    plane: Optional[Plane] = None
    plane_id: Optional[str] = None

    @property
    def target_id(self) -> Optional[str]:
        if self.plane is not None:
            return self.plane.id
        return self.plane_id


@dataclass
class PlaneRegistry:
    """Known planes keyed by id, in first-seen order."""

    _planes: Dict[str, Plane] = field(default_factory=dict)

    def apply(self, event: PlaneEvent) -> bool:
        """Apply a session event. Returns True when the plane set changed."""
        plane_id = event.target_id
        if plane_id is None:
            logger.warning("Ignoring plane event without a plane id: {}", event.kind)
            return False
        if event.kind == PlaneEventKind.REMOVED:
            removed = self._planes.pop(plane_id, None)
            if removed is None:
                logger.debug("Remove for unknown plane {}", plane_id)
            return removed is not None
        if event.plane is None:
            logger.warning("Plane event {} for {} carries no plane", event.kind.value, plane_id)
            return False
        # updates for planes we never saw are treated as additions
        self._planes[plane_id] = event.plane
        return True

    def get(self, plane_id: str) -> Optional[Plane]:
        return self._planes.get(plane_id)

    def planes(self) -> List[Plane]:
        return list(self._planes.values())

    def vertical_planes(self) -> List[Plane]:
        return [p for p in self._planes.values() if p.is_vertical]

    def horizontal_planes(self) -> List[Plane]:
        return [p for p in self._planes.values() if not p.is_vertical]

    def clear(self) -> None:
        self._planes.clear()

    def __len__(self) -> int:
        return len(self._planes)

    def __iter__(self) -> Iterator[Plane]:
        return iter(list(self._planes.values()))

    def __contains__(self, plane_id: object) -> bool:
        return plane_id in self._planes


__all__ = ["Plane", "PlaneEvent", "PlaneEventKind", "PlaneRegistry"]
