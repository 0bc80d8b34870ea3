"""Interface of the live sensor session the scanner is driven by."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from scancore.geometry.vectors import Vec3


@dataclass
class CameraFrame:
    """Camera state and image at one instant. Matrices are flattened column-major."""

    intrinsics: Sequence[float]
    transform: Sequence[float]
    image_width: int
    image_height: int
    image: bytes = b""
    view_width: Optional[float] = None


@dataclass
class RaycastHit:
    position: Vec3
    plane_id: Optional[str] = None


class SensorSession(Protocol):
    @property
    def is_lidar_available(self) -> bool:
        ...

    def current_frame(self) -> Optional[CameraFrame]:
        ...

    def raycast(self, view_point: Tuple[float, float]) -> Optional[RaycastHit]:  # view pixels
        ...


__all__ = ["CameraFrame", "RaycastHit", "SensorSession"]
