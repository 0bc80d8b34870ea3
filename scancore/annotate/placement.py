"""Tap-to-place frames, perspective-aware when the tap lands on a known plane."""

from __future__ import annotations

import math
from typing import List, Optional, Union

from loguru import logger

from scancore.annotate.models import AnnotationDocument, Frame, NormalizedPoint, PerspectiveFrame, PlaneData
from scancore.geometry.contract import MIN_BASIS_LENGTH_N, clamp, clamp01
from scancore.geometry.planar import point_in_polygon
from scancore.settings import EditorSettings


class FramePlacer:
    def __init__(self, settings: Optional[EditorSettings] = None) -> None:
        self.settings = settings or EditorSettings()

    def next_color(self, document: AnnotationDocument) -> str:
        palette = self.settings.palette
        return palette[(len(document.frames) + len(document.perspectiveFrames)) % len(palette)]

    def containing_plane(self, document: AnnotationDocument, point: NormalizedPoint) -> Optional[PlaneData]:
        for plane in document.planes:
            if plane.projectedVertices and point_in_polygon(point.as_tuple(), plane.projectedVertices):
                return plane
        return None

    def place(self, document: AnnotationDocument, point: NormalizedPoint) -> Union[Frame, PerspectiveFrame]:
        """Place a frame at ``point`` and append it to the document.

        Inside a plane's projected quad the frame follows that quad's
        perspective; anywhere else it is a plain axis-aligned frame.
        """
        point = point.clamped()
        plane = self.containing_plane(document, point)
        if plane is not None:
            frame = self._perspective_frame(document, plane, point)
            if frame is not None:
                document.perspectiveFrames.append(frame)
                logger.info("Placed wall frame {} on plane {}", frame.id, plane.id)
                return frame
        return self.add_frame(document, point)

    def add_frame(self, document: AnnotationDocument, point: NormalizedPoint) -> Frame:
        size = self.settings.default_frame_size
        frame = Frame(
            topLeft=NormalizedPoint(
                x=clamp(point.x, 0.0, 1.0 - size),
                y=clamp(point.y, 0.0, 1.0 - size),
            ),
            width=size,
            height=size,
            label=f"Frame {len(document.frames) + 1}",
            color=self.next_color(document),
        )
        document.frames.append(frame)
        logger.debug("Placed frame {} at ({:.3f}, {:.3f})", frame.id, frame.topLeft.x, frame.topLeft.y)
        return frame

    def _perspective_frame(
        self, document: AnnotationDocument, plane: PlaneData, point: NormalizedPoint
    ) -> Optional[PerspectiveFrame]:
        tl, tr, _, bl = plane.projectedVertices
        hx, hy = tr[0] - tl[0], tr[1] - tl[1]
        vx, vy = bl[0] - tl[0], bl[1] - tl[1]
        h_len = math.hypot(hx, hy)
        v_len = math.hypot(vx, vy)
        if h_len < MIN_BASIS_LENGTH_N or v_len < MIN_BASIS_LENGTH_N:
            logger.debug("Plane {} quad is degenerate; placing a plain frame", plane.id)
            return None

        fraction = self.settings.perspective_frame_fraction
        half_h = fraction / 2.0 * h_len
        half_v = fraction / 2.0 * v_len
        ux, uy = hx / h_len, hy / h_len
        wx, wy = vx / v_len, vy / v_len

        def corner(sh: float, sv: float) -> List[float]:
            return [
                clamp01(point.x + sh * ux * half_h + sv * wx * half_v),
                clamp01(point.y + sh * uy * half_h + sv * wy * half_v),
            ]

        return PerspectiveFrame(
            planeId=plane.id,
            center2D=point,
            corners2D=[corner(-1, -1), corner(1, -1), corner(1, 1), corner(-1, 1)],
            widthMeters=plane.widthMeters * fraction,
            heightMeters=plane.heightMeters * fraction,
            label=f"Wall frame {len(document.perspectiveFrames) + 1}",
            color=self.next_color(document),
        )


__all__ = ["FramePlacer"]
