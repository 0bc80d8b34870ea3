"""Per-kind drag rules for document entities."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence, Tuple

from loguru import logger

from scancore.annotate.models import AnnotationDocument, NormalizedPoint
from scancore.annotate.scale import DistanceEstimator
from scancore.annotate.selection import SelectableItem, SelectionKind
from scancore.geometry.contract import clamp, clamp01
from scancore.settings import EditorSettings

Delta = Tuple[float, float]
_Handler = Callable[[AnnotationDocument, str, Delta, Optional[Tuple[float, float]]], bool]


def _shared_delta(values: Sequence[float], delta: float) -> float:
    """Largest part of ``delta`` that keeps every value inside [0, 1].

    Values already outside the range are never pushed further out, and a
    zero delta always stays zero.
    """
    lo = min(0.0, -min(values))
    hi = max(0.0, 1.0 - max(values))
    return clamp(delta, lo, hi)


class DragTransformer:
    """Applies a normalized delta to the entity behind a :class:`SelectableItem`.

    New values are computed before anything is assigned, so a call either
    updates the entity completely or leaves the document untouched. Results
    are clamped, never rejected.
    """

    def __init__(
        self,
        settings: Optional[EditorSettings] = None,
        estimator: Optional[DistanceEstimator] = None,
    ) -> None:
        self.settings = settings or EditorSettings()
        self.estimator = estimator or DistanceEstimator(self.settings)
        self._handlers: Dict[SelectionKind, _Handler] = {
            SelectionKind.MEASUREMENT_ENDPOINT_A: self._move_endpoint_a,
            SelectionKind.MEASUREMENT_ENDPOINT_B: self._move_endpoint_b,
            SelectionKind.MEASUREMENT: self._move_measurement,
            SelectionKind.FRAME: self._move_frame,
            SelectionKind.FRAME_RESIZE_HANDLE: self._resize_frame,
            SelectionKind.PERSPECTIVE_FRAME: self._move_perspective_frame,
            SelectionKind.TEXT_ANNOTATION: self._move_text,
        }
        missing = set(SelectionKind) - set(self._handlers)
        if missing:
            raise TypeError(f"No drag handler for {sorted(k.value for k in missing)}")

    def apply(
        self,
        document: AnnotationDocument,
        item: SelectableItem,
        delta: Sequence[float],
        image_size: Optional[Tuple[float, float]] = None,
    ) -> bool:
        """Returns False when the item's entity is not in the document."""
        d = (float(delta[0]), float(delta[1]))
        applied = self._handlers[item.kind](document, item.item_id, d, image_size)
        if not applied:
            logger.debug("Drag target {} {} not found", item.kind.value, item.item_id)
        return applied

    # --- measurements ----------------------------------------------------

    def _move_endpoint_a(self, document, item_id, delta, image_size) -> bool:
        return self._move_endpoint(document, item_id, delta, image_size, "pointA")

    def _move_endpoint_b(self, document, item_id, delta, image_size) -> bool:
        return self._move_endpoint(document, item_id, delta, image_size, "pointB")

    def _move_endpoint(self, document, item_id, delta, image_size, attr: str) -> bool:
        m = document.measurement(item_id)
        if m is None:
            return False
        current: NormalizedPoint = getattr(m, attr)
        moved = NormalizedPoint(x=clamp01(current.x + delta[0]), y=clamp01(current.y + delta[1]))
        distance = m.distanceMeters
        if not m.isFromAR:
            a = moved if attr == "pointA" else m.pointA
            b = moved if attr == "pointB" else m.pointB
            distance = self.estimator.estimate(document, a, b, image_size)
        setattr(m, attr, moved)
        m.distanceMeters = distance
        return True

    def _move_measurement(self, document, item_id, delta, image_size) -> bool:
        m = document.measurement(item_id)
        if m is None:
            return False
        dx = _shared_delta([m.pointA.x, m.pointB.x], delta[0])
        dy = _shared_delta([m.pointA.y, m.pointB.y], delta[1])
        a = NormalizedPoint(x=clamp01(m.pointA.x + dx), y=clamp01(m.pointA.y + dy))
        b = NormalizedPoint(x=clamp01(m.pointB.x + dx), y=clamp01(m.pointB.y + dy))
        m.pointA = a
        m.pointB = b
        return True

    # --- frames ----------------------------------------------------------

    def _move_frame(self, document, item_id, delta, image_size) -> bool:
        f = document.frame(item_id)
        if f is None:
            return False
        f.topLeft = NormalizedPoint(
            x=clamp(f.topLeft.x + delta[0], 0.0, max(0.0, 1.0 - f.width)),
            y=clamp(f.topLeft.y + delta[1], 0.0, max(0.0, 1.0 - f.height)),
        )
        return True

    def _resize_frame(self, document, item_id, delta, image_size) -> bool:
        f = document.frame(item_id)
        if f is None:
            return False
        x, width = self._fit_span(f.topLeft.x, f.width + delta[0])
        y, height = self._fit_span(f.topLeft.y, f.height + delta[1])
        f.topLeft = NormalizedPoint(x=x, y=y)
        f.width = width
        f.height = height
        return True

    def _fit_span(self, start: float, size: float) -> Tuple[float, float]:
        """Clamp a size to the frame bounds and to the room left after ``start``.

        When less than the minimum size remains, ``start`` is pulled back.
        """
        lo, hi = self.settings.min_frame_size, self.settings.max_frame_size
        start = clamp01(start)
        size = clamp(size, lo, hi)
        room = 1.0 - start
        if size > room:
            if room >= lo:
                size = room
            else:
                size = lo
                start = 1.0 - lo
        return start, size

    def _move_perspective_frame(self, document, item_id, delta, image_size) -> bool:
        pf = document.perspective_frame(item_id)
        if pf is None:
            return False
        dx = _shared_delta([c[0] for c in pf.corners2D], delta[0])
        dy = _shared_delta([c[1] for c in pf.corners2D], delta[1])
        corners = [[c[0] + dx, c[1] + dy] for c in pf.corners2D]
        center = NormalizedPoint(x=pf.center2D.x + dx, y=pf.center2D.y + dy)
        pf.corners2D = corners
        pf.center2D = center
        return True

    # --- text ------------------------------------------------------------

    def _move_text(self, document, item_id, delta, image_size) -> bool:
        t = document.text_annotation(item_id)
        if t is None:
            return False
        t.position = NormalizedPoint(x=clamp01(t.position.x + delta[0]), y=clamp01(t.position.y + delta[1]))
        return True


__all__ = ["DragTransformer"]
