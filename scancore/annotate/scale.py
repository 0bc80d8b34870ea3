"""Meters-per-pixel resolution for offsite measurements."""

from __future__ import annotations

from typing import Optional, Tuple

from loguru import logger

from scancore.annotate.models import AnnotationDocument, NormalizedPoint, pixel_distance
from scancore.settings import EditorSettings


class DistanceEstimator:
    """Converts normalized point pairs into meters.

    Scale sources, best first: the document's averaged AR scale, the first AR
    measurement alone, then a fixed heuristic. Pixel distances always use the
    captured image size so every source shares one convention.
    """

    def __init__(self, settings: Optional[EditorSettings] = None) -> None:
        self.settings = settings or EditorSettings()

    def image_size(
        self, document: AnnotationDocument, fallback: Optional[Tuple[float, float]] = None
    ) -> Tuple[float, float]:
        return document.image_size or fallback or self.settings.default_view_size

    def meters_per_pixel(
        self, document: AnnotationDocument, image_size: Optional[Tuple[float, float]] = None
    ) -> float:
        scale = document.meters_per_pixel
        if scale is not None and scale > 0:
            return scale

        size = self.image_size(document, image_size)
        reference = next((m for m in document.measurements if m.isFromAR), None)
        if reference is not None:
            pixels = pixel_distance(reference.pointA, reference.pointB, size)
            if pixels > self.settings.min_pixel_distance:
                return reference.distanceMeters / pixels

        logger.debug("No AR scale reference; using {} m/px", self.settings.estimated_meters_per_pixel)
        return self.settings.estimated_meters_per_pixel

    def estimate(
        self,
        document: AnnotationDocument,
        a: NormalizedPoint,
        b: NormalizedPoint,
        image_size: Optional[Tuple[float, float]] = None,
    ) -> float:
        size = self.image_size(document, image_size)
        return pixel_distance(a, b, size) * self.meters_per_pixel(document, image_size)


__all__ = ["DistanceEstimator"]
