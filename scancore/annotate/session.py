"""Offsite editing session over one captured document."""

from __future__ import annotations

import base64
import binascii
from typing import Optional, Sequence, Tuple, Union

from loguru import logger

from scancore.annotate.drag import DragTransformer
from scancore.annotate.history import UndoHistory
from scancore.annotate.hit_test import HitTester
from scancore.annotate.models import (
    AnnotationDocument,
    Frame,
    Measurement,
    NormalizedPoint,
    PerspectiveFrame,
    TextAnnotation,
    utcnow,
)
from scancore.annotate.placement import FramePlacer
from scancore.annotate.scale import DistanceEstimator
from scancore.annotate.selection import SelectableItem, SelectionKind
from scancore.exceptions import StorageFailure
from scancore.geometry.contract import clamp01
from scancore.scene.floor_plan import FloorPlan, FloorPlanGenerator
from scancore.scene.room import RoomSummary, summarize_document
from scancore.settings import Settings, get_settings
from scancore.storage import DocumentStore

ViewSize = Tuple[float, float]


class EditSession:
    """Working copy of a document plus selection, drag state and undo history.

    Every mutating action records the prior state in the undo history, which
    never reaches beyond the document itself. ``commit`` persists and makes
    the working copy the new baseline; ``cancel`` restores the baseline.
    """

    def __init__(
        self,
        document: AnnotationDocument,
        store: Optional[DocumentStore] = None,
        capture_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        image_size: Optional[ViewSize] = None,
    ) -> None:
        self.settings = settings or get_settings()
        editor = self.settings.editor
        self.store = store
        self.capture_id = capture_id
        self.image_size = image_size
        self.original = document.snapshot()
        self.document = document.snapshot()
        self.history = UndoHistory(editor.undo_capacity)
        self.estimator = DistanceEstimator(editor)
        self.hit_tester = HitTester(editor)
        self.drag = DragTransformer(editor, self.estimator)
        self.placer = FramePlacer(editor)
        self.selected: Optional[SelectableItem] = None
        self.pending_measurement: Optional[NormalizedPoint] = None
        self._drag_item: Optional[SelectableItem] = None
        self._drag_last: Optional[NormalizedPoint] = None
        self._drag_recorded = False

    @classmethod
    def open(cls, store: DocumentStore, capture_id: str, settings: Optional[Settings] = None) -> "EditSession":
        document = store.load_document(capture_id)
        if document is None:
            raise StorageFailure(f"Capture not found: {capture_id}", {"capture_id": capture_id})
        return cls(document, store=store, capture_id=capture_id, settings=settings)

    # --- state -----------------------------------------------------------

    @property
    def is_dirty(self) -> bool:
        return self.document != self.original

    @property
    def is_dragging(self) -> bool:
        return self._drag_item is not None

    def room_summary(self) -> Optional[RoomSummary]:
        return summarize_document(self.document)

    def floor_plan(self) -> FloorPlan:
        return FloorPlanGenerator(self.settings.floor_plan).from_document(self.document)

    def _normalize(self, location: Sequence[float], view_size: Optional[ViewSize]) -> NormalizedPoint:
        fit = self.hit_tester.fit(self.document, view_size, self.image_size)
        x, y = fit.to_normalized(float(location[0]), float(location[1]))
        return NormalizedPoint(x=x, y=y)

    # --- selection and dragging ------------------------------------------

    def select(self, location: Sequence[float], view_size: Optional[ViewSize] = None) -> Optional[SelectableItem]:
        """Select what is under ``location``; tapping the selected item again deselects it."""
        hit = self.hit_tester.hit_test(self.document, location, view_size, self.image_size)
        self.selected = None if hit == self.selected else hit
        return self.selected

    def begin_drag(self, location: Sequence[float], view_size: Optional[ViewSize] = None) -> bool:
        item = self.hit_tester.hit_test(self.document, location, view_size, self.image_size)
        if item is None:
            return False
        self.selected = item
        self._drag_item = item
        self._drag_last = self._normalize(location, view_size)
        self._drag_recorded = False
        return True

    def drag_to(self, location: Sequence[float], view_size: Optional[ViewSize] = None) -> bool:
        if self._drag_item is None or self._drag_last is None:
            return False
        current = self._normalize(location, view_size)
        delta = (current.x - self._drag_last.x, current.y - self._drag_last.y)
        before = self.document.snapshot()
        applied = self.drag.apply(self.document, self._drag_item, delta, self.image_size)
        if applied and not self._drag_recorded:
            # one undo entry per gesture
            self.history.push(before)
            self._drag_recorded = True
        self._drag_last = current
        return applied

    def end_drag(self) -> None:
        self._drag_item = None
        self._drag_last = None
        self._drag_recorded = False

    def move_selected(self, delta: Sequence[float]) -> bool:
        if self.selected is None:
            return False
        before = self.document.snapshot()
        applied = self.drag.apply(self.document, self.selected, delta, self.image_size)
        if applied:
            self.history.push(before)
        return applied

    # --- creation --------------------------------------------------------

    def tap_measure(self, point: NormalizedPoint) -> Optional[Measurement]:
        """First tap stores a pending point; the second creates an estimated measurement."""
        point = point.clamped()
        if self.pending_measurement is None:
            self.pending_measurement = point
            return None
        first = self.pending_measurement
        self.pending_measurement = None
        self.history.push(self.document)
        measurement = Measurement(
            distanceMeters=self.estimator.estimate(self.document, first, point, self.image_size),
            pointA=first,
            pointB=point,
            isFromAR=False,
        )
        self.document.measurements.append(measurement)
        logger.debug("Offsite measurement {}: {:.3f} m", measurement.id, measurement.distanceMeters)
        return measurement

    def add_frame(self, point: NormalizedPoint) -> Frame:
        self.history.push(self.document)
        return self.placer.add_frame(self.document, point.clamped())

    def place_frame(self, point: NormalizedPoint) -> Union[Frame, PerspectiveFrame]:
        self.history.push(self.document)
        return self.placer.place(self.document, point)

    def add_text(self, point: NormalizedPoint, text: str) -> Optional[TextAnnotation]:
        if not text or not text.strip():
            return None
        self.history.push(self.document)
        annotation = TextAnnotation(position=point.clamped(), text=text, color=self.settings.editor.text_color)
        self.document.textAnnotations.append(annotation)
        return annotation

    def duplicate_selected_measurement(self) -> Optional[Measurement]:
        if self.selected is None or not self.selected.kind.is_measurement:
            return None
        source = self.document.measurement(self.selected.item_id)
        if source is None:
            return None
        offset = self.settings.editor.duplicate_offset
        self.history.push(self.document)
        copy = Measurement(
            distanceMeters=source.distanceMeters,
            pointA=NormalizedPoint(x=clamp01(source.pointA.x + offset), y=clamp01(source.pointA.y + offset)),
            pointB=NormalizedPoint(x=clamp01(source.pointB.x + offset), y=clamp01(source.pointB.y + offset)),
            isFromAR=False,
        )
        self.document.measurements.append(copy)
        self.selected = SelectableItem(SelectionKind.MEASUREMENT, copy.id)
        return copy

    # --- deletion and styling --------------------------------------------

    def delete_selected(self) -> bool:
        if self.selected is None:
            return False
        item = self.selected.owner()
        deleted = {
            SelectionKind.MEASUREMENT: self.delete_measurement,
            SelectionKind.FRAME: self.delete_frame,
            SelectionKind.PERSPECTIVE_FRAME: self.delete_perspective_frame,
            SelectionKind.TEXT_ANNOTATION: self.delete_text,
        }[item.kind](item.item_id)
        self.selected = None
        return deleted

    def delete_measurement(self, item_id: str) -> bool:
        return self._remove("measurements", item_id)

    def delete_frame(self, item_id: str) -> bool:
        return self._remove("frames", item_id)

    def delete_perspective_frame(self, item_id: str) -> bool:
        return self._remove("perspectiveFrames", item_id)

    def delete_text(self, item_id: str) -> bool:
        return self._remove("textAnnotations", item_id)

    def _remove(self, field_name: str, item_id: str) -> bool:
        items = getattr(self.document, field_name)
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return False
        self.history.push(self.document)
        items[:] = remaining
        return True

    def update_color(self, color: str) -> bool:
        """Recolor the selected frame, wall frame or text."""
        if self.selected is None:
            return False
        item = self.selected.owner()
        target: Union[Frame, PerspectiveFrame, TextAnnotation, None] = None
        if item.kind == SelectionKind.FRAME:
            target = self.document.frame(item.item_id)
        elif item.kind == SelectionKind.PERSPECTIVE_FRAME:
            target = self.document.perspective_frame(item.item_id)
        elif item.kind == SelectionKind.TEXT_ANNOTATION:
            target = self.document.text_annotation(item.item_id)
        if target is None:
            return False
        self.history.push(self.document)
        target.color = color
        return True

    # --- frame images ----------------------------------------------------

    def _image_target(self, frame_id: str) -> Union[Frame, PerspectiveFrame, None]:
        frame = self.document.frame(frame_id)
        if frame is not None:
            return frame
        return self.document.perspective_frame(frame_id)

    def set_frame_image(self, frame_id: str, image: bytes) -> bool:
        """Attach an image to a frame, as a stored file when possible, else inline base64."""
        target = self._image_target(frame_id)
        if target is None:
            return False
        filename: Optional[str] = None
        if self.store is not None and self.capture_id is not None:
            try:
                filename = self.store.save_image(image, self.capture_id, frame_id)
            except StorageFailure as exc:
                logger.warning("Could not store image for frame {}, embedding it: {}", frame_id, exc.message)
        self.history.push(self.document)
        if filename is not None:
            target.imageFilename = filename
            target.imageBase64 = None
        else:
            target.imageBase64 = base64.b64encode(image).decode("ascii")
        return True

    def load_frame_image(self, frame_id: str) -> Optional[bytes]:
        target = self._image_target(frame_id)
        if target is None:
            return None
        if target.imageFilename and self.store is not None and self.capture_id is not None:
            data = self.store.load_image(self.capture_id, target.imageFilename)
            if data is not None:
                return data
        if target.imageBase64:
            try:
                return base64.b64decode(target.imageBase64, validate=True)
            except (binascii.Error, ValueError):
                logger.warning("Frame {} carries invalid base64 image data", frame_id)
        return None

    # --- history and lifecycle -------------------------------------------

    def undo(self) -> bool:
        previous = self.history.undo(self.document)
        if previous is None:
            return False
        self.document = previous
        self.selected = None
        return True

    def redo(self) -> bool:
        following = self.history.redo(self.document)
        if following is None:
            return False
        self.document = following
        self.selected = None
        return True

    def commit(self) -> AnnotationDocument:
        """Persist the working copy and make it the new baseline.

        Raises:
            StorageFailure: when saving fails; the session is left unchanged.
        """
        committed = self.document.snapshot()
        committed.lastModified = utcnow()
        if self.store is not None and self.capture_id is not None:
            self.store.save_document(committed, self.capture_id)
        self.document = committed
        self.original = committed.snapshot()
        self.history.clear()
        self.end_drag()
        logger.info("Committed edits to {}", self.capture_id or "(unsaved document)")
        return committed

    def cancel(self) -> AnnotationDocument:
        self.document = self.original.snapshot()
        self.history.clear()
        self.selected = None
        self.pending_measurement = None
        self.end_drag()
        return self.document


__all__ = ["EditSession"]
