"""Live scan state: planes, corners, measurements and frames until capture."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from scancore.annotate.models import AnnotationDocument, PlaneClassification, utcnow
from scancore.exceptions import CaptureUnavailable, StorageFailure
from scancore.geometry.contract import LIVE_FRAME_SIZE, MIN_NORMAL_LENGTH, SURFACE_OFFSET
from scancore.geometry.vectors import WORLD_UP, Vec3, unit_or, vec3
from scancore.scene.corners import CornerDetector, DetectedCorner
from scancore.scene.floor_plan import FloorPlan, FloorPlanGenerator
from scancore.scene.items import LiveMeasurement, PlacedFrame
from scancore.scene.planes import Plane, PlaneEvent, PlaneRegistry
from scancore.scene.projector import Camera, SceneProjector
from scancore.scene.room import RoomSummary, estimate_room_summary
from scancore.scene.sensor import SensorSession
from scancore.scene.snap import EdgeSnapEngine, SnapResult
from scancore.settings import Settings, get_settings

if TYPE_CHECKING:
    from scancore.storage import DocumentStore

CAPTURE_PREFIX = "capture_"
CAPTURE_DATE_FORMAT = "%Y%m%d_%H%M%S"


@dataclass
class CaptureResult:
    document: AnnotationDocument
    image: bytes
    capture_id: Optional[str] = None


def capture_id_for(moment: datetime) -> str:
    return f"{CAPTURE_PREFIX}{moment.strftime(CAPTURE_DATE_FORMAT)}"


class LiveScan:
    """On-device scan session.

    Plane events keep the registry current and re-run corner detection. The
    two-tap measurement gesture snaps each tap to corners and plane edges.
    ``capture`` freezes everything into an :class:`AnnotationDocument`.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.registry = PlaneRegistry()
        self.corner_detector = CornerDetector(self.settings.scene)
        self.snap_engine = EdgeSnapEngine(self.settings.scene)
        self.corners: List[DetectedCorner] = []
        self.measurements: List[LiveMeasurement] = []
        self.frames: List[PlacedFrame] = []
        self.snap_enabled = True
        self.measuring = False
        self.pending_point: Optional[Vec3] = None
        self.last_snap: Optional[SnapResult] = None

    # --- planes and corners ----------------------------------------------

    def handle_plane_event(self, event: PlaneEvent) -> bool:
        changed = self.registry.apply(event)
        if changed:
            self.detect_corners()
        return changed

    def detect_corners(self) -> List[DetectedCorner]:
        self.corners = self.corner_detector.detect(self.registry.vertical_planes())
        return self.corners

    def room_summary(self) -> Optional[RoomSummary]:
        return estimate_room_summary(self.registry.planes())

    def floor_plan(self) -> FloorPlan:
        return FloorPlanGenerator(self.settings.floor_plan).from_planes(
            self.registry.planes(), self.corners, self.room_summary()
        )

    # --- measurements ----------------------------------------------------

    def start_measurement(self) -> None:
        self.measuring = True
        self.pending_point = None
        self.last_snap = None

    def cancel_measurement(self) -> None:
        self.measuring = False
        self.pending_point = None
        self.last_snap = None

    def snap(self, point: Sequence[float] | Vec3) -> SnapResult:
        if not self.snap_enabled:
            return SnapResult(point=vec3(point))
        return self.snap_engine.snap(point, self.corners, self.registry.vertical_planes())

    def add_measurement_point(self, point: Sequence[float] | Vec3) -> Optional[LiveMeasurement]:
        """Register a tap. The second tap completes and returns the measurement."""
        if not self.measuring:
            logger.debug("Ignoring measurement point outside measurement mode")
            return None
        result = self.snap(point)
        self.last_snap = result
        if self.pending_point is None:
            self.pending_point = result.point
            return None
        measurement = LiveMeasurement(self.pending_point, result.point)
        self.measurements.append(measurement)
        self.pending_point = None
        logger.info("Measurement {} added: {:.3f} m", measurement.id, measurement.distance)
        return measurement

    def add_measurement_at(self, session: SensorSession, view_point: Tuple[float, float]) -> Optional[LiveMeasurement]:
        hit = session.raycast(view_point)
        if hit is None:
            logger.debug("Raycast at {} hit nothing", view_point)
            return None
        return self.add_measurement_point(hit.position)

    def delete_measurement(self, measurement_id: str) -> bool:
        before = len(self.measurements)
        self.measurements = [m for m in self.measurements if m.id != measurement_id]
        return len(self.measurements) != before

    def clear_measurements(self) -> None:
        self.measurements.clear()

    # --- frames ----------------------------------------------------------

    def place_frame(
        self,
        position: Sequence[float] | Vec3,
        plane_id: Optional[str] = None,
        size: Tuple[float, float] = (LIVE_FRAME_SIZE, LIVE_FRAME_SIZE),
        image: Optional[bytes] = None,
    ) -> PlacedFrame:
        """Place a frame, aligned to the plane when one is given.

        A frame next to a second wall forming a corner with its plane is
        flagged as a corner frame and keeps its tap position.
        """
        pos = vec3(position)
        plane = self.registry.get(plane_id) if plane_id else None
        frame = PlacedFrame(
            position=pos,
            width_m=size[0],
            height_m=size[1],
            plane_id=plane_id,
            image=image,
            color=self.settings.editor.default_color,
        )
        if plane is not None:
            corner_plane = self._corner_plane(plane, pos)
            frame.right, frame.up = surface_basis(plane)
            if corner_plane is not None:
                frame.is_corner_frame = True
            else:
                frame.position = pos + plane.normal * SURFACE_OFFSET
        self.frames.append(frame)
        logger.info("Placed frame {} (plane={}, corner={})", frame.id, plane_id, frame.is_corner_frame)
        return frame

    def place_frame_at(
        self,
        session: SensorSession,
        view_point: Tuple[float, float],
        size: Tuple[float, float] = (LIVE_FRAME_SIZE, LIVE_FRAME_SIZE),
        image: Optional[bytes] = None,
    ) -> Optional[PlacedFrame]:
        hit = session.raycast(view_point)
        if hit is None:
            return None
        return self.place_frame(hit.position, hit.plane_id, size, image)

    def frame(self, frame_id: str) -> Optional[PlacedFrame]:
        return next((f for f in self.frames if f.id == frame_id), None)

    def move_frame(self, frame_id: str, position: Sequence[float] | Vec3, plane_id: Optional[str] = None) -> bool:
        frame = self.frame(frame_id)
        if frame is None:
            return False
        pos = vec3(position)
        plane = self.registry.get(plane_id) if plane_id else None
        if plane is not None and not frame.is_corner_frame:
            frame.right, frame.up = surface_basis(plane)
            pos = pos + plane.normal * SURFACE_OFFSET
        frame.position = pos
        frame.plane_id = plane_id
        return True

    def resize_frame(self, frame_id: str, width_m: float, height_m: float) -> bool:
        frame = self.frame(frame_id)
        if frame is None:
            return False
        frame.width_m = max(0.0, float(width_m))
        frame.height_m = max(0.0, float(height_m))
        return True

    def set_frame_image(self, frame_id: str, image: Optional[bytes]) -> bool:
        frame = self.frame(frame_id)
        if frame is None:
            return False
        frame.image = image
        return True

    def delete_frame(self, frame_id: str) -> bool:
        before = len(self.frames)
        self.frames = [f for f in self.frames if f.id != frame_id]
        return len(self.frames) != before

    def _corner_plane(self, plane: Plane, position: Vec3) -> Optional[Plane]:
        for other in self.registry.vertical_planes():
            if self.corner_detector.is_corner_pair(plane, other, near=position):
                return other
        return None

    # --- capture ---------------------------------------------------------

    def capture(
        self,
        session: SensorSession,
        store: Optional["DocumentStore"] = None,
        captured_at: Optional[datetime] = None,
    ) -> CaptureResult:
        """Freeze the scene into a document for the current camera frame.

        Raises:
            CaptureUnavailable: without a camera frame or with an empty image.
            StorageFailure: when saving fails; anything already written is removed.
        """
        self.detect_corners()
        frame = session.current_frame()
        if frame is None:
            raise CaptureUnavailable("No camera frame available")
        if frame.image_width <= 0 or frame.image_height <= 0:
            raise CaptureUnavailable(
                "Camera image has no size",
                {"size": f"{frame.image_width}x{frame.image_height}"},
            )

        moment = captured_at or utcnow()
        image_scale = frame.image_width / frame.view_width if frame.view_width else 1.0
        projector = SceneProjector(
            Camera.from_flat(frame.intrinsics, frame.transform, frame.image_width, frame.image_height),
            self.settings.projection,
        )
        document = projector.project_scene(
            planes=self.registry.planes(),
            corners=self.corners,
            measurements=self.measurements,
            frames=self.frames,
            lidar_available=bool(session.is_lidar_available),
            image_scale=image_scale,
            captured_at=moment,
        )

        capture_id = None
        if store is not None:
            capture_id = capture_id_for(moment)
            try:
                store.save_capture_image(frame.image, capture_id)
                store.save_document(document, capture_id)
            except StorageFailure:
                self._discard_capture(store, capture_id)
                raise
        logger.info("Captured scene {}", capture_id or "(unsaved)")
        return CaptureResult(document=document, image=frame.image, capture_id=capture_id)

    @staticmethod
    def _discard_capture(store: "DocumentStore", capture_id: str) -> None:
        try:
            store.delete_capture(capture_id)
        except StorageFailure as exc:
            logger.error("Could not roll back partial capture {}: {}", capture_id, exc.message)
        else:
            logger.warning("Rolled back partial capture {}", capture_id)


def surface_basis(plane: Plane) -> Tuple[Vec3, Vec3]:
    """Right/up for a frame lying flat on ``plane``, facing away from it."""
    normal = plane.normal
    if plane.is_vertical:
        up = unit_or(WORLD_UP - float(np.dot(WORLD_UP, normal)) * normal, WORLD_UP, MIN_NORMAL_LENGTH)
        right = unit_or(np.cross(up, normal), plane.right)
        return right, up
    face = -WORLD_UP if plane.effective_classification == PlaneClassification.CEILING else WORLD_UP
    right = plane.right
    up = unit_or(np.cross(face, right), plane.forward)
    return right, up


__all__ = ["CaptureResult", "LiveScan", "capture_id_for", "surface_basis"]
