from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SelectionKind(str, Enum):
    MEASUREMENT = "measurement"
    MEASUREMENT_ENDPOINT_A = "measurementEndpointA"
    MEASUREMENT_ENDPOINT_B = "measurementEndpointB"
    FRAME = "frame"
    FRAME_RESIZE_HANDLE = "frameResizeHandle"
    PERSPECTIVE_FRAME = "perspectiveFrame"
    TEXT_ANNOTATION = "textAnnotation"

    @property
    def is_measurement(self) -> bool:
        return self in (
            SelectionKind.MEASUREMENT,
            SelectionKind.MEASUREMENT_ENDPOINT_A,
            SelectionKind.MEASUREMENT_ENDPOINT_B,
        )

    @property
    def is_frame(self) -> bool:
        return self in (SelectionKind.FRAME, SelectionKind.FRAME_RESIZE_HANDLE)


@dataclass(frozen=True)
class SelectableItem:
    """What a pointer resolved to; ``item_id`` is the owning entity's id."""

    kind: SelectionKind
    item_id: str

    def owner(self) -> "SelectableItem":
        """The whole entity, dropping endpoint/handle sub-parts."""
        if self.kind.is_measurement:
            return SelectableItem(SelectionKind.MEASUREMENT, self.item_id)
        if self.kind.is_frame:
            return SelectableItem(SelectionKind.FRAME, self.item_id)
        return self


__all__ = ["SelectableItem", "SelectionKind"]
