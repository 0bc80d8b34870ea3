from __future__ import annotations

from collections import deque
from typing import Deque, Optional

from scancore.annotate.models import AnnotationDocument
from scancore.geometry.contract import UNDO_CAPACITY


class UndoHistory:
    """Bounded stacks of full document snapshots.

    Every entry is a deep copy, so later edits to the live document never leak
    into the history.
    """

    def __init__(self, capacity: int = UNDO_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._undo: Deque[AnnotationDocument] = deque(maxlen=capacity)
        self._redo: Deque[AnnotationDocument] = deque(maxlen=capacity)

    def push(self, document: AnnotationDocument) -> None:
        """Record the state before a mutation. Clears the redo stack."""
        self._undo.append(document.snapshot())
        self._redo.clear()

    def undo(self, current: AnnotationDocument) -> Optional[AnnotationDocument]:
        if not self._undo:
            return None
        self._redo.append(current.snapshot())
        return self._undo.pop()

    def redo(self, current: AnnotationDocument) -> Optional[AnnotationDocument]:
        if not self._redo:
            return None
        self._undo.append(current.snapshot())
        return self._redo.pop()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)


__all__ = ["UndoHistory"]
