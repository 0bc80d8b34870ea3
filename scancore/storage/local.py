from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

from loguru import logger

from scancore.annotate.models import AnnotationDocument
from scancore.exceptions import StorageFailure
from scancore.storage import frame_image_filename


class LocalDocumentStore:
    """Captures on disk: ``<id>.json``, ``<id>.jpg`` and ``<id>_frames/<entity>.jpg``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Cannot create capture directory: {exc}", {"root": str(self.root)}) from exc

    def _document_path(self, capture_id: str) -> Path:
        return self.root / f"{capture_id}.json"

    def _image_path(self, capture_id: str) -> Path:
        return self.root / f"{capture_id}.jpg"

    def _frames_dir(self, capture_id: str) -> Path:
        return self.root / f"{capture_id}_frames"

    def _write(self, path: Path, data: bytes) -> str:
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            if tmp.exists():
                tmp.unlink()
            raise StorageFailure(f"Cannot write {path.name}: {exc}", {"path": str(path)}) from exc
        return str(path)

    def _read(self, path: Path) -> Optional[bytes]:
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageFailure(f"Cannot read {path.name}: {exc}", {"path": str(path)}) from exc

    def load_document(self, capture_id: str) -> Optional[AnnotationDocument]:
        raw = self._read(self._document_path(capture_id))
        if raw is None:
            return None
        document = AnnotationDocument.from_json(raw)
        logger.info("Loaded capture {}", capture_id)
        return document

    def save_document(self, document: AnnotationDocument, capture_id: str) -> str:
        uri = self._write(self._document_path(capture_id), document.to_json().encode("utf-8"))
        logger.info("Saved capture {}", capture_id)
        return uri

    def save_capture_image(self, image: bytes, capture_id: str) -> str:
        return self._write(self._image_path(capture_id), image)

    def load_capture_image(self, capture_id: str) -> Optional[bytes]:
        return self._read(self._image_path(capture_id))

    def save_image(self, image: bytes, capture_id: str, entity_id: str) -> str:
        filename = frame_image_filename(entity_id)
        self._write(self._frames_dir(capture_id) / filename, image)
        return filename

    def load_image(self, capture_id: str, filename: str) -> Optional[bytes]:
        # only bare names are accepted
        return self._read(self._frames_dir(capture_id) / Path(filename).name)

    def list_captures(self) -> List[str]:
        return sorted((p.stem for p in self.root.glob("*.json")), reverse=True)

    def delete_capture(self, capture_id: str) -> bool:
        removed = False
        try:
            for path in (self._document_path(capture_id), self._image_path(capture_id)):
                if path.exists():
                    path.unlink()
                    removed = True
            frames = self._frames_dir(capture_id)
            if frames.exists():
                shutil.rmtree(frames)
                removed = True
        except OSError as exc:
            raise StorageFailure(f"Cannot delete capture {capture_id}: {exc}", {"capture_id": capture_id}) from exc
        if removed:
            logger.info("Deleted capture {}", capture_id)
        return removed


__all__ = ["LocalDocumentStore"]
