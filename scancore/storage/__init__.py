"""Document storage abstraction (local filesystem or S3)."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from scancore.annotate.models import AnnotationDocument
    from scancore.settings import StorageSettings


class DocumentStore(Protocol):
    def load_document(self, capture_id: str) -> Optional["AnnotationDocument"]:  # None when missing
        ...

    def save_document(self, document: "AnnotationDocument", capture_id: str) -> str:  # returns uri
        ...

    def load_image(self, capture_id: str, filename: str) -> Optional[bytes]:
        ...

    def save_image(self, image: bytes, capture_id: str, entity_id: str) -> str:  # returns filename
        ...

    def save_capture_image(self, image: bytes, capture_id: str) -> str:  # returns uri
        ...

    def load_capture_image(self, capture_id: str) -> Optional[bytes]:
        ...

    def list_captures(self) -> List[str]:
        ...

    def delete_capture(self, capture_id: str) -> bool:
        ...


def frame_image_filename(entity_id: str) -> str:
    return f"{entity_id}.jpg"


def open_store(settings: "StorageSettings") -> DocumentStore:
    if settings.backend == "s3":
        from scancore.storage.s3 import S3DocumentStore

        return S3DocumentStore(bucket=settings.bucket or "", prefix=settings.prefix, region=settings.region)
    from scancore.storage.local import LocalDocumentStore

    return LocalDocumentStore(settings.root)


__all__ = ["DocumentStore", "frame_image_filename", "open_store"]
