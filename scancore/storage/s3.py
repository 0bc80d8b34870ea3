from __future__ import annotations

from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from scancore.annotate.models import AnnotationDocument
from scancore.exceptions import S3StorageFailure
from scancore.storage import frame_image_filename

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3DocumentStore:
    """Same layout as the local store, under ``s3://<bucket>/<prefix>/``."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise S3StorageFailure("An S3 bucket name is required")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        if client is None:
            session = boto3.session.Session(region_name=region) if region else boto3.session.Session()
            client = session.client("s3")
        self.client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def _uri(self, key: str) -> str:
        return f"s3://{self.bucket}/{self._key(key)}"

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=self._key(key), Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise S3StorageFailure(f"Upload failed: {exc}", {"key": self._key(key)}) from exc
        return self._uri(key)

    def _get(self, key: str) -> Optional[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise S3StorageFailure(f"Download failed: {exc}", {"key": self._key(key)}) from exc
        except BotoCoreError as exc:
            raise S3StorageFailure(f"Download failed: {exc}", {"key": self._key(key)}) from exc
        return response["Body"].read()

    def load_document(self, capture_id: str) -> Optional[AnnotationDocument]:
        raw = self._get(f"{capture_id}.json")
        if raw is None:
            return None
        return AnnotationDocument.from_json(raw)

    def save_document(self, document: AnnotationDocument, capture_id: str) -> str:
        uri = self._put(f"{capture_id}.json", document.to_json().encode("utf-8"), "application/json")
        logger.info("Saved capture {} to {}", capture_id, uri)
        return uri

    def save_capture_image(self, image: bytes, capture_id: str) -> str:
        return self._put(f"{capture_id}.jpg", image, "image/jpeg")

    def load_capture_image(self, capture_id: str) -> Optional[bytes]:
        return self._get(f"{capture_id}.jpg")

    def save_image(self, image: bytes, capture_id: str, entity_id: str) -> str:
        filename = frame_image_filename(entity_id)
        self._put(f"{capture_id}_frames/{filename}", image, "image/jpeg")
        return filename

    def load_image(self, capture_id: str, filename: str) -> Optional[bytes]:
        return self._get(f"{capture_id}_frames/{filename.rsplit('/', 1)[-1]}")

    def _list_keys(self, prefix: str) -> List[str]:
        keys: List[str] = []
        params = {"Bucket": self.bucket, "Prefix": self._key(prefix)}
        try:
            while True:
                response = self.client.list_objects_v2(**params)
                keys.extend(obj["Key"] for obj in response.get("Contents", []))
                if not response.get("IsTruncated"):
                    break
                params["ContinuationToken"] = response["NextContinuationToken"]
        except (BotoCoreError, ClientError) as exc:
            raise S3StorageFailure(f"Listing failed: {exc}", {"prefix": self._key(prefix)}) from exc
        return keys

    def list_captures(self) -> List[str]:
        ids = []
        base = self._key("")
        for key in self._list_keys(""):
            name = key[len(base) :]
            # only top-level documents, nothing in nested folders
            if name.endswith(".json") and "/" not in name:
                ids.append(name[: -len(".json")])
        return sorted(ids, reverse=True)

    def delete_capture(self, capture_id: str) -> bool:
        keys = [k for k in self._list_keys(capture_id) if self._belongs_to(k, capture_id)]
        if not keys:
            return False
        try:
            for key in keys:
                self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise S3StorageFailure(f"Delete failed: {exc}", {"capture_id": capture_id}) from exc
        logger.info("Deleted capture {} ({} objects)", capture_id, len(keys))
        return True

    def _belongs_to(self, key: str, capture_id: str) -> bool:
        own = {self._key(f"{capture_id}.json"), self._key(f"{capture_id}.jpg")}
        return key in own or key.startswith(self._key(f"{capture_id}_frames/"))


__all__ = ["S3DocumentStore"]
