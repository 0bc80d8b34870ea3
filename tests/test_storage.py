import io
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from scancore.annotate.models import AnnotationDocument
from scancore.exceptions import S3StorageFailure, SerializationFailure, StorageFailure
from scancore.settings import StorageSettings
from scancore.storage import frame_image_filename, open_store
from scancore.storage.local import LocalDocumentStore
from scancore.storage.s3 import S3DocumentStore
from tests.utils_scene import document, frame, text


class StubS3Client:
    """Dict-backed stand-in for the boto3 S3 client calls the store makes."""

    def __init__(self, page_size: int = 1000) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.page_size = page_size
        self.fail_puts = False

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_puts:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.objects[Key] = Body
        self.content_types[Key] = ContentType

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def list_objects_v2(self, Bucket, Prefix, ContinuationToken=None):
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        start = int(ContinuationToken or 0)
        page = keys[start : start + self.page_size]
        response = {"Contents": [{"Key": k} for k in page], "IsTruncated": start + self.page_size < len(keys)}
        if response["IsTruncated"]:
            response["NextContinuationToken"] = str(start + self.page_size)
        return response

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)


def _sample():
    return document(frames=[frame("F1", 0.1, 0.1)], textAnnotations=[text("T1", 0.5, 0.5)])


def test_local_store_round_trip(tmp_path: Path):
    store = LocalDocumentStore(tmp_path)
    doc = _sample()
    uri = store.save_document(doc, "capture_20260101_120000")
    assert Path(uri).exists()
    assert store.load_document("capture_20260101_120000") == doc
    assert store.load_document("capture_missing") is None


def test_local_store_images(tmp_path: Path):
    store = LocalDocumentStore(tmp_path)
    store.save_capture_image(b"jpeg", "cap")
    assert store.load_capture_image("cap") == b"jpeg"
    filename = store.save_image(b"frame", "cap", "F1")
    assert filename == frame_image_filename("F1") == "F1.jpg"
    assert store.load_image("cap", filename) == b"frame"
    assert (tmp_path / "cap_frames" / "F1.jpg").exists()
    assert store.load_image("cap", "../cap.jpg") is None
    assert not list(tmp_path.rglob("*.tmp"))


def test_local_store_listing_and_delete(tmp_path: Path):
    store = LocalDocumentStore(tmp_path)
    for capture_id in ("capture_20260101_090000", "capture_20260102_090000"):
        store.save_document(_sample(), capture_id)
    store.save_image(b"x", "capture_20260101_090000", "F1")
    assert store.list_captures() == ["capture_20260102_090000", "capture_20260101_090000"]
    assert store.delete_capture("capture_20260101_090000")
    assert not (tmp_path / "capture_20260101_090000_frames").exists()
    assert store.list_captures() == ["capture_20260102_090000"]
    assert not store.delete_capture("capture_20260101_090000")


def test_local_store_rejects_corrupt_documents(tmp_path: Path):
    store = LocalDocumentStore(tmp_path)
    (tmp_path / "broken.json").write_text("{oops", encoding="utf-8")
    with pytest.raises(SerializationFailure):
        store.load_document("broken")


def test_local_store_write_failure(tmp_path: Path):
    store = LocalDocumentStore(tmp_path)
    (tmp_path / "cap_frames").write_text("not a directory", encoding="utf-8")
    with pytest.raises(StorageFailure):
        store.save_image(b"x", "cap", "F1")


def test_s3_store_round_trip():
    client = StubS3Client()
    store = S3DocumentStore("scans", prefix="team/", client=client)
    doc = _sample()
    assert store.save_document(doc, "cap") == "s3://scans/team/cap.json"
    assert client.content_types["team/cap.json"] == "application/json"
    assert store.load_document("cap") == doc
    assert store.load_document("missing") is None
    assert store.save_image(b"img", "cap", "F1") == "F1.jpg"
    assert store.load_image("cap", "F1.jpg") == b"img"
    assert client.content_types["team/cap_frames/F1.jpg"] == "image/jpeg"


def test_s3_listing_pages_and_delete():
    client = StubS3Client(page_size=2)
    store = S3DocumentStore("scans", client=client)
    for capture_id in ("a", "b", "c"):
        store.save_document(AnnotationDocument(), capture_id)
        store.save_capture_image(b"jpeg", capture_id)
    store.save_image(b"img", "a", "F1")
    assert store.list_captures() == ["c", "b", "a"]
    assert store.delete_capture("a")
    assert sorted(client.objects) == ["b.jpg", "b.json", "c.jpg", "c.json"]
    assert not store.delete_capture("a")


def test_s3_errors_become_storage_failures():
    client = StubS3Client()
    client.fail_puts = True
    store = S3DocumentStore("scans", client=client)
    with pytest.raises(S3StorageFailure):
        store.save_document(AnnotationDocument(), "cap")
    with pytest.raises(S3StorageFailure):
        S3DocumentStore("", client=client)


def test_open_store_uses_settings(tmp_path: Path):
    store = open_store(StorageSettings(root=tmp_path / "captures"))
    assert isinstance(store, LocalDocumentStore)
    assert (tmp_path / "captures").is_dir()


def test_s3_listing_ignores_nested_documents():
    client = StubS3Client()
    store = S3DocumentStore("scans", client=client)
    store.save_document(AnnotationDocument(), "cap")
    client.objects["other/x.json"] = b"{}"
    client.objects["cap_frames/meta.json"] = b"{}"
    assert store.list_captures() == ["cap"]

    prefixed = S3DocumentStore("scans", prefix="team", client=client)
    prefixed.save_document(AnnotationDocument(), "mine")
    client.objects["team/archive/old.json"] = b"{}"
    assert prefixed.list_captures() == ["mine"]
