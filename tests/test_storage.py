"""
Tests for export artifact storage (local directory and S3-compatible bucket).
"""
import io

import pytest
from botocore.exceptions import ClientError

from app.core.config import settings
from app.integrations import storage
from app.integrations.storage import (
    StorageConnectionError,
    StorageDownloadError,
    StorageError,
    delete_file,
    read_file,
    save_file,
)


class FakeS3Client:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body):
        self.objects[(Bucket, Key)] = Body

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


@pytest.fixture
def s3(monkeypatch):
    fake = FakeS3Client()
    monkeypatch.setattr(settings, "storage_provider", "s3")
    monkeypatch.setattr(settings, "storage_bucket_name", "exchange-artifacts")
    monkeypatch.setattr(storage, "get_storage_client", lambda: fake)
    return fake


def test_local_round_trip(export_dir):
    path = save_file(b"email\na@example.com\n", "job-1/apprentices.csv")

    assert path == "exports/job-1/apprentices.csv"
    assert (export_dir / path).is_file()
    assert read_file(path) == b"email\na@example.com\n"
    assert delete_file(path) is True
    assert delete_file(path) is False


def test_local_missing_file():
    with pytest.raises(StorageDownloadError, match="not found"):
        read_file("exports/nope.csv")


def test_local_paths_cannot_escape_the_root():
    with pytest.raises(StorageError):
        read_file("../../etc/passwd")


def test_s3_round_trip(s3):
    path = save_file(b"[]", "job-2/apprentices.json")

    assert ("exchange-artifacts", "exports/job-2/apprentices.json") in s3.objects
    assert read_file(path) == b"[]"
    assert delete_file(path) is True
    with pytest.raises(StorageDownloadError, match="not found"):
        read_file(path)


def test_incomplete_s3_configuration(monkeypatch):
    monkeypatch.setattr(settings, "storage_provider", "s3")
    monkeypatch.setattr(settings, "storage_access_key_id", "")

    with pytest.raises(StorageConnectionError):
        storage.get_storage_client()
