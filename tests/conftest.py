"""Shared fixtures: an in-memory S3 client and archive readers."""

from __future__ import annotations

import io
import tarfile
import zipfile
from datetime import datetime, timezone
from typing import Any

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

LAST_MODIFIED = datetime(2024, 5, 17, 12, 30, 0, tzinfo=timezone.utc)

MOCK_BUCKETS = {
    "mockedBucket1": [
        "folder1/folder2/folder3/file1.txt",
        "folder1/folder2/folder3/file2.txt",
        "folder1/folder2/folder3/file3.txt",
        "test_file1.txt",
        "test_file2.txt",
        "test_file3.txt",
        "test_file4.txt",
    ],
    "mockedBucket2": ["test_file1.txt", "test_file2.txt", "test_file3.txt", "test_file4.txt"],
}


def object_body(bucket: str, key: str) -> bytes:
    return f"{bucket}/{key}".encode()


class FakeS3Client:
    """Implements the slice of the boto3 S3 client the archive code uses."""

    def __init__(self, objects: dict[str, dict[str, bytes]] | None = None, *, page_size: int = 1000) -> None:
        self.objects = {bucket: dict(items) for bucket, items in (objects or {}).items()}
        self.page_size = page_size
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @classmethod
    def from_keys(cls, buckets: dict[str, list[str]], **kwargs: Any) -> FakeS3Client:
        return cls(
            {bucket: {key: object_body(bucket, key) for key in keys} for bucket, keys in buckets.items()},
            **kwargs,
        )

    def calls_for(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.calls if op == operation]

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self.calls.append(("get_object", {"Bucket": Bucket, "Key": Key}))
        try:
            data = self.objects[Bucket][Key]
        except KeyError:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        return {
            "Body": StreamingBody(io.BytesIO(data), len(data)),
            "ContentLength": len(data),
            "LastModified": LAST_MODIFIED,
        }

    def list_objects_v2(self, Bucket: str, Prefix: str = "", ContinuationToken: str | None = None) -> dict[str, Any]:
        self.calls.append(("list_objects_v2", {"Bucket": Bucket, "Prefix": Prefix, "ContinuationToken": ContinuationToken}))
        keys = sorted(key for key in self.objects.get(Bucket, {}) if key.startswith(Prefix))
        start = int(ContinuationToken or 0)
        page = keys[start:start + self.page_size]
        truncated = start + self.page_size < len(keys)
        response: dict[str, Any] = {"IsTruncated": truncated, "KeyCount": len(page), "Prefix": Prefix}
        if page:
            response["Contents"] = [{"Key": key, "Size": len(self.objects[Bucket][key])} for key in page]
        if truncated:
            response["NextContinuationToken"] = str(start + self.page_size)
        return response

    def upload_fileobj(self, Fileobj: Any, Bucket: str, Key: str) -> None:
        self.calls.append(("upload_fileobj", {"Bucket": Bucket, "Key": Key}))
        self.objects.setdefault(Bucket, {})[Key] = Fileobj.read()


class ScriptedListClient:
    """Returns (or raises) prepared ``list_objects_v2`` responses in order."""

    def __init__(self, pages: list[dict[str, Any] | BaseException]) -> None:
        self.pages = list(pages)
        self.requests: list[dict[str, Any]] = []

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        self.requests.append(kwargs)
        page = self.pages.pop(0)
        if isinstance(page, BaseException):
            raise page
        return page


def read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


def zip_names(data: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return zf.namelist()


def read_tar(data: bytes, mode: str = "r:") -> dict[str, bytes]:
    with tarfile.open(fileobj=io.BytesIO(data), mode=mode) as tar:
        return {member.name: tar.extractfile(member).read() for member in tar.getmembers()}


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client.from_keys(MOCK_BUCKETS)
