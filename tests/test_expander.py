from __future__ import annotations

import pytest
from botocore.exceptions import ClientError
from conftest import FakeS3Client, ScriptedListClient

from s3streamarchive.exceptions import EmptyDirectoryError, ErrorKind, ListingFailedError
from s3streamarchive.expander import expand_directory
from s3streamarchive.types import DirEntry, ResolvedEntry


@pytest.fixture
def dir_client() -> FakeS3Client:
    return FakeS3Client.from_keys({"bucket": ["dir/x.txt", "dir/sub/y.txt", "dir2/z.txt", "other.txt"]})


def test_strips_prefix_by_default(dir_client):
    resolved = expand_directory(dir_client, DirEntry(bucket="bucket", prefix="dir/"))

    assert [(r.key, r.name) for r in resolved] == [
        ("dir/sub/y.txt", "sub/y.txt"),
        ("dir/x.txt", "x.txt"),
    ]
    assert all(r.bucket == "bucket" for r in resolved)


def test_preserves_folder_structure(dir_client):
    resolved = expand_directory(dir_client, DirEntry(bucket="bucket", prefix="dir/", preserve_folder_structure=True))

    assert [r.name for r in resolved] == ["dir/sub/y.txt", "dir/x.txt"]


def test_prefix_is_normalized(dir_client):
    resolved = expand_directory(dir_client, DirEntry(bucket="bucket", prefix="dir"))

    assert dir_client.calls_for("list_objects_v2")[0]["Prefix"] == "dir/"
    assert {r.key for r in resolved} == {"dir/x.txt", "dir/sub/y.txt"}


def test_empty_prefix_lists_whole_bucket(dir_client):
    resolved = expand_directory(dir_client, DirEntry(bucket="bucket", prefix=""))

    assert [r.name for r in resolved] == ["dir/sub/y.txt", "dir/x.txt", "dir2/z.txt", "other.txt"]


def test_pagination_yields_every_key_once_in_order():
    keys = [f"data/part-{i:02d}.csv" for i in range(5)]
    client = FakeS3Client.from_keys({"bucket": keys}, page_size=2)

    resolved = expand_directory(client, DirEntry(bucket="bucket", prefix="data/"))

    assert [r.key for r in resolved] == keys
    tokens = [call["ContinuationToken"] for call in client.calls_for("list_objects_v2")]
    assert tokens == [None, "2", "4"]


def test_folder_markers_are_skipped():
    client = FakeS3Client.from_keys({"bucket": ["dir/", "dir/sub/", "dir/sub/a.txt"]})

    resolved = expand_directory(client, DirEntry(bucket="bucket", prefix="dir/"))

    assert [r.name for r in resolved] == ["sub/a.txt"]


def test_only_folder_markers_expand_to_nothing():
    client = FakeS3Client.from_keys({"bucket": ["dir/", "dir/sub/"]})

    assert expand_directory(client, DirEntry(bucket="bucket", prefix="dir/")) == []


def test_empty_directory_raises(dir_client):
    with pytest.raises(EmptyDirectoryError) as excinfo:
        expand_directory(dir_client, DirEntry(bucket="bucket", prefix="missing/"))

    assert excinfo.value.kind is ErrorKind.EMPTY_DIRECTORY
    assert excinfo.value.prefix == "missing/"
    assert excinfo.value.bucket == "bucket"


def test_truncated_empty_page_continues_to_next_page():
    client = ScriptedListClient(
        [
            {"IsTruncated": True, "NextContinuationToken": "t1", "KeyCount": 0},
            {"IsTruncated": False, "Contents": [{"Key": "dir/a.txt"}], "KeyCount": 1},
        ]
    )

    resolved = expand_directory(client, DirEntry(bucket="bucket", prefix="dir/"))

    assert resolved == [ResolvedEntry(bucket="bucket", key="dir/a.txt", name="a.txt")]
    assert client.requests[1]["ContinuationToken"] == "t1"


def test_listing_failure_mid_pagination_discards_results():
    cause = ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "ListObjectsV2")
    client = ScriptedListClient(
        [
            {"IsTruncated": True, "NextContinuationToken": "t1", "Contents": [{"Key": "dir/a.txt"}]},
            cause,
        ]
    )

    with pytest.raises(ListingFailedError) as excinfo:
        expand_directory(client, DirEntry(bucket="bucket", prefix="dir/"))

    assert excinfo.value.kind is ErrorKind.LISTING_FAILED
    assert excinfo.value.prefix == "dir/"
    assert excinfo.value.cause is cause
    assert excinfo.value.__cause__ is cause


def test_truncated_page_without_token_fails():
    client = ScriptedListClient([{"IsTruncated": True, "Contents": [{"Key": "dir/a.txt"}]}])

    with pytest.raises(ListingFailedError):
        expand_directory(client, DirEntry(bucket="bucket", prefix="dir/"))


def test_metadata_is_passed_through(dir_client):
    metadata = {"mode": 0o600}
    resolved = expand_directory(dir_client, DirEntry(bucket="bucket", prefix="dir/", metadata=metadata))

    assert all(r.metadata == metadata for r in resolved)
