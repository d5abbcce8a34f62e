"""s3-stream-archive - stream S3 objects into zip or tar archives without buffering them."""

from __future__ import annotations

from .archive import ArchiveBuilder, build_archive, group_entries_by_bucket
from .exceptions import (
    ArchiveAbortedError,
    ArchiveWriteError,
    EmptyDirectoryError,
    ErrorKind,
    FetchFailedError,
    InvalidSourceKeyError,
    ListingFailedError,
    NoClientForBucketError,
    S3StreamArchiveError,
)
from .expander import expand_directory
from .fetcher import fetch_and_append, resolve_file_entry
from .naming import (
    is_folder_marker,
    is_valid_source_key,
    normalize_prefix,
    resolve_name,
)
from .routing import (
    BucketClients,
    ClientRouting,
    SingleClient,
    resolve_client,
    routing_from_value,
)
from .settings import ArchiveSettings, S3Settings
from .stream import ArchiveStream, StreamState
from .types import (
    ArchiveEntry,
    ArchiveMemberInfo,
    ArchiveOptions,
    ArchiveRequest,
    DirEntry,
    EntryMetadata,
    FileEntry,
    ResolvedEntry,
    StreamingBodyLike,
    parse_entry,
    read_entries_jsonl,
)

__all__ = [
    # Main entry points
    "build_archive",
    "ArchiveBuilder",
    "ArchiveStream",
    "StreamState",
    # Types
    "ArchiveEntry",
    "FileEntry",
    "DirEntry",
    "ResolvedEntry",
    "EntryMetadata",
    "ArchiveOptions",
    "ArchiveRequest",
    "ArchiveMemberInfo",
    "StreamingBodyLike",
    # Routing
    "ClientRouting",
    "SingleClient",
    "BucketClients",
    "resolve_client",
    "routing_from_value",
    # Settings
    "S3Settings",
    "ArchiveSettings",
    # Exceptions
    "S3StreamArchiveError",
    "ErrorKind",
    "NoClientForBucketError",
    "InvalidSourceKeyError",
    "EmptyDirectoryError",
    "ListingFailedError",
    "FetchFailedError",
    "ArchiveAbortedError",
    "ArchiveWriteError",
    # Building blocks
    "expand_directory",
    "fetch_and_append",
    "resolve_file_entry",
    "group_entries_by_bucket",
    "resolve_name",
    "normalize_prefix",
    "is_folder_marker",
    "is_valid_source_key",
    "parse_entry",
    "read_entries_jsonl",
]
