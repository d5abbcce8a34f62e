"""Domain-specific exceptions for s3-stream-archive."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds a build can end with."""

    NO_CLIENT_FOR_BUCKET = "no_client_for_bucket"
    INVALID_SOURCE_KEY = "invalid_source_key"
    EMPTY_DIRECTORY = "empty_directory"
    LISTING_FAILED = "listing_failed"
    FETCH_FAILED = "fetch_failed"
    ARCHIVE_ABORTED = "archive_aborted"
    ARCHIVE_WRITE = "archive_write"


class S3StreamArchiveError(Exception):
    """Base exception for s3-stream-archive errors.

    Every subclass sets :attr:`kind`, so callers can dispatch on
    ``error.kind`` instead of on the concrete class.
    """

    kind: ErrorKind

    def __init__(self, message: str, *, bucket: str | None = None, cause: BaseException | None = None) -> None:
        self.bucket = bucket
        self.cause = cause
        super().__init__(message)


class NoClientForBucketError(S3StreamArchiveError):
    """Raised when the client routing has no client for a referenced bucket."""

    kind = ErrorKind.NO_CLIENT_FOR_BUCKET

    def __init__(self, bucket: str) -> None:
        super().__init__(f"No S3 client was provided for bucket: {bucket}", bucket=bucket)


class InvalidSourceKeyError(S3StreamArchiveError):
    """Raised when a file entry's key is empty or ends with a separator."""

    kind = ErrorKind.INVALID_SOURCE_KEY

    def __init__(self, bucket: str, key: str) -> None:
        self.key = key
        super().__init__(
            f"Invalid source key {key!r} in bucket {bucket}: keys must be non-empty and must not end with '/'",
            bucket=bucket,
        )


class EmptyDirectoryError(S3StreamArchiveError):
    """Raised when a directory entry's prefix matches no objects at all."""

    kind = ErrorKind.EMPTY_DIRECTORY

    def __init__(self, bucket: str, prefix: str) -> None:
        self.prefix = prefix
        super().__init__(f"No objects found under prefix {prefix!r} in bucket {bucket}", bucket=bucket)


class ListingFailedError(S3StreamArchiveError):
    """Raised when listing the objects under a prefix fails."""

    kind = ErrorKind.LISTING_FAILED

    def __init__(self, bucket: str, prefix: str, cause: BaseException | None) -> None:
        self.prefix = prefix
        super().__init__(
            f"Failed to list objects under prefix {prefix!r} in bucket {bucket}. "
            f"Check that your credentials allow access. Original error: {cause}",
            bucket=bucket,
            cause=cause,
        )


class FetchFailedError(S3StreamArchiveError):
    """Raised when an object's byte stream cannot be obtained."""

    kind = ErrorKind.FETCH_FAILED

    def __init__(self, bucket: str, key: str, cause: BaseException | None) -> None:
        self.key = key
        super().__init__(
            f"Failed to get object stream for s3://{bucket}/{key}. "
            f"Check that your credentials allow access. Original error: {cause}",
            bucket=bucket,
            cause=cause,
        )


class ArchiveAbortedError(S3StreamArchiveError):
    """Raised when an archive stream is used after it stopped accepting entries."""

    kind = ErrorKind.ARCHIVE_ABORTED

    def __init__(self, message: str = "Archive stream is no longer accepting entries") -> None:
        super().__init__(message)


class ArchiveWriteError(S3StreamArchiveError):
    """Raised when the archive writer cannot encode an entry."""

    kind = ErrorKind.ARCHIVE_WRITE

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(f"Cannot write archive entry {name!r}: {message}")
