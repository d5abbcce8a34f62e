"""Fetching object bodies and handing them to the archive writer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import FetchFailedError, InvalidSourceKeyError
from .naming import is_valid_source_key, resolve_name
from .types import EntryMetadata, FileEntry, ResolvedEntry

if TYPE_CHECKING:
    from .stream import ArchiveStream

logger = logging.getLogger(__name__)


def resolve_file_entry(entry: FileEntry) -> ResolvedEntry:
    """Resolve the archive name of a standalone file entry."""
    return ResolvedEntry(
        bucket=entry.bucket,
        key=entry.key,
        name=resolve_name(
            entry.key,
            explicit_name=entry.name,
            preserve_folder_structure=entry.preserve_folder_structure,
        ),
        metadata=entry.metadata,
    )


def _entry_metadata(entry: ResolvedEntry, response: dict[str, Any]) -> EntryMetadata:
    metadata: EntryMetadata = dict(entry.metadata or {})  # type: ignore[assignment]
    if "size" not in metadata and response.get("ContentLength") is not None:
        metadata["size"] = int(response["ContentLength"])
    if "date" not in metadata and response.get("LastModified") is not None:
        metadata["date"] = response["LastModified"]
    return metadata


def fetch_and_append(client: Any, entry: ResolvedEntry, writer: ArchiveStream) -> None:
    """Fetch one object and append its body to *writer*.

    Returns once the writer accepted the body; draining it into the archive
    happens on the reading side of the stream.

    Parameters
    ----------
    client : Any
        boto3 S3 client for ``entry.bucket``.
    entry : ResolvedEntry
        Object to fetch.
    writer : ArchiveStream
        Archive being built.

    Raises
    ------
    InvalidSourceKeyError
        If the key is empty or ends with ``/``. No request is made.
    FetchFailedError
        If the request fails or the response carries no readable body.
    ArchiveAbortedError
        If the writer stopped accepting entries.
    """
    if not is_valid_source_key(entry.key):
        raise InvalidSourceKeyError(entry.bucket, entry.key)

    try:
        response = client.get_object(Bucket=entry.bucket, Key=entry.key)
    except Exception as e:
        raise FetchFailedError(entry.bucket, entry.key, e) from e

    body = response.get("Body") if response else None
    if body is None:
        raise FetchFailedError(entry.bucket, entry.key, ValueError("response has no body"))
    if not callable(getattr(body, "read", None)):
        raise FetchFailedError(
            entry.bucket, entry.key, TypeError(f"body is not a readable stream: {type(body).__name__}")
        )

    logger.debug("Fetched s3://%s/%s as %r", entry.bucket, entry.key, entry.name)
    writer.append(body, entry.name, _entry_metadata(entry, response))
