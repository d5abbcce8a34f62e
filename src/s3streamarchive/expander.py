"""Expansion of directory entries into the objects listed under their prefix."""

from __future__ import annotations

import logging
from typing import Any

from .exceptions import EmptyDirectoryError, ListingFailedError
from .naming import is_folder_marker, normalize_prefix, resolve_name
from .types import DirEntry, ResolvedEntry

logger = logging.getLogger(__name__)


def _list_page(client: Any, bucket: str, prefix: str, continuation_token: str | None) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
    if continuation_token:
        kwargs["ContinuationToken"] = continuation_token
    try:
        return client.list_objects_v2(**kwargs)
    except Exception as e:
        raise ListingFailedError(bucket, prefix, e) from e


def expand_directory(client: Any, entry: DirEntry) -> list[ResolvedEntry]:
    """Resolve a directory entry into one entry per object under its prefix.

    Keys are listed with ``list_objects_v2``, following continuation tokens
    until the listing is no longer truncated. The whole listing is collected
    before anything is returned, so a failure never leaves a half-expanded
    directory behind.

    Parameters
    ----------
    client : Any
        boto3 S3 client for ``entry.bucket``.
    entry : DirEntry
        Directory entry to expand.

    Returns
    -------
    list[ResolvedEntry]
        Entries in listing order. Folder markers are skipped, so this may be
        empty when the prefix only holds markers.

    Raises
    ------
    ListingFailedError
        If any listing call fails.
    EmptyDirectoryError
        If no key at all matched the prefix.
    """
    prefix = normalize_prefix(entry.prefix)
    resolved: list[ResolvedEntry] = []
    matched = 0
    continuation_token: str | None = None
    page_number = 0

    while True:
        page = _list_page(client, entry.bucket, prefix, continuation_token)
        page_number += 1
        contents = page.get("Contents") or []
        matched += len(contents)
        logger.debug(
            "Listed page %d of s3://%s/%s: %d keys", page_number, entry.bucket, prefix, len(contents)
        )

        for obj in contents:
            key = obj.get("Key")
            if is_folder_marker(key):
                continue
            resolved.append(
                ResolvedEntry(
                    bucket=entry.bucket,
                    key=key,
                    name=resolve_name(
                        key,
                        preserve_folder_structure=entry.preserve_folder_structure,
                        strip_prefix=prefix,
                    ),
                    metadata=entry.metadata,
                )
            )

        if not page.get("IsTruncated"):
            break

        continuation_token = page.get("NextContinuationToken")
        if not continuation_token:
            raise ListingFailedError(
                entry.bucket,
                prefix,
                ValueError("listing is truncated but has no continuation token"),
            )

    if matched == 0:
        raise EmptyDirectoryError(entry.bucket, prefix)

    logger.debug("Expanded s3://%s/%s into %d entries", entry.bucket, prefix, len(resolved))
    return resolved
