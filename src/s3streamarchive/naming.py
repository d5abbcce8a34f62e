"""Archive-name resolution and key helpers."""

from __future__ import annotations

import re

SEPARATOR = "/"


def is_folder_marker(key: str | None) -> bool:
    """Return True for keys that only mark a folder (empty or ending in ``/``)."""
    return not key or key.endswith(SEPARATOR)


def is_valid_source_key(key: str | None) -> bool:
    """Return True if *key* can be fetched as a single object."""
    return not is_folder_marker(key)


def normalize_prefix(prefix: str) -> str:
    """Normalize a directory prefix so it ends with exactly one ``/``.

    Parameters
    ----------
    prefix : str
        Raw prefix string.

    Returns
    -------
    str
        Normalized prefix. The empty prefix (whole bucket) stays empty.
    """
    prefix = re.sub(r"/+$", "", prefix)
    if not prefix:
        return ""
    return prefix + SEPARATOR


def basename(key: str) -> str:
    """Return the last path segment of *key*."""
    return key.rsplit(SEPARATOR, 1)[-1]


def resolve_name(
    source_key: str,
    explicit_name: str | None = None,
    preserve_folder_structure: bool = False,
    strip_prefix: str | None = None,
) -> str:
    """Compute the in-archive path of an object.

    Parameters
    ----------
    source_key : str
        S3 key of the object.
    explicit_name : str | None, optional
        Name chosen by the caller. Always wins when non-empty.
    preserve_folder_structure : bool, optional
        Keep the full key as the archive name. Defaults to False.
    strip_prefix : str | None, optional
        Directory prefix the key was listed under. When set (and folder
        structure is not preserved) the prefix is removed instead of keeping
        only the basename.

    Returns
    -------
    str
        Archive name.
    """
    if explicit_name:
        return explicit_name
    if preserve_folder_structure:
        return source_key
    if strip_prefix is not None and source_key.startswith(strip_prefix):
        return source_key[len(strip_prefix):]
    return basename(source_key)
