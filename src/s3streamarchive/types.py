"""Type definitions for s3streamarchive."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Literal, Protocol, TypedDict, Union

if TYPE_CHECKING:
    from .routing import ClientRouting


ArchiveFormat = Literal["zip", "tar"]

SUPPORTED_FORMATS: tuple[str, ...] = ("zip", "tar")
SUPPORTED_COMPRESSIONS: tuple[str, ...] = ("gzip",)


# Passthrough metadata handed to the archive writer
class EntryMetadata(TypedDict, total=False):
    """Per-entry options for the archive writer."""

    date: datetime  # modification time stored in the archive
    mode: int  # permission bits, e.g. 0o644
    prefix: str  # path prepended to the archive name
    size: int  # content length, filled from the fetch response when absent


# StreamingBody-like protocol
class StreamingBodyLike(Protocol):
    """Protocol for file-like objects compatible with StreamingBody."""

    def read(self, amt: int | None = None) -> bytes: ...
    def close(self) -> None: ...


# Archive entries
@dataclass(frozen=True)
class FileEntry:
    """A single S3 object to include in the archive."""

    kind: ClassVar[str] = "file"

    bucket: str
    key: str
    name: str | None = None
    preserve_folder_structure: bool = False
    metadata: EntryMetadata | None = None


@dataclass(frozen=True)
class DirEntry:
    """A directory-like prefix whose objects are all included in the archive."""

    kind: ClassVar[str] = "dir"

    bucket: str
    prefix: str
    preserve_folder_structure: bool = False
    metadata: EntryMetadata | None = None


ArchiveEntry = Union[FileEntry, DirEntry]


@dataclass(frozen=True)
class ResolvedEntry:
    """A concrete object with its final in-archive name."""

    bucket: str
    key: str
    name: str
    metadata: EntryMetadata | None = None


@dataclass(frozen=True)
class ArchiveMemberInfo:
    """Notification payload for an entry that was written to the archive."""

    name: str
    size: int


# Archive options
@dataclass
class ArchiveOptions:
    """Options for the archive writer.

    ``compression`` only applies to tar archives; zip members are always
    deflated with ``compression_level``.
    """

    format: ArchiveFormat = "zip"
    compression: str | None = None
    compression_level: int = 6
    zip64: bool = True
    chunk_size: int = 64 * 1024
    max_pending_entries: int = 1
    spool_max_size: int = 10 * 1024 * 1024

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported archive format: {self.format}")
        if self.compression is not None:
            if self.compression not in SUPPORTED_COMPRESSIONS:
                raise ValueError(f"Unsupported compression: {self.compression}")
            if self.format != "tar":
                raise ValueError("compression is only supported for tar archives")
        if not 0 <= self.compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.max_pending_entries <= 0:
            raise ValueError("max_pending_entries must be positive")
        if self.spool_max_size < 0:
            raise ValueError("spool_max_size must not be negative")


@dataclass(frozen=True)
class ArchiveRequest:
    """Everything one archive build needs."""

    routing: ClientRouting
    entries: tuple[ArchiveEntry, ...]
    options: ArchiveOptions = field(default_factory=ArchiveOptions)


# Parsing entries from JSON objects
def _parse_metadata(data: Mapping[str, Any]) -> EntryMetadata | None:
    metadata: EntryMetadata = {}
    if data.get("mode") is not None:
        mode = data["mode"]
        metadata["mode"] = int(mode, 8) if isinstance(mode, str) else int(mode)
    if data.get("date") is not None:
        date = data["date"]
        metadata["date"] = datetime.fromisoformat(date) if isinstance(date, str) else date
    if data.get("archive_prefix"):
        metadata["prefix"] = str(data["archive_prefix"])
    return metadata or None


def parse_entry(data: Mapping[str, Any]) -> ArchiveEntry:
    """Build an archive entry from a JSON-like mapping.

    Parameters
    ----------
    data : Mapping[str, Any]
        Mapping with ``kind`` (``"file"`` or ``"dir"``, defaults to ``"file"``),
        ``bucket``, ``key`` or ``prefix`` and the optional ``name``,
        ``preserve_folder_structure``, ``mode``, ``date`` and ``archive_prefix`` fields.

    Returns
    -------
    ArchiveEntry

    Raises
    ------
    ValueError
        If the kind is unknown or a required field is missing.
    """
    kind = data.get("kind", "file")
    bucket = data.get("bucket")
    if not bucket:
        raise ValueError("Entry is missing 'bucket'")

    preserve = bool(data.get("preserve_folder_structure", False))
    metadata = _parse_metadata(data)

    if kind == "file":
        if "key" not in data:
            raise ValueError("File entry is missing 'key'")
        return FileEntry(
            bucket=bucket,
            key=data["key"],
            name=data.get("name"),
            preserve_folder_structure=preserve,
            metadata=metadata,
        )
    if kind == "dir":
        if "prefix" not in data:
            raise ValueError("Directory entry is missing 'prefix'")
        return DirEntry(
            bucket=bucket,
            prefix=data["prefix"],
            preserve_folder_structure=preserve,
            metadata=metadata,
        )
    raise ValueError(f"Unknown entry kind: {kind}")


def iter_entries_jsonl(lines: Iterable[str]) -> Iterator[ArchiveEntry]:
    """Parse JSONL lines into archive entries, skipping blank lines."""
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield parse_entry(json.loads(line))
        except (ValueError, TypeError) as e:
            raise ValueError(f"Line {line_number}: {e}") from e


def read_entries_jsonl(path: str | Path) -> list[ArchiveEntry]:
    """Read archive entries from a JSONL file."""
    with open(path, encoding="utf-8") as f:
        return list(iter_entries_jsonl(f))
