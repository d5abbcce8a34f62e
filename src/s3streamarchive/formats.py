"""Streaming encoders for the supported archive formats.

Both encoders pull members one at a time and yield the container bytes as
soon as they are produced, so the output can be consumed while later objects
are still being fetched. Neither writes its trailing footer (zip central
directory, tar end-of-archive blocks) unless every member was encoded.
"""

from __future__ import annotations

import tarfile
import tempfile
import zlib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from stat import S_IFREG

from stream_zip import ZIP_32, ZIP_64, stream_zip

from .exceptions import ArchiveWriteError
from .types import ArchiveOptions

DEFAULT_MODE = 0o644

# Dates zip headers can store (DOS date fields and 32-bit extended timestamps)
ZIP_MIN_YEAR = 1980
ZIP_MAX_YEAR = 2037


@dataclass
class ArchiveMember:
    """One entry as seen by an encoder."""

    name: str
    chunks: Iterator[bytes]
    date: datetime
    mode: int = DEFAULT_MODE
    size: int | None = None


def encode_archive(members: Iterable[ArchiveMember], options: ArchiveOptions) -> Iterator[bytes]:
    """Encode *members* in the format selected by *options*."""
    if options.format == "zip":
        return zip_chunks(members, options)
    if options.format == "tar":
        return tar_chunks(members, options)
    raise ValueError(f"Unsupported archive format: {options.format}")


# ------------------------------------------------------------------ #
#  zip                                                                #
# ------------------------------------------------------------------ #


def _zip_date(date: datetime) -> datetime:
    """Clamp *date* into the range a zip header can store."""
    if date.year < ZIP_MIN_YEAR:
        return date.replace(year=ZIP_MIN_YEAR, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    if date.year > ZIP_MAX_YEAR:
        return date.replace(year=ZIP_MAX_YEAR, month=12, day=31, hour=23, minute=59, second=58, microsecond=0)
    return date


def zip_chunks(members: Iterable[ArchiveMember], options: ArchiveOptions) -> Iterator[bytes]:
    """Yield a zip archive of *members*, built with ``stream-zip``."""
    method = ZIP_64 if options.zip64 else ZIP_32
    level = options.compression_level

    def member_files():
        for member in members:
            yield (
                member.name,
                _zip_date(member.date),
                S_IFREG | (member.mode & 0o7777),
                method,
                member.chunks,
            )

    yield from stream_zip(
        member_files(),
        chunk_size=options.chunk_size,
        get_compressobj=lambda: zlib.compressobj(wbits=-zlib.MAX_WBITS, level=level),
    )


# ------------------------------------------------------------------ #
#  tar                                                                #
# ------------------------------------------------------------------ #


def _spool(member: ArchiveMember, options: ArchiveOptions) -> tuple[Iterator[bytes], int]:
    """Buffer a body of unknown length so its size can go into the header."""
    spool = tempfile.SpooledTemporaryFile(max_size=options.spool_max_size, mode="w+b")
    try:
        for chunk in member.chunks:
            spool.write(chunk)
        size = spool.tell()
        spool.seek(0)
    except BaseException:
        spool.close()
        raise

    def read_back() -> Iterator[bytes]:
        try:
            while True:
                chunk = spool.read(options.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            spool.close()

    return read_back(), size


def _tar_blocks(members: Iterable[ArchiveMember], options: ArchiveOptions) -> Iterator[bytes]:
    offset = 0
    for member in members:
        chunks = member.chunks
        size = member.size
        if size is None:
            chunks, size = _spool(member, options)

        info = tarfile.TarInfo(name=member.name)
        info.size = size
        info.mtime = int(member.date.timestamp())
        info.mode = member.mode & 0o7777
        info.type = tarfile.REGTYPE
        header = info.tobuf(format=tarfile.PAX_FORMAT, encoding="utf-8", errors="surrogateescape")
        offset += len(header)
        yield header

        written = 0
        for chunk in chunks:
            written += len(chunk)
            if written > size:
                raise ArchiveWriteError(member.name, f"body is longer than its declared size of {size} bytes")
            yield chunk
        if written != size:
            raise ArchiveWriteError(member.name, f"body ended after {written} of {size} bytes")
        offset += written

        remainder = size % tarfile.BLOCKSIZE
        if remainder:
            padding = tarfile.NUL * (tarfile.BLOCKSIZE - remainder)
            offset += len(padding)
            yield padding

    # End-of-archive marker, padded to a full record
    trailer = tarfile.NUL * (tarfile.BLOCKSIZE * 2)
    offset += len(trailer)
    remainder = offset % tarfile.RECORDSIZE
    if remainder:
        trailer += tarfile.NUL * (tarfile.RECORDSIZE - remainder)
    yield trailer


def _gzip(chunks: Iterable[bytes], level: int) -> Iterator[bytes]:
    compressor = zlib.compressobj(level, zlib.DEFLATED, 16 + zlib.MAX_WBITS)
    for chunk in chunks:
        data = compressor.compress(chunk)
        if data:
            yield data
    yield compressor.flush()


def tar_chunks(members: Iterable[ArchiveMember], options: ArchiveOptions) -> Iterator[bytes]:
    """Yield a tar archive of *members*, gzip-compressed if requested."""
    blocks = _tar_blocks(members, options)
    if options.compression == "gzip":
        return _gzip(blocks, options.compression_level)
    return blocks
