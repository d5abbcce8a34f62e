"""Command line interface: stream S3 objects into an archive file or back into S3.

Usage::

    s3-stream-archive -o out.zip s3://bucket/report.csv s3://bucket/images/
    s3-stream-archive --format tar --gzip --upload s3://bucket/out.tar.gz s3://bucket/logs/
    s3-stream-archive -o - summary.txt=s3://bucket/a/b/summary.txt > out.zip
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from typing import Any, BinaryIO

from .archive import build_archive
from .exceptions import S3StreamArchiveError
from .settings import ArchiveSettings, S3Settings
from .types import ArchiveEntry, DirEntry, FileEntry, read_entries_jsonl

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Split ``s3://bucket/key`` into ``(bucket, key)``.

    Raises
    ------
    ValueError
        If *uri* is not an ``s3://`` URI with a bucket.
    """
    if not uri.startswith(S3_SCHEME):
        raise ValueError(f"Not an S3 URI: {uri}")
    bucket, _, key = uri[len(S3_SCHEME):].partition("/")
    if not bucket:
        raise ValueError(f"S3 URI has no bucket: {uri}")
    return bucket, key


def parse_source(source: str, *, preserve_folder_structure: bool = False) -> ArchiveEntry:
    """Parse a command line source into an archive entry.

    ``s3://bucket/prefix/`` (trailing slash) and ``s3://bucket`` select a
    directory, ``s3://bucket/key`` a single object and ``NAME=s3://bucket/key``
    a single object stored under ``NAME``.
    """
    name: str | None = None
    if not source.startswith(S3_SCHEME) and f"={S3_SCHEME}" in source:
        name, _, source = source.partition("=")

    bucket, key = parse_s3_uri(source)
    if not key or key.endswith("/"):
        if name:
            raise ValueError(f"A name cannot be given for a directory: {source}")
        return DirEntry(bucket=bucket, prefix=key, preserve_folder_structure=preserve_folder_structure)
    return FileEntry(bucket=bucket, key=key, name=name, preserve_folder_structure=preserve_folder_structure)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-stream-archive",
        description="Stream S3 objects into a zip or tar archive.",
    )
    parser.add_argument(
        "sources",
        nargs="*",
        metavar="SOURCE",
        help="s3://bucket/key, s3://bucket/prefix/ or NAME=s3://bucket/key",
    )
    parser.add_argument("--entries", metavar="FILE", help="JSONL file with one entry per line")
    parser.add_argument("--format", choices=["zip", "tar"], default=None, help="Archive format (default: zip)")
    parser.add_argument("--gzip", action="store_true", help="gzip-compress a tar archive")
    parser.add_argument(
        "--preserve-folder-structure",
        action="store_true",
        help="Keep full keys as archive names for SOURCE arguments",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("-o", "--output", metavar="PATH", help="Output file, '-' for stdout")
    target.add_argument("--upload", metavar="S3_URI", help="Upload the archive to this S3 location")
    parser.add_argument("--endpoint-url", help="S3 endpoint URL (overrides S3_ENDPOINT_URL)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _collect_entries(args: argparse.Namespace) -> list[ArchiveEntry]:
    entries: list[ArchiveEntry] = []
    if args.entries:
        entries.extend(read_entries_jsonl(args.entries))
    for source in args.sources:
        entries.append(parse_source(source, preserve_folder_structure=args.preserve_folder_structure))
    return entries


def _write_stream(stream: Any, target: BinaryIO) -> None:
    with stream:
        for chunk in stream:
            target.write(chunk)


def main(argv: Sequence[str] | None = None, *, client: Any | None = None) -> int:
    """Run the CLI.

    Parameters
    ----------
    argv : Sequence[str] | None
        Arguments without the program name. Defaults to ``sys.argv[1:]``.
    client : Any | None
        S3 client to use instead of one created from :class:`S3Settings`.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        entries = _collect_entries(args)
        upload_target = parse_s3_uri(args.upload) if args.upload else None
    except (OSError, ValueError) as e:
        parser.error(str(e))
    if not entries:
        parser.error("at least one SOURCE or --entries is required")

    try:
        options = ArchiveSettings().to_options(
            format=args.format,
            compression="gzip" if args.gzip else None,
        )
    except ValueError as e:
        parser.error(str(e))

    if client is None:
        settings = S3Settings()
        if args.endpoint_url:
            settings = settings.model_copy(update={"endpoint_url": args.endpoint_url})
        client = settings.create_client()

    stream = build_archive(client, entries, options)
    try:
        if upload_target is not None:
            bucket, key = upload_target
            with stream:
                client.upload_fileobj(stream, bucket, key)
            logger.info("Uploaded archive to s3://%s/%s", bucket, key)
        elif args.output == "-":
            _write_stream(stream, sys.stdout.buffer)
        else:
            with open(args.output, "wb") as f:
                _write_stream(stream, f)
    except Exception as e:
        if args.output and args.output != "-" and os.path.exists(args.output):
            os.remove(args.output)
        # Errors raised by reading the stream are the build's own
        if e is not stream.error and not isinstance(e, S3StreamArchiveError):
            raise
        print(f"error: {e}", file=sys.stderr)
        return 1

    stats = stream.stats()
    logger.info("Wrote %d entries (%d bytes)", stats["entries_written"], stats["bytes_emitted"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
