"""Building archive streams from S3 entries."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from .exceptions import ArchiveAbortedError
from .expander import expand_directory
from .fetcher import fetch_and_append, resolve_file_entry
from .routing import ClientRouting, resolve_client, routing_from_value
from .settings import S3Settings
from .stream import ArchiveStream
from .types import ArchiveEntry, ArchiveOptions, ArchiveRequest, DirEntry

logger = logging.getLogger(__name__)


def group_entries_by_bucket(entries: Iterable[ArchiveEntry]) -> dict[str, list[ArchiveEntry]]:
    """Group *entries* by bucket, keeping their relative order within each bucket."""
    groups: dict[str, list[ArchiveEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.bucket, []).append(entry)
    return groups


class ArchiveBuilder:
    """Drives one archive build in the background.

    Entries are grouped by bucket. Each group runs on its own worker thread
    and is processed strictly in order, so at most one object per bucket is
    being fetched at a time while different buckets proceed concurrently.
    The stream is finalized once every group succeeded, and aborted with the
    first error any group raises.
    """

    def __init__(self, request: ArchiveRequest) -> None:
        self.request = request
        self.stream = ArchiveStream(request.options)
        self._thread: threading.Thread | None = None

    def start(self) -> ArchiveStream:
        """Start the build and return its (still open) stream."""
        if self._thread is not None:
            raise RuntimeError("ArchiveBuilder was already started")
        self._thread = threading.Thread(target=self._run, name="s3-archive-builder", daemon=True)
        self._thread.start()
        return self.stream

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background build to finish."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _process_group(self, bucket: str, entries: list[ArchiveEntry]) -> None:
        client = resolve_client(self.request.routing, bucket)
        for entry in entries:
            if not self.stream.accepting:
                raise ArchiveAbortedError(f"Stopped processing bucket {bucket}: archive stream is no longer accepting")
            if isinstance(entry, DirEntry):
                resolved = expand_directory(client, entry)
            else:
                resolved = [resolve_file_entry(entry)]
            for item in resolved:
                fetch_and_append(client, item, self.stream)
        logger.debug("Finished %d entries for bucket %s", len(entries), bucket)

    def _run(self) -> None:
        try:
            groups = group_entries_by_bucket(self.request.entries)
            if groups:
                with ThreadPoolExecutor(max_workers=len(groups), thread_name_prefix="s3-archive") as executor:
                    futures = {
                        executor.submit(self._process_group, bucket, entries): bucket
                        for bucket, entries in groups.items()
                    }
                    for future in as_completed(futures):
                        error = future.exception()
                        if error is None:
                            continue
                        if isinstance(error, ArchiveAbortedError) and not self.stream.accepting:
                            # Follow-up of an abort that already happened
                            continue
                        logger.debug("Bucket group %s failed: %s", futures[future], error)
                        self.stream.abort(error)

            if self.stream.accepting:
                self.stream.finalize()
        except BaseException as e:
            # No-op when the stream already ended
            self.stream.abort(e)


def build_archive(
    routing: ClientRouting | Mapping[str, Any] | S3Settings | Any,
    entries: Iterable[ArchiveEntry],
    options: ArchiveOptions | None = None,
) -> ArchiveStream:
    """Stream S3 objects into a zip or tar archive.

    Returns immediately. Objects are listed and fetched in the background
    while the returned stream is read. Failures are never raised from this
    function: they end the stream in an error state, and reading it raises
    the error.

    Parameters
    ----------
    routing : ClientRouting | Mapping[str, Any] | S3Settings | Any
        A boto3 S3 client used for every bucket, a ``{bucket: client}``
        mapping, :class:`S3Settings`, or an explicit routing.
    entries : Iterable[ArchiveEntry]
        Files and directories to include, in archive order per bucket.
    options : ArchiveOptions | None
        Archive format and writer options. Defaults to zip.

    Returns
    -------
    ArchiveStream
        Readable archive stream.

    Examples
    --------
    >>> stream = build_archive(s3_client, [FileEntry("bucket", "reports/q1.csv")])
    >>> with open("out.zip", "wb") as f:
    ...     for chunk in stream:
    ...         f.write(chunk)
    """
    request = ArchiveRequest(
        routing=routing_from_value(routing),
        entries=tuple(entries),
        options=options or ArchiveOptions(),
    )
    return ArchiveBuilder(request).start()
