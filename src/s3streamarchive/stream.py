"""ArchiveStream - the archive writer handle and its readable byte stream.

Producers (the fetch workers) hand object bodies to :meth:`ArchiveStream.append`;
the consumer iterates the stream (or calls :meth:`ArchiveStream.read`) and
pulls the encoded archive out chunk by chunk. Bodies are only read while the
consumer reads, so a slow consumer throttles the producers.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .exceptions import ArchiveAbortedError, ArchiveWriteError
from .formats import DEFAULT_MODE, ArchiveMember, encode_archive
from .types import ArchiveMemberInfo, ArchiveOptions, EntryMetadata, StreamingBodyLike

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    """Lifecycle of an archive stream."""

    ACCEPTING = "accepting"
    FINALIZING = "finalizing"
    CLOSED = "closed"
    ABORTED = "aborted"


@dataclass
class _PendingEntry:
    name: str
    body: StreamingBodyLike
    metadata: EntryMetadata


def _close_body(body: Any) -> None:
    try:
        body.close()
    except Exception:
        logger.debug("Ignoring error while closing an object body", exc_info=True)


def _archive_name(name: str, metadata: EntryMetadata) -> str:
    prefix = metadata.get("prefix")
    if prefix:
        name = f"{prefix.rstrip('/')}/{name}"
    return name.lstrip("/")


class ArchiveStream:
    """A zip or tar archive written incrementally from object bodies.

    Writer side: :meth:`append`, :meth:`finalize`, :meth:`abort`. These may be
    called from several threads; they are serialized internally.

    Reader side: iterate the stream for ``bytes`` chunks, or use it as a
    file-like object with :meth:`read`. Iteration ends once the stream was
    finalized and every appended entry was written. If the stream was aborted,
    reading raises the abort error, on the first and on every later attempt;
    any bytes read before that do not form a valid archive.
    """

    def __init__(self, options: ArchiveOptions | None = None) -> None:
        """Initialise an archive stream.

        Parameters
        ----------
        options : ArchiveOptions | None
            Format and writer options. Defaults to a zip archive.
        """
        self.options = options or ArchiveOptions()
        self._cond = threading.Condition()
        self._pending: deque[_PendingEntry] = deque()
        self._state = StreamState.ACCEPTING
        self._error: BaseException | None = None
        self._listeners: list[Callable[[ArchiveMemberInfo], None]] = []
        self._chunks: Iterator[bytes] | None = None
        self._buffer = bytearray()

        self._entries_appended = 0
        self._entries_written = 0
        self._bytes_read = 0
        self._bytes_emitted = 0

    # ------------------------------------------------------------------ #
    #  State                                                              #
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def accepting(self) -> bool:
        return self._state is StreamState.ACCEPTING

    @property
    def closed(self) -> bool:
        """True once the stream ended, successfully or not."""
        return self._state in (StreamState.CLOSED, StreamState.ABORTED)

    @property
    def error(self) -> BaseException | None:
        """The error the stream was aborted with, if any."""
        return self._error

    def on_entry(self, callback: Callable[[ArchiveMemberInfo], None]) -> None:
        """Register *callback* to be called after each entry was written."""
        self._listeners.append(callback)

    def stats(self) -> dict[str, Any]:
        """Get stream statistics.

        Returns
        -------
        dict[str, Any]
            Counts of appended and written entries, object bytes read and
            archive bytes emitted, plus the current state.
        """
        return {
            "entries_appended": self._entries_appended,
            "entries_written": self._entries_written,
            "bytes_read": self._bytes_read,
            "bytes_emitted": self._bytes_emitted,
            "state": self._state.value,
        }

    # ------------------------------------------------------------------ #
    #  Writer side                                                        #
    # ------------------------------------------------------------------ #

    def append(self, body: StreamingBodyLike, name: str, metadata: EntryMetadata | None = None) -> None:
        """Queue *body* as the archive entry *name*.

        Blocks while ``max_pending_entries`` bodies are already waiting for the
        reader. The body is owned by the stream from here on and is closed
        once written (or when the stream is aborted).

        Raises
        ------
        ArchiveAbortedError
            If the stream is no longer accepting entries.
        ArchiveWriteError
            If the resulting archive name is empty.
        """
        metadata = dict(metadata or {})  # type: ignore[assignment]
        archive_name = _archive_name(name, metadata)
        if not archive_name:
            _close_body(body)
            raise ArchiveWriteError(name, "archive name is empty")

        with self._cond:
            while self._state is StreamState.ACCEPTING and len(self._pending) >= self.options.max_pending_entries:
                self._cond.wait()
            if self._state is not StreamState.ACCEPTING:
                _close_body(body)
                raise ArchiveAbortedError(f"Cannot append {archive_name!r}: archive stream is {self._state.value}")
            self._pending.append(_PendingEntry(archive_name, body, metadata))
            self._entries_appended += 1
            self._cond.notify_all()
        logger.debug("Appended %r to archive stream", archive_name)

    def finalize(self) -> None:
        """Signal that no more entries will be appended.

        The archive footer is written once the reader has drained every
        pending entry.

        Raises
        ------
        ArchiveAbortedError
            If the stream was already finalized or aborted.
        """
        with self._cond:
            if self._state is not StreamState.ACCEPTING:
                raise ArchiveAbortedError(f"Cannot finalize: archive stream is {self._state.value}")
            self._state = StreamState.FINALIZING
            self._cond.notify_all()
        logger.debug("Finalizing archive stream after %d entries", self._entries_appended)

    def abort(self, error: BaseException | None = None) -> bool:
        """End the stream in an error state.

        Pending bodies are closed and blocked :meth:`append` calls wake up with
        :class:`ArchiveAbortedError`. Aborting a stream that already ended does
        nothing.

        Parameters
        ----------
        error : BaseException | None
            Error the reader will see. Defaults to :class:`ArchiveAbortedError`.

        Returns
        -------
        bool
            True if this call aborted the stream.
        """
        with self._cond:
            if self.closed:
                return False
            self._state = StreamState.ABORTED
            self._error = error if error is not None else ArchiveAbortedError("Archive stream was aborted")
            pending = list(self._pending)
            self._pending.clear()
            self._cond.notify_all()

        for entry in pending:
            _close_body(entry.body)
        logger.warning("Archive stream aborted: %s", self._error)
        return True

    # ------------------------------------------------------------------ #
    #  Reader side                                                        #
    # ------------------------------------------------------------------ #

    def _next_pending(self) -> _PendingEntry | None:
        with self._cond:
            while not self._pending and self._state is StreamState.ACCEPTING:
                self._cond.wait()
            if self._state is StreamState.ABORTED:
                assert self._error is not None
                raise self._error
            if self._pending:
                entry = self._pending.popleft()
                self._cond.notify_all()
                return entry
            return None

    def _raise_if_aborted(self) -> None:
        if self._state is StreamState.ABORTED:
            assert self._error is not None
            raise self._error

    def _iter_body(self, entry: _PendingEntry) -> Iterator[bytes]:
        written = 0
        try:
            while True:
                self._raise_if_aborted()
                chunk = entry.body.read(self.options.chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                yield chunk
        finally:
            _close_body(entry.body)

        self._entries_written += 1
        self._bytes_read += written
        info = ArchiveMemberInfo(name=entry.name, size=written)
        for listener in self._listeners:
            listener(info)

    def _iter_members(self) -> Iterator[ArchiveMember]:
        while True:
            entry = self._next_pending()
            if entry is None:
                return
            yield ArchiveMember(
                name=entry.name,
                chunks=self._iter_body(entry),
                date=entry.metadata.get("date") or datetime.now(timezone.utc),
                mode=entry.metadata.get("mode", DEFAULT_MODE),
                size=entry.metadata.get("size"),
            )

    def _close_chunks(self) -> None:
        if self._chunks is not None:
            self._chunks.close()  # type: ignore[attr-defined]

    def _next_chunk(self) -> bytes:
        if self._state is StreamState.ABORTED:
            # Release the body the encoder may still hold
            self._close_chunks()
            self._raise_if_aborted()
        if self._state is StreamState.CLOSED:
            raise StopIteration
        if self._chunks is None:
            self._chunks = encode_archive(self._iter_members(), self.options)

        try:
            while True:
                chunk = next(self._chunks)
                if chunk:
                    break
        except StopIteration:
            with self._cond:
                if self._state is StreamState.FINALIZING:
                    self._state = StreamState.CLOSED
            logger.debug("Archive stream closed after %d bytes", self._bytes_emitted)
            raise
        except Exception as e:
            self.abort(e)
            raise

        self._bytes_emitted += len(chunk)
        return chunk

    def __iter__(self) -> ArchiveStream:
        return self

    def __next__(self) -> bytes:
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        return self._next_chunk()

    def read(self, amt: int | None = None) -> bytes:
        """Read bytes from the archive.

        Parameters
        ----------
        amt : int | None
            Bytes to read. *None* means read until the archive ends.

        Returns
        -------
        bytes
            Fewer than *amt* bytes only at the end of the archive.
        """
        while amt is None or amt < 0 or len(self._buffer) < amt:
            try:
                self._buffer += self._next_chunk()
            except StopIteration:
                break
        if amt is None or amt < 0:
            amt = len(self._buffer)
        data = bytes(self._buffer[:amt])
        del self._buffer[:amt]
        return data

    def readinto(self, b: bytearray) -> int:
        """Read bytes into a buffer.

        Parameters
        ----------
        b : bytearray
            Target buffer.

        Returns
        -------
        int
        """
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        """Stop reading. Aborts the build if the archive is not complete."""
        if self._state is StreamState.FINALIZING and not self._buffer:
            # The reader may have taken every byte without seeing the end yet
            try:
                self._buffer += self._next_chunk()
            except StopIteration:
                pass
            except Exception:
                logger.debug("Archive stream failed while closing", exc_info=True)
        if not self.closed:
            self.abort(ArchiveAbortedError("Archive stream was closed before it was complete"))
        self._close_chunks()
        self._buffer.clear()

    def __enter__(self) -> ArchiveStream:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ArchiveStream(format={self.options.format!r}, state={self._state.value!r})"
