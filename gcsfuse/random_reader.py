"""Ranged reads of one object generation, optimised for sequential access."""

from __future__ import annotations

import threading
from typing import BinaryIO, Callable, Optional

from gcsfuse.gcs import Bucket, ByteRange, GCSError, Object, ReadObjectRequest

MB = 1 << 20

# No request is sent for less than this many bytes, unless the object ends first.
MIN_READ_SIZE = MB

# Below this average read size the access pattern counts as random; it is also
# the furthest we skip forward within an existing response.
MAX_READ_SIZE = 8 * MB

# Seeks needed before the read pattern is evaluated as random.
MIN_SEEKS_FOR_RANDOM = 2

_WATCH_INTERVAL = 0.005


class ReadError(GCSError):
    """A read failed; partial holds the bytes read before the failure."""

    def __init__(self, message: str, partial: bytes = b""):
        super().__init__(message)
        self.partial = partial


class _PartialRead(Exception):
    def __init__(self, data: bytes, cause: BaseException):
        super().__init__(str(cause))
        self.data = data
        self.cause = cause


class RandomReader:
    """Reads ranges of a particular object generation through a bucket.

    Not safe for concurrent access.
    """

    def __init__(self, obj: Object, bucket: Bucket):
        self.object = obj
        self.bucket = bucket
        # An in-flight response and a function cancelling it, both or neither.
        self.reader: Optional[BinaryIO] = None
        self.cancel: Optional[Callable[[], None]] = None
        # The range the reader is expected to yield; when there is no reader,
        # limit is that of the previous read, or -1 if there never was one.
        self.start = -1
        self.limit = -1
        self.seeks = 0
        self.total_read_bytes = 0

    def check_invariants(self) -> None:
        """Raise RuntimeError if an internal invariant is violated."""
        if (self.reader is None) != (self.cancel is None):
            raise RuntimeError(
                f"Mismatch: {self.reader is None} vs. {self.cancel is None}"
            )
        if not self.start <= self.limit:
            raise RuntimeError(f"Unexpected range: [{self.start}, {self.limit})")
        if self.limit < 0 and self.reader is not None:
            raise RuntimeError(f"Unexpected non-nil reader with limit == {self.limit}")

    def read_at(
        self,
        size: int,
        offset: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> bytes:
        """Return up to size bytes from offset; a short result means end of object.

        Setting cancel_event while a read blocks cancels the in-flight request.
        """
        out = bytearray()
        while len(out) < size:
            remaining = size - len(out)
            if offset >= self.object.size:
                return bytes(out)

            # Skip forward within the current response rather than reopen it.
            if (
                self.reader is not None
                and self.start < offset
                and offset - self.start < MAX_READ_SIZE
            ):
                try:
                    skipped = self.reader.read(offset - self.start)
                except Exception:
                    skipped = b""
                self.start += len(skipped)

            if self.reader is not None and self.start != offset:
                self._close_reader()
                self.seeks += 1

            if self.reader is None:
                try:
                    self._start_read(offset, remaining)
                except Exception as exc:
                    raise ReadError(f"startRead: {exc}", bytes(out)) from exc

            failure: Optional[BaseException] = None
            try:
                chunk = self._read_full(remaining, cancel_event)
            except _PartialRead as partial:
                chunk, failure = partial.data, partial.cause

            out += chunk
            self.start += len(chunk)
            offset += len(chunk)
            self.total_read_bytes += len(chunk)

            if self.start > self.limit:
                excess = self.start - self.limit
                self._close_reader()
                self.start = -1
                self.limit = -1
                raise ReadError(f"Reader returned {excess} too many bytes", bytes(out))

            if self.start == self.limit:
                self._close_reader()

            if failure is not None:
                raise ReadError(f"readFull: {failure}", bytes(out)) from failure

            if len(chunk) < remaining and self.reader is not None:
                raise ReadError(
                    f"Reader returned {self.limit - self.start} too few bytes", bytes(out)
                )
        return bytes(out)

    def destroy(self) -> None:
        """Release the in-flight response, if any; the reader must not be reused."""
        if self.reader is not None:
            self._close_reader()

    def _close_reader(self) -> None:
        try:
            self.reader.close()
        except Exception:
            pass
        self.reader = None
        self.cancel = None

    def _read_full(self, size: int, cancel_event: Optional[threading.Event]) -> bytes:
        """Read until size bytes or end of stream, cancelling if the event fires first."""
        done = threading.Event()
        watcher = None
        cancel = self.cancel
        if cancel_event is not None and cancel is not None:

            def watch() -> None:
                while not done.is_set():
                    if cancel_event.wait(_WATCH_INTERVAL):
                        if not done.is_set():
                            cancel()
                        return

            watcher = threading.Thread(target=watch, daemon=True)
            watcher.start()

        chunks = []
        got = 0
        try:
            while got < size:
                chunk = self.reader.read(size - got)
                if not chunk:
                    break
                chunks.append(chunk)
                got += len(chunk)
        except Exception as exc:
            raise _PartialRead(b"".join(chunks), exc) from exc
        finally:
            done.set()
            if watcher is not None:
                watcher.join()
        return b"".join(chunks)

    def _start_read(self, start: int, size: int) -> None:
        """Open a response whose range has [start, start+size) as a prefix."""
        if start < 0 or start > self.object.size or size < 0:
            raise ValueError(
                f"Range [{start}, {start + size}) is illegal for "
                f"{self.object.size}-byte object"
            )

        # Requests are expensive, so read to the end of the object unless the
        # pattern looks random; then read chunks of about the average size.
        end = self.object.size
        if self.seeks >= MIN_SEEKS_FOR_RANDOM:
            average = self.total_read_bytes // self.seeks
            if average < MAX_READ_SIZE:
                chunk = (average // MB + 1) * MB
                chunk = min(max(chunk, MIN_READ_SIZE), MAX_READ_SIZE)
                end = start + chunk
        end = min(end, self.object.size)

        try:
            rc = self.bucket.new_reader(
                ReadObjectRequest(
                    name=self.object.name,
                    generation=self.object.generation,
                    range=ByteRange(start=start, limit=end),
                )
            )
        except Exception as exc:
            raise GCSError(f"NewReader: {exc}") from exc

        def cancel() -> None:
            try:
                rc.close()
            except Exception:
                pass

        self.reader = rc
        self.cancel = cancel
        self.start = start
        self.limit = end