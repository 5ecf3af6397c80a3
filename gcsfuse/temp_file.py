"""A local temporary file that tracks the lowest offset it has been modified at."""

from __future__ import annotations

import enum
import math
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Optional

MIN_COPY_LENGTH = 64 * 1024 * 1024
_CHUNK = 1 << 20


class TempFileError(Exception):
    """The temp file could not be loaded or has been destroyed."""


class _State(enum.Enum):
    INCOMPLETE = "fileIncomplete"
    COMPLETE = "fileComplete"
    DIRTY = "fileDirty"
    DESTROYED = "fileDestroyed"


@dataclass
class StatResult:
    """Current size, clean-prefix length and modification time of a temp file."""

    size: int
    dirty_threshold: int
    mtime: Optional[datetime] = None


class TempFile:
    """Contents loaded lazily from a source, kept in an anonymous local file.

    Not safe for concurrent access.
    """

    def __init__(
        self,
        source: BinaryIO,
        dir: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._source = source
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._file = tempfile.TemporaryFile(dir=dir or None)
        self._state = _State.INCOMPLETE
        self._dirty_threshold = 0
        self._mtime: Optional[datetime] = None

    def __enter__(self) -> "TempFile":
        return self

    def __exit__(self, *exc) -> None:
        self.destroy()

    def _ensure(self, limit: float) -> None:
        if self._state is _State.DESTROYED:
            raise TempFileError("file destroyed")
        if self._state is not _State.INCOMPLETE:
            return
        size = self._file.seek(0, os.SEEK_END)
        if size >= limit:
            return
        want = max(limit - size, MIN_COPY_LENGTH)
        copied = 0
        while copied < want:
            chunk = self._source.read(int(min(_CHUNK, want - copied)))
            if not chunk:
                self._source.close()
                self._dirty_threshold = size + copied
                self._state = _State.COMPLETE
                return
            self._file.write(chunk)
            copied += len(chunk)

    def _ensure_complete(self, op: str) -> None:
        try:
            self._ensure(math.inf)
        except TempFileError as exc:
            raise TempFileError(f"cannot {op} incomplete file: load temp file: {exc}") from exc
        except OSError as exc:
            raise TempFileError(f"cannot {op} incomplete file: load temp file: {exc}") from exc

    def _touch(self, offset: int) -> None:
        self._dirty_threshold = min(self._dirty_threshold, offset)
        self._state = _State.DIRTY
        self._mtime = self._clock()

    def check_invariants(self) -> None:
        """Raise RuntimeError if an internal invariant is violated."""
        if self._state is _State.DESTROYED:
            raise RuntimeError("use of destroyed temp file")
        pos = self.seek(0, os.SEEK_CUR)
        try:
            sr = self.stat()
            if not sr.dirty_threshold <= sr.size:
                raise RuntimeError(f"mismatch: {sr.dirty_threshold} vs. {sr.size}")
            if self._mtime is None and sr.dirty_threshold != sr.size:
                raise RuntimeError(f"mismatch: {sr.dirty_threshold} vs. {sr.size}")
        finally:
            self.seek(pos, os.SEEK_SET)

    def read(self, size: int = -1) -> bytes:
        self._ensure_complete("read")
        return self._file.read(size)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        self._ensure_complete("seek")
        return self._file.seek(offset, whence)

    def read_at(self, size: int, offset: int) -> bytes:
        """Return up to size bytes from offset; fewer at the end of the file."""
        self._ensure_complete("read_at")
        self._file.seek(offset)
        return self._file.read(size)

    def write_at(self, data: bytes, offset: int) -> int:
        self._ensure_complete("write_at")
        self._touch(offset)
        self._file.seek(offset)
        return self._file.write(data)

    def truncate(self, n: int) -> None:
        self._ensure_complete("truncate")
        self._touch(n)
        self._file.truncate(n)

    def stat(self) -> StatResult:
        """Return the current state; this moves the seek position to the end."""
        self._ensure_complete("stat")
        size = self._file.seek(0, os.SEEK_END)
        return StatResult(size=size, dirty_threshold=self._dirty_threshold, mtime=self._mtime)

    def set_mtime(self, mtime: datetime) -> None:
        self._mtime = mtime

    def destroy(self) -> None:
        """Release the local file; the object must not be used again."""
        self._state = _State.DESTROYED
        self._file.close()