"""Writing new object generations by composing an appended tail onto the source."""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import BinaryIO

from gcsfuse.gcs import (
    Bucket,
    ComposeObjectsRequest,
    ComposeSource,
    CreateObjectRequest,
    DeleteObjectRequest,
    GCSError,
    NotFoundError,
    Object,
    PreconditionError,
)

MTIME_METADATA_KEY = "gcsfuse_mtime"


def format_mtime(mtime: datetime) -> str:
    """Format a time as RFC 3339 with trailing fractional zeros trimmed.

    A zero or missing UTC offset is written as "Z".
    """
    stamp = (
        f"{mtime.year:04d}-{mtime.month:02d}-{mtime.day:02d}"
        f"T{mtime.hour:02d}:{mtime.minute:02d}:{mtime.second:02d}"
    )
    if mtime.microsecond:
        stamp += f".{mtime.microsecond:06d}".rstrip("0")
    offset = mtime.utcoffset()
    if not offset:
        return stamp + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{stamp}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


class AppendObjectCreator:
    """Appends contents to a source object via a temporary object and a compose.

    Temporary objects are named with the given prefix. A failed cleanup leaves
    them behind, so the prefix should be garbage collected. A clobbered source
    object is always reported as PreconditionError.
    """

    def __init__(self, prefix: str, bucket: Bucket):
        self.prefix = prefix
        self.bucket = bucket

    def _choose_name(self) -> str:
        value = int.from_bytes(secrets.token_bytes(8), "little")
        return f"{self.prefix}{value:016x}"

    def _create_tmp(self, reader: BinaryIO) -> Object:
        req = CreateObjectRequest(
            name=self._choose_name(),
            contents=reader,
            generation_precondition=0,
        )
        try:
            return self.bucket.create_object(req)
        except PreconditionError as exc:
            raise PreconditionError(f"CreateObject: {exc}") from exc
        except Exception as exc:
            raise GCSError(f"CreateObject: {exc}") from exc

    def _compose(self, src_object: Object, tmp: Object, mtime: datetime) -> Object:
        req = ComposeObjectsRequest(
            dst_name=src_object.name,
            dst_generation_precondition=src_object.generation,
            dst_meta_generation_precondition=src_object.meta_generation,
            sources=[
                ComposeSource(name=src_object.name, generation=src_object.generation),
                ComposeSource(name=tmp.name, generation=tmp.generation),
            ],
            metadata={MTIME_METADATA_KEY: format_mtime(mtime)},
        )
        try:
            return self.bucket.compose_objects(req)
        except PreconditionError as exc:
            raise PreconditionError(f"ComposeObjects: {exc}") from exc
        except NotFoundError as exc:
            # Either the source or the temporary object vanished; the former
            # is far more likely, so report a precondition failure.
            raise PreconditionError(
                f"Synthesized precondition error for ComposeObjects. Original: {exc}"
            ) from exc
        except Exception as exc:
            raise GCSError(f"ComposeObjects: {exc}") from exc

    def create(self, src_object: Object, mtime: datetime, reader: BinaryIO) -> Object:
        """Return the new generation of src_object with reader's contents appended."""
        tmp = self._create_tmp(reader)
        try:
            composed = self._compose(src_object, tmp, mtime)
        except BaseException:
            try:
                self.bucket.delete_object(DeleteObjectRequest(name=tmp.name))
            except Exception:
                pass
            raise
        try:
            self.bucket.delete_object(DeleteObjectRequest(name=tmp.name))
        except Exception as exc:
            raise GCSError(f"DeleteObject: {exc}") from exc
        return composed