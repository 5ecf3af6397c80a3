"""Deletion of stale temporary objects left behind by interrupted appends."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from gcsfuse import logger
from gcsfuse.gcs import Bucket, DeleteObjectRequest, GCSError, list_prefix

STALENESS_THRESHOLD = timedelta(minutes=30)
DEFAULT_PERIOD = 10 * 60.0


class GarbageCollectionError(GCSError):
    """A collection run failed; objects_deleted says how far it got."""

    def __init__(self, message: str, objects_deleted: int):
        super().__init__(message)
        self.objects_deleted = objects_deleted


def garbage_collect_once(
    bucket: Bucket,
    tmp_object_prefix: str,
    now: Optional[datetime] = None,
) -> int:
    """Delete objects under the prefix not updated for 30 minutes.

    Returns the number of objects deleted.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        stale = [
            o.name
            for o in list_prefix(bucket, tmp_object_prefix)
            if now - o.updated >= STALENESS_THRESHOLD
        ]
    except Exception as exc:
        raise GarbageCollectionError(f"ListPrefix: {exc}", 0) from exc

    deleted = 0
    for name in stale:
        try:
            bucket.delete_object(DeleteObjectRequest(name=name))
        except Exception as exc:
            raise GarbageCollectionError(f"DeleteObject({name!r}): {exc}", deleted) from exc
        deleted += 1
    return deleted


def garbage_collect(
    bucket: Bucket,
    tmp_object_prefix: str,
    stop_event: threading.Event,
    period: float = DEFAULT_PERIOD,
) -> None:
    """Run a collection every period seconds until stop_event is set."""
    while not stop_event.wait(period):
        logger.info("Starting a garbage collection run.")
        start = time.monotonic()
        try:
            deleted = garbage_collect_once(bucket, tmp_object_prefix)
        except GarbageCollectionError as exc:
            logger.infof(
                "Garbage collection failed after deleting %d objects in %.3fs, with error: %s",
                exc.objects_deleted,
                time.monotonic() - start,
                exc,
            )
        else:
            logger.infof(
                "Garbage collection succeeded after deleted %d objects in %.3fs.",
                deleted,
                time.monotonic() - start,
            )