"""A bucket wrapper that records request, read and latency metrics."""

from __future__ import annotations

import threading
import time
from bisect import bisect_left
from collections import Counter
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

from gcsfuse.gcs import Bucket


def exponential_buckets(start: float, factor: float, count: int) -> list[float]:
    """Return count upper bounds, the first start and each factor times the last."""
    if count < 1:
        raise ValueError("exponential_buckets needs a positive count")
    if start <= 0:
        raise ValueError("exponential_buckets needs a positive start value")
    if factor <= 1:
        raise ValueError("exponential_buckets needs a factor greater than 1")
    bounds = []
    value = start
    for _ in range(count):
        bounds.append(value)
        value *= factor
    return bounds


_LATENCY_BUCKETS = exponential_buckets(0.1, 1.5, 32)


class Histogram:
    """Counts observations into buckets with fixed upper bounds plus +Inf."""

    def __init__(self, name: str, buckets: Optional[list[float]] = None):
        self.name = name
        self.buckets = sorted(buckets if buckets is not None else _LATENCY_BUCKETS)
        self.counts = [0] * (len(self.buckets) + 1)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        """Record one observation."""
        index = bisect_left(self.buckets, value)
        with self._lock:
            self.counts[index] += 1
            self.count += 1
            self.sum += value


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


@dataclass
class Metrics:
    """Counters and histograms exported by monitoring buckets."""

    gcs_requests: Counter = field(default_factory=Counter)
    bytes_read: Counter = field(default_factory=Counter)
    readers_created: int = 0
    readers_closed: int = 0
    latency_new_reader: Histogram = field(
        default_factory=lambda: Histogram("gcsfuse_object_new_reader_latency")
    )
    latency_read: Histogram = field(
        default_factory=lambda: Histogram("gcsfuse_object_read_latency")
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment_requests(self, bucket: str, method: str) -> None:
        with self._lock:
            self.gcs_requests[(bucket, method)] += 1

    def add_bytes_read(self, bucket: str, obj: str, count: int) -> None:
        with self._lock:
            self.bytes_read[(bucket, obj)] += count

    def reader_created(self) -> None:
        with self._lock:
            self.readers_created += 1

    def reader_closed(self) -> None:
        with self._lock:
            self.readers_closed += 1


METRICS = Metrics()


class MonitoringReader:
    """A reader that counts bytes read and records read latency."""

    def __init__(self, bucket_name: str, obj: str, wrapped: BinaryIO, metrics: Optional[Metrics] = None):
        self.bucket_name = bucket_name
        self.obj = obj
        self.wrapped = wrapped
        self.metrics = metrics if metrics is not None else METRICS
        self.metrics.reader_created()

    def read(self, size: int = -1) -> bytes:
        start = time.monotonic()
        try:
            data = self.wrapped.read(size)
            self.metrics.add_bytes_read(self.bucket_name, self.obj, len(data))
            return data
        finally:
            self.metrics.latency_read.observe(_elapsed_ms(start))

    def close(self) -> None:
        self.wrapped.close()
        self.metrics.reader_closed()

    def __enter__(self) -> "MonitoringReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class MonitoringBucket(Bucket):
    """Counts each request to the wrapped bucket by method."""

    def __init__(self, wrapped: Bucket, metrics: Optional[Metrics] = None):
        self.wrapped = wrapped
        self.name = wrapped.name
        self.metrics = metrics if metrics is not None else METRICS

    def _count(self, method: str) -> None:
        self.metrics.increment_requests(self.name, method)

    def new_reader(self, req):
        self._count("NewReader")
        start = time.monotonic()
        try:
            rc = self.wrapped.new_reader(req)
        finally:
            self.metrics.latency_new_reader.observe(_elapsed_ms(start))
        return MonitoringReader(self.name, req.name, rc, self.metrics)

    def create_object(self, req):
        self._count("CreateObject")
        return self.wrapped.create_object(req)

    def copy_object(self, req):
        self._count("CopyObject")
        return self.wrapped.copy_object(req)

    def compose_objects(self, req):
        self._count("ComposeObjects")
        return self.wrapped.compose_objects(req)

    def stat_object(self, req):
        self._count("StatObject")
        return self.wrapped.stat_object(req)

    def list_objects(self, req):
        self._count("ListObjects")
        return self.wrapped.list_objects(req)

    def update_object(self, req):
        self._count("UpdateObject")
        return self.wrapped.update_object(req)

    def delete_object(self, req):
        self._count("DeleteObject")
        self.wrapped.delete_object(req)