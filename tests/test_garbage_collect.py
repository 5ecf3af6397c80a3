import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from gcsfuse.garbage_collect import (
    GarbageCollectionError,
    garbage_collect,
    garbage_collect_once,
)
from gcsfuse.gcs import (
    Bucket,
    GCSError,
    ListObjectsRequest,
    MemoryBucket,
    list_all,
    put_object,
)

PREFIX = ".gcsfuse_tmp/"
T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _names(bucket):
    objects, _ = list_all(bucket, ListObjectsRequest())
    return sorted(o.name for o in objects)


@pytest.fixture
def clock():
    return _Clock(T0)


@pytest.fixture
def bucket(clock):
    return MemoryBucket("some_bucket", clock)


class _FailingDeleteBucket(Bucket):
    def __init__(self, wrapped):
        self.wrapped = wrapped
        self.name = wrapped.name

    def new_reader(self, req):
        return self.wrapped.new_reader(req)

    def create_object(self, req):
        return self.wrapped.create_object(req)

    def copy_object(self, req):
        return self.wrapped.copy_object(req)

    def compose_objects(self, req):
        return self.wrapped.compose_objects(req)

    def stat_object(self, req):
        return self.wrapped.stat_object(req)

    def list_objects(self, req):
        return self.wrapped.list_objects(req)

    def update_object(self, req):
        return self.wrapped.update_object(req)

    def delete_object(self, req):
        raise GCSError("taco")


class _FailingListBucket(_FailingDeleteBucket):
    def list_objects(self, req):
        raise GCSError("burrito")


def test_deletes_only_stale_objects_under_prefix(bucket, clock):
    put_object(bucket, PREFIX + "old_a", b"a")
    put_object(bucket, PREFIX + "old_b", b"b")
    put_object(bucket, "keep_me", b"c")
    clock.now = T0 + timedelta(minutes=20)
    put_object(bucket, PREFIX + "fresh", b"d")

    deleted = garbage_collect_once(bucket, PREFIX, now=T0 + timedelta(minutes=31))

    assert deleted == 2
    assert _names(bucket) == [PREFIX + "fresh", "keep_me"]


def test_object_exactly_at_threshold_is_stale(bucket):
    put_object(bucket, PREFIX + "edge", b"x")
    deleted = garbage_collect_once(bucket, PREFIX, now=T0 + timedelta(minutes=30))
    assert deleted == 1
    assert _names(bucket) == []


def test_nothing_stale_deletes_nothing(bucket):
    put_object(bucket, PREFIX + "young", b"x")
    deleted = garbage_collect_once(bucket, PREFIX, now=T0 + timedelta(minutes=29))
    assert deleted == 0
    assert _names(bucket) == [PREFIX + "young"]


def test_delete_failure_reports_count_and_name(bucket):
    put_object(bucket, PREFIX + "old", b"x")
    failing = _FailingDeleteBucket(bucket)
    with pytest.raises(GarbageCollectionError) as exc_info:
        garbage_collect_once(failing, PREFIX, now=T0 + timedelta(hours=1))
    assert exc_info.value.objects_deleted == 0
    assert "DeleteObject" in str(exc_info.value)
    assert PREFIX + "old" in str(exc_info.value)
    assert "taco" in str(exc_info.value)


def test_list_failure_is_reported(bucket):
    failing = _FailingListBucket(bucket)
    with pytest.raises(GarbageCollectionError) as exc_info:
        garbage_collect_once(failing, PREFIX, now=T0)
    assert "ListPrefix" in str(exc_info.value)
    assert "burrito" in str(exc_info.value)


def test_loop_returns_immediately_when_stopped(bucket):
    put_object(bucket, PREFIX + "old", b"x")
    stop = threading.Event()
    stop.set()
    garbage_collect(bucket, PREFIX, stop, period=0.01)
    assert _names(bucket) == [PREFIX + "old"]


def test_loop_collects_periodically_until_stopped():
    clock = _Clock(datetime.now(timezone.utc) - timedelta(hours=1))
    bucket = MemoryBucket("some_bucket", clock)
    put_object(bucket, PREFIX + "old", b"x")
    put_object(bucket, "other", b"y")

    stop = threading.Event()
    worker = threading.Thread(target=garbage_collect, args=(bucket, PREFIX, stop, 0.01))
    worker.start()
    try:
        deadline = time.monotonic() + 5
        while PREFIX + "old" in _names(bucket) and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        stop.set()
        worker.join(timeout=5)

    assert not worker.is_alive()
    assert _names(bucket) == ["other"]