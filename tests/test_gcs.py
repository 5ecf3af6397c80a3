import pytest

from gcsfuse.gcs import (
    ComposeObjectsRequest,
    ComposeSource,
    ContentTypeBucket,
    CreateObjectRequest,
    DeleteObjectRequest,
    ListObjectsRequest,
    MemoryBucket,
    NotFoundError,
    PreconditionError,
    StatObjectRequest,
    list_all,
    list_prefix,
    put_object,
    put_objects,
    read_object,
)

CASES = [
    ("foo/bar", "", ""),
    ("foo/bar", "image/jpeg", "image/jpeg"),
    ("foo/bar.asdf", "", ""),
    ("foo/bar.asdf", "image/jpeg", "image/jpeg"),
    ("foo/bar.jpg", "", "image/jpeg"),
    ("foo/bar.jpg", "text/plain", "text/plain"),
]


@pytest.mark.parametrize("name,request_type,expected", CASES)
def test_content_type_create(name, request_type, expected):
    bucket = ContentTypeBucket(MemoryBucket(""))
    o = bucket.create_object(CreateObjectRequest(name=name, content_type=request_type))
    assert o.content_type == expected


@pytest.mark.parametrize("name,request_type,expected", CASES)
def test_content_type_compose(name, request_type, expected):
    bucket = ContentTypeBucket(MemoryBucket(""))
    bucket.create_object(CreateObjectRequest(name="some_src"))
    o = bucket.compose_objects(
        ComposeObjectsRequest(
            dst_name=name, content_type=request_type, sources=[ComposeSource("some_src")]
        )
    )
    assert o.content_type == expected


def test_round_trip_and_generations():
    bucket = MemoryBucket("b")
    first = put_object(bucket, "foo", b"taco")
    second = put_object(bucket, "foo", b"burrito")
    assert second.generation > first.generation
    assert read_object(bucket, "foo") == b"burrito"
    assert bucket.stat_object(StatObjectRequest("foo")).size == 7


def test_generation_precondition():
    bucket = MemoryBucket("b")
    put_object(bucket, "foo", b"x")
    with pytest.raises(PreconditionError):
        bucket.create_object(CreateObjectRequest(name="foo", generation_precondition=0))


def test_delete_then_not_found():
    bucket = MemoryBucket("b")
    put_object(bucket, "foo", b"x")
    bucket.delete_object(DeleteObjectRequest("foo"))
    with pytest.raises(NotFoundError):
        read_object(bucket, "foo")


def test_list_all_pages_and_prefix():
    bucket = MemoryBucket("b")
    put_objects(bucket, {"a/1": b"", "a/2": b"", "b": b""})
    objects, runs = list_all(bucket, ListObjectsRequest(max_results=1))
    assert [o.name for o in objects] == ["a/1", "a/2", "b"]
    assert runs == []
    assert [o.name for o in list_prefix(bucket, "a/")] == ["a/1", "a/2"]
    _, runs = list_all(bucket, ListObjectsRequest(delimiter="/"))
    assert runs == ["a/"]