import io
import re
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from gcsfuse.append_creator import AppendObjectCreator, format_mtime
from gcsfuse.gcs import (
    Bucket,
    GCSError,
    NotFoundError,
    Object,
    PreconditionError,
)

PREFIX = ".gcsfuse_tmp/"


@pytest.fixture
def bucket():
    return Mock(spec=Bucket)


@pytest.fixture
def creator(bucket):
    return AppendObjectCreator(PREFIX, bucket)


def _call(creator, src=None, mtime=None, contents=b""):
    return creator.create(
        src or Object(),
        mtime or datetime(2015, 4, 5, 2, 15, tzinfo=timezone.utc),
        io.BytesIO(contents),
    )


def _arrange(bucket, compose, delete, tmp=None):
    """Make create succeed with tmp; compose/delete raise if given exceptions."""
    bucket.create_object.return_value = tmp or Object(name="bar")
    for method, outcome in ((bucket.compose_objects, compose), (bucket.delete_object, delete)):
        if isinstance(outcome, BaseException):
            method.side_effect = outcome
        else:
            method.return_value = outcome


def _deleted_names(bucket):
    return [c.args[0].name for c in bucket.delete_object.call_args_list]


@pytest.mark.parametrize(
    "mtime, expected",
    [
        (datetime(2012, 8, 15, 22, 56, tzinfo=timezone.utc), "2012-08-15T22:56:00Z"),
        (
            datetime(2012, 8, 15, 22, 56, 0, 123400, tzinfo=timezone.utc),
            "2012-08-15T22:56:00.1234Z",
        ),
        (
            datetime(2012, 8, 15, 22, 56, tzinfo=timezone(timedelta(hours=2))),
            "2012-08-15T22:56:00+02:00",
        ),
    ],
)
def test_format_mtime(mtime, expected):
    assert format_mtime(mtime) == expected


def test_calls_create_object(bucket, creator):
    bucket.create_object.side_effect = GCSError("")
    with pytest.raises(GCSError):
        _call(creator, contents=b"taco")

    req = bucket.create_object.call_args.args[0]
    assert req.name.startswith(PREFIX)
    assert re.fullmatch(re.escape(PREFIX) + r"[0-9a-f]{16}", req.name)
    assert req.generation_precondition == 0
    assert req.contents.read() == b"taco"


@pytest.mark.parametrize(
    "error, is_precondition",
    [(RuntimeError("taco"), False), (PreconditionError("taco"), True)],
)
def test_create_object_errors(bucket, creator, error, is_precondition):
    bucket.create_object.side_effect = error
    with pytest.raises(GCSError) as info:
        _call(creator)
    assert isinstance(info.value, PreconditionError) == is_precondition
    assert "CreateObject" in str(info.value)
    assert "taco" in str(info.value)


def test_calls_compose_objects(bucket, creator):
    src = Object(name="foo", generation=17, meta_generation=23)
    mtime = datetime.now(timezone.utc) + timedelta(seconds=123)
    _arrange(bucket, GCSError(""), None, tmp=Object(name="bar", generation=19))

    with pytest.raises(GCSError):
        _call(creator, src=src, mtime=mtime)

    req = bucket.compose_objects.call_args.args[0]
    assert req.dst_name == "foo"
    assert req.dst_generation_precondition == 17
    assert req.dst_meta_generation_precondition == 23
    assert req.metadata == {"gcsfuse_mtime": format_mtime(mtime)}
    assert len(req.sources) == 2
    assert (req.sources[0].name, req.sources[0].generation) == ("foo", 17)
    assert (req.sources[1].name, req.sources[1].generation) == ("bar", 19)
    assert _deleted_names(bucket) == ["bar"]


@pytest.mark.parametrize(
    "error, is_precondition, fragments",
    [
        (RuntimeError("taco"), False, ["ComposeObjects", "taco"]),
        (PreconditionError("taco"), True, ["ComposeObjects", "taco"]),
        (NotFoundError("taco"), True, ["Synthesized", "ComposeObjects", "taco"]),
    ],
)
def test_compose_objects_errors(bucket, creator, error, is_precondition, fragments):
    _arrange(bucket, error, GCSError(""))

    with pytest.raises(GCSError) as info:
        _call(creator)
    assert isinstance(info.value, PreconditionError) == is_precondition
    message = str(info.value)
    assert all(fragment in message for fragment in fragments)
    assert _deleted_names(bucket) == ["bar"]


def test_calls_delete_object(bucket, creator):
    _arrange(bucket, Object(), GCSError(""))
    with pytest.raises(GCSError):
        _call(creator)
    assert _deleted_names(bucket) == ["bar"]


def test_delete_object_fails(bucket, creator):
    _arrange(bucket, Object(), RuntimeError("taco"))
    with pytest.raises(GCSError) as info:
        _call(creator)
    assert "DeleteObject" in str(info.value)
    assert "taco" in str(info.value)


def test_delete_object_succeeds(bucket, creator):
    composed = Object(name="composed")
    _arrange(bucket, composed, None)
    assert _call(creator) is composed