"""Object-store data model, an in-memory bucket and bucket helpers."""

from __future__ import annotations

import io
import mimetypes
import posixpath
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Iterator, Optional, Union

Contents = Union[bytes, BinaryIO]

MAX_COMPONENT_COUNT = 1024


@dataclass
class Object:
    """Metadata record for one generation of an object."""

    name: str = ""
    content_type: str = ""
    content_language: str = ""
    size: int = 0
    generation: int = 0
    meta_generation: int = 0
    component_count: int = 0
    updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict = field(default_factory=dict)


@dataclass
class ByteRange:
    start: int
    limit: int


@dataclass
class ComposeSource:
    name: str
    generation: int = 0


@dataclass
class CreateObjectRequest:
    name: str
    contents: Contents = b""
    content_type: str = ""
    content_language: str = ""
    metadata: dict = field(default_factory=dict)
    generation_precondition: Optional[int] = None
    meta_generation_precondition: Optional[int] = None


@dataclass
class ReadObjectRequest:
    name: str
    generation: int = 0
    range: Optional[ByteRange] = None


@dataclass
class CopyObjectRequest:
    src_name: str
    dst_name: str
    src_generation: int = 0
    src_meta_generation_precondition: Optional[int] = None


@dataclass
class ComposeObjectsRequest:
    dst_name: str
    sources: list = field(default_factory=list)
    dst_generation_precondition: Optional[int] = None
    dst_meta_generation_precondition: Optional[int] = None
    content_type: str = ""
    metadata: dict = field(default_factory=dict)


@dataclass
class StatObjectRequest:
    name: str


@dataclass
class ListObjectsRequest:
    prefix: str = ""
    delimiter: str = ""
    continuation_token: str = ""
    max_results: int = 0


@dataclass
class Listing:
    objects: list = field(default_factory=list)
    collapsed_runs: list = field(default_factory=list)
    continuation_token: str = ""


@dataclass
class UpdateObjectRequest:
    name: str
    generation: int = 0
    content_type: Optional[str] = None
    content_language: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass
class DeleteObjectRequest:
    name: str
    generation: int = 0


class GCSError(Exception):
    """Base class for bucket errors."""


class PreconditionError(GCSError):
    """A generation or meta-generation precondition was not met."""


class NotFoundError(GCSError):
    """The requested object does not exist."""


class Bucket(ABC):
    """Interface of an object bucket."""

    name: str

    @abstractmethod
    def new_reader(self, req: ReadObjectRequest) -> BinaryIO: ...

    @abstractmethod
    def create_object(self, req: CreateObjectRequest) -> Object: ...

    @abstractmethod
    def copy_object(self, req: CopyObjectRequest) -> Object: ...

    @abstractmethod
    def compose_objects(self, req: ComposeObjectsRequest) -> Object: ...

    @abstractmethod
    def stat_object(self, req: StatObjectRequest) -> Object: ...

    @abstractmethod
    def list_objects(self, req: ListObjectsRequest) -> Listing: ...

    @abstractmethod
    def update_object(self, req: UpdateObjectRequest) -> Object: ...

    @abstractmethod
    def delete_object(self, req: DeleteObjectRequest) -> None: ...


def _read_contents(contents: Contents) -> bytes:
    if isinstance(contents, (bytes, bytearray)):
        return bytes(contents)
    return contents.read()


class MemoryBucket(Bucket):
    """A bucket held entirely in memory, with generation semantics."""

    def __init__(self, name: str = "", clock: Optional[Callable[[], datetime]] = None):
        self.name = name
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._objects: dict[str, tuple[Object, bytes]] = {}
        self._next_generation = 1
        self._lock = threading.Lock()

    def _now(self) -> datetime:
        return self._clock()

    def _check_preconditions(self, name, gen_pre, meta_pre) -> None:
        existing = self._objects.get(name)
        if gen_pre is not None:
            current = existing[0].generation if existing else 0
            if current != gen_pre:
                raise PreconditionError(
                    f"generation precondition not met for {name!r}: {current} vs {gen_pre}"
                )
        if meta_pre is not None and existing and existing[0].meta_generation != meta_pre:
            raise PreconditionError(f"meta-generation precondition not met for {name!r}")

    def _store(self, obj: Object, data: bytes) -> Object:
        obj.generation = self._next_generation
        self._next_generation += 1
        obj.meta_generation = 1
        obj.size = len(data)
        obj.updated = self._now()
        self._objects[obj.name] = (obj, data)
        return replace(obj, metadata=dict(obj.metadata))

    def _lookup(self, name: str, generation: int = 0) -> tuple[Object, bytes]:
        entry = self._objects.get(name)
        if entry is None or (generation and entry[0].generation != generation):
            raise NotFoundError(f"object {name!r} not found")
        return entry

    def new_reader(self, req):
        with self._lock:
            _, data = self._lookup(req.name, req.generation)
        if req.range is not None:
            start = min(req.range.start, len(data))
            limit = max(start, min(req.range.limit, len(data)))
            data = data[start:limit]
        return io.BytesIO(data)

    def create_object(self, req):
        data = _read_contents(req.contents)
        with self._lock:
            self._check_preconditions(
                req.name, req.generation_precondition, req.meta_generation_precondition
            )
            obj = Object(
                name=req.name,
                content_type=req.content_type,
                content_language=req.content_language,
                metadata=dict(req.metadata),
            )
            return self._store(obj, data)

    def copy_object(self, req):
        with self._lock:
            src, data = self._lookup(req.src_name, req.src_generation)
            if (
                req.src_meta_generation_precondition is not None
                and src.meta_generation != req.src_meta_generation_precondition
            ):
                raise PreconditionError(f"meta-generation precondition not met for {req.src_name!r}")
            obj = replace(src, name=req.dst_name, metadata=dict(src.metadata))
            return self._store(obj, data)

    def compose_objects(self, req):
        with self._lock:
            self._check_preconditions(
                req.dst_name,
                req.dst_generation_precondition,
                req.dst_meta_generation_precondition,
            )
            parts = [self._lookup(s.name, s.generation) for s in req.sources]
            data = b"".join(d for _, d in parts)
            count = sum(max(o.component_count, 1) for o, _ in parts)
            obj = Object(
                name=req.dst_name,
                content_type=req.content_type,
                metadata=dict(req.metadata),
                component_count=count,
            )
            return self._store(obj, data)

    def stat_object(self, req):
        with self._lock:
            obj, _ = self._lookup(req.name)
            return replace(obj, metadata=dict(obj.metadata))

    def list_objects(self, req):
        with self._lock:
            names = sorted(n for n in self._objects if n.startswith(req.prefix))
            entries: list[tuple[str, bool]] = []
            seen_runs: set[str] = set()
            for name in names:
                rest = name[len(req.prefix):]
                if req.delimiter and req.delimiter in rest:
                    idx = rest.index(req.delimiter)
                    run = req.prefix + rest[: idx + len(req.delimiter)]
                    if run not in seen_runs:
                        seen_runs.add(run)
                        entries.append((run, True))
                else:
                    entries.append((name, False))
            start = int(req.continuation_token) if req.continuation_token else 0
            end = len(entries) if req.max_results <= 0 else min(len(entries), start + req.max_results)
            listing = Listing()
            for key, is_run in entries[start:end]:
                if is_run:
                    listing.collapsed_runs.append(key)
                else:
                    obj = self._objects[key][0]
                    listing.objects.append(replace(obj, metadata=dict(obj.metadata)))
            if end < len(entries):
                listing.continuation_token = str(end)
            return listing

    def update_object(self, req):
        with self._lock:
            obj, data = self._lookup(req.name, req.generation)
            if req.content_type is not None:
                obj.content_type = req.content_type
            if req.content_language is not None:
                obj.content_language = req.content_language
            for key, value in req.metadata.items():
                if value is None:
                    obj.metadata.pop(key, None)
                else:
                    obj.metadata[key] = value
            obj.meta_generation += 1
            obj.updated = self._now()
            return replace(obj, metadata=dict(obj.metadata))

    def delete_object(self, req):
        with self._lock:
            self._lookup(req.name, req.generation)
            del self._objects[req.name]


def _guess_type(name: str) -> str:
    ext = posixpath.splitext(name)[1]
    if not ext:
        return ""
    return mimetypes.types_map.get(ext.lower(), "")


class ContentTypeBucket(Bucket):
    """Guesses MIME types for new objects that have no explicit type."""

    def __init__(self, wrapped: Bucket):
        self.wrapped = wrapped
        self.name = wrapped.name

    def new_reader(self, req):
        return self.wrapped.new_reader(req)

    def create_object(self, req):
        if not req.content_type:
            req = replace(req, content_type=_guess_type(req.name))
        return self.wrapped.create_object(req)

    def copy_object(self, req):
        return self.wrapped.copy_object(req)

    def compose_objects(self, req):
        if not req.content_type:
            req = replace(req, content_type=_guess_type(req.dst_name))
        return self.wrapped.compose_objects(req)

    def stat_object(self, req):
        return self.wrapped.stat_object(req)

    def list_objects(self, req):
        return self.wrapped.list_objects(req)

    def update_object(self, req):
        return self.wrapped.update_object(req)

    def delete_object(self, req):
        self.wrapped.delete_object(req)


def put_object(bucket: Bucket, name: str, contents: bytes) -> Object:
    """Create an object with the given contents."""
    return bucket.create_object(CreateObjectRequest(name=name, contents=contents))


def put_objects(bucket: Bucket, contents: dict) -> None:
    """Create one object per entry of a name-to-bytes mapping."""
    for name, data in contents.items():
        put_object(bucket, name, data)


def read_object(bucket: Bucket, name: str) -> bytes:
    """Return the full contents of the named object."""
    with bucket.new_reader(ReadObjectRequest(name=name)) as reader:
        return reader.read()


def list_all(bucket: Bucket, req: ListObjectsRequest) -> tuple[list, list]:
    """Follow continuation tokens, returning all objects and collapsed runs."""
    objects, runs = [], []
    req = replace(req)
    while True:
        listing = bucket.list_objects(req)
        objects.extend(listing.objects)
        runs.extend(listing.collapsed_runs)
        if not listing.continuation_token:
            return objects, runs
        req.continuation_token = listing.continuation_token


def list_prefix(bucket: Bucket, prefix: str) -> Iterator[Object]:
    """Yield every object whose name begins with prefix."""
    req = ListObjectsRequest(prefix=prefix)
    while True:
        listing = bucket.list_objects(req)
        yield from listing.objects
        if not listing.continuation_token:
            return
        req = replace(req, continuation_token=listing.continuation_token)