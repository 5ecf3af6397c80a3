"""A bucket view restricted to names under a fixed prefix."""

from __future__ import annotations

from dataclasses import replace

from gcsfuse.gcs import Bucket


class PrefixBucket(Bucket):
    """Exposes only objects under prefix, with the prefix stripped from names."""

    def __init__(self, prefix: str, wrapped: Bucket):
        try:
            prefix.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValueError("prefix is not valid UTF-8") from exc
        self.prefix = prefix
        self.wrapped = wrapped
        self.name = wrapped.name

    def _wrapped_name(self, n: str) -> str:
        return self.prefix + n

    def _local_name(self, n: str) -> str:
        return n.removeprefix(self.prefix)

    def _localize(self, o):
        if o is not None:
            o.name = self._local_name(o.name)
        return o

    def _renamed(self, req):
        return replace(req, name=self._wrapped_name(req.name))

    def _by_name(self, method_name: str, req):
        """Call the wrapped bucket with req's name prefixed, localizing the result."""
        return self._localize(getattr(self.wrapped, method_name)(self._renamed(req)))

    def new_reader(self, req):
        return self.wrapped.new_reader(self._renamed(req))

    def create_object(self, req):
        return self._by_name("create_object", req)

    def copy_object(self, req):
        m = replace(
            req,
            src_name=self._wrapped_name(req.src_name),
            dst_name=self._wrapped_name(req.dst_name),
        )
        return self._localize(self.wrapped.copy_object(m))

    def compose_objects(self, req):
        m = replace(
            req,
            dst_name=self._wrapped_name(req.dst_name),
            sources=[replace(s, name=self._wrapped_name(s.name)) for s in req.sources],
        )
        return self._localize(self.wrapped.compose_objects(m))

    def stat_object(self, req):
        return self._by_name("stat_object", req)

    def list_objects(self, req):
        listing = self.wrapped.list_objects(replace(req, prefix=self.prefix + req.prefix))
        for o in listing.objects:
            self._localize(o)
        listing.collapsed_runs = [self._local_name(n) for n in listing.collapsed_runs]
        return listing

    def update_object(self, req):
        return self._by_name("update_object", req)

    def delete_object(self, req):
        self.wrapped.delete_object(self._renamed(req))