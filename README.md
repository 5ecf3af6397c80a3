# gcsfuse

Building blocks for exposing an object-store bucket as a file system.

## What is inside

- `gcsfuse.gcs`: the object and request records (`Object`, `ByteRange`,
  `ComposeSource`, `CreateObjectRequest`, `ReadObjectRequest`, ...), the error
  types (`GCSError`, `PreconditionError`, `NotFoundError`), the `Bucket`
  interface, `MemoryBucket`, an in-memory bucket with generation and
  precondition semantics, and `ContentTypeBucket`, which guesses a MIME type
  from the object name when a create or compose request has none. It also has
  the helpers `put_object`, `put_objects`, `read_object`, `list_all` and
  `list_prefix`.
- `gcsfuse.prefix_bucket.PrefixBucket`: a view of a bucket limited to one
  name prefix. The prefix is added to every name sent to the wrapped bucket
  and stripped from every name it returns.
- `gcsfuse.monitoring_bucket`: `MonitoringBucket` counts requests per bucket
  and method, and wraps readers in `MonitoringReader`, which counts bytes read.
  Reader latencies go into `Histogram`s; all of these live in a `Metrics`
  record. `exponential_buckets` builds histogram bounds.
- `gcsfuse.temp_file.TempFile`: a local copy of an object's contents, loaded
  lazily from a source stream into an anonymous temporary file. `stat()`
  returns a `StatResult` with the size, the length of the unmodified prefix
  (`dirty_threshold`) and the modification time.
- `gcsfuse.append_creator.AppendObjectCreator`: writes a new generation of an
  object by uploading only the appended bytes to a temporary object, composing
  it onto the source and deleting the temporary object. A clobbered source is
  reported as `PreconditionError`. `format_mtime` formats the modification
  time stored under the `gcsfuse_mtime` metadata key.
- `gcsfuse.random_reader.RandomReader`: ranged reads of one object generation
  that reuse a single streaming reader where possible, skip forward within it,
  and switch to smaller requests when reads look random. A short result from
  `read_at(size, offset)` means the end of the object was reached.
- `gcsfuse.garbage_collect`: `garbage_collect_once` deletes objects under a
  prefix not updated for 30 minutes; `garbage_collect` repeats that every
  period (10 minutes by default) until a `threading.Event` is set.
- `gcsfuse.options.parse_options`: parses mount(8)-style option strings such
  as `user,foo=bar=baz,qux`.
- `gcsfuse.perms.my_user_and_group`: returns the current UID and GID.
- `gcsfuse.logger`: loggers (`new_info`, `new_debug`, `new_notice`,
  `new_error`, `info`, `infof`) that write to stdout or stderr, or, after
  `init_log_file(filename, format)`, to a file in `"text"` or `"json"` format.

## Example

```python
from gcsfuse.gcs import MemoryBucket, put_object, read_object
from gcsfuse.prefix_bucket import PrefixBucket

bucket = MemoryBucket("some_bucket")
put_object(bucket, "dir/taco", b"foobar")

view = PrefixBucket("dir/", bucket)
print(read_object(view, "taco"))  # b'foobar'
```

## What this package does not do

- It does not mount anything: there is no command, no FUSE file system
  server and no inode layer.
- It does not talk to a real object store. `MemoryBucket` is the only bucket
  that stores data; the other buckets wrap one.
- There is no component that takes a modified `TempFile` and decides whether
  to rewrite the whole object or append to it. Callers write new generations
  themselves, with `Bucket.create_object` or `AppendObjectCreator`.

## Tests

```
pip install -e .[test]
pytest
```