"""Leveled loggers writing to standard streams or to a log file."""

from __future__ import annotations

import json
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TextIO

_STD_FLAGS = True


class JsonWriter:
    """Writes each message as one JSON log entry per line."""

    def __init__(self, stream: TextIO, level: str):
        self.stream = stream
        self.level = level

    def write(self, data: str) -> int:
        ns = time.time_ns()
        entry = {
            "name": "root",
            "levelname": self.level,
            "severity": self.level,
            "message": data,
            "timestampSeconds": ns // 1_000_000_000,
            "timestampNanos": ns % 1_000_000_000,
        }
        entry = {k: v for k, v in entry.items() if v}
        text = json.dumps(entry, ensure_ascii=False, separators=(",", ":"))
        for ch, esc in (("<", "\\u003c"), (">", "\\u003e"), ("&", "\\u0026"),
                        ("\u2028", "\\u2028"), ("\u2029", "\\u2029")):
            text = text.replace(ch, esc)
        self.stream.write(text + "\n")
        self.stream.flush()
        return len(data)


class TextWriter:
    """Writes messages prefixed with the level's initial and a timestamp."""

    def __init__(self, stream: TextIO, level: str):
        self.stream = stream
        self.level = level

    def write(self, data: str) -> int:
        stamp = datetime.now().strftime("%m%d %H:%M:%S.%f")
        self.stream.write(f"{self.level[0]}{stamp} {data}")
        self.stream.flush()
        return len(data)


class _StdWriter:
    def __init__(self, get_stream: Callable[[], TextIO]):
        self._get_stream = get_stream

    def write(self, data: str) -> int:
        stream = self._get_stream()
        stream.write(data)
        stream.flush()
        return len(data)


class Logger:
    """A prefix-and-timestamp logger over a writer."""

    def __init__(self, writer, prefix: str, timestamps: bool):
        self.writer = writer
        self.prefix = prefix
        self.timestamps = timestamps

    def _output(self, message: str) -> None:
        if not message.endswith("\n"):
            message += "\n"
        head = self.prefix
        if self.timestamps:
            head += datetime.now().strftime("%Y/%m/%d %H:%M:%S.%f ")
        self.writer.write(head + message)

    def printf(self, fmt: str, *args) -> None:
        self._output(fmt % args if args else fmt)

    def println(self, *args) -> None:
        self._output(" ".join(str(a) for a in args))


@dataclass
class _Factory:
    file: Optional[TextIO] = None
    timestamps: bool = _STD_FLAGS
    format: str = ""

    def writer(self, level: str):
        if self.file is not None:
            if self.format == "json":
                return JsonWriter(self.file, level)
            if self.format == "text":
                return TextWriter(self.file, level)
        if level == "ERROR":
            return _StdWriter(lambda: sys.stderr)
        return _StdWriter(lambda: sys.stdout)

    def new_logger(self, level: str, prefix: str) -> Logger:
        return Logger(self.writer(level), prefix, self.timestamps)


_factory = _Factory()
_default_info = _factory.new_logger("INFO", "")


def init_log_file(filename: str, format: str) -> None:
    """Direct all newly created loggers to the named file."""
    global _factory, _default_info
    f = open(filename, "a", encoding="utf-8")
    _factory = _Factory(file=f, timestamps=False, format=format)
    _default_info = new_info("")


def close() -> None:
    """Close the log file, if any, and go back to the standard streams."""
    global _factory, _default_info
    if _factory.file is not None:
        _factory.file.close()
    _factory = _Factory()
    _default_info = new_info("")


def new_notice(prefix: str) -> Logger:
    """Return a logger for notices."""
    return _factory.new_logger("NOTICE", prefix)


def new_debug(prefix: str) -> Logger:
    """Return a logger for debug messages."""
    return _factory.new_logger("DEBUG", prefix)


def new_info(prefix: str) -> Logger:
    """Return a logger for informational messages."""
    return _factory.new_logger("INFO", prefix)


def new_error(prefix: str) -> Logger:
    """Return a logger for errors."""
    return _factory.new_logger("ERROR", prefix)


def infof(fmt: str, *args) -> None:
    """Log a %-formatted message at info level."""
    _default_info.printf(fmt, *args)


def info(*args) -> None:
    """Log space-joined arguments at info level."""
    _default_info.println(*args)