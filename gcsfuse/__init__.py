"""Bucket layers, temp files, appends and ranged reads for an object-store backed file system."""

__version__ = "0.1.0"