[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gcsfuse"
version = "0.1.0"
description = "Object-store bucket layers for a file system: prefix views, content types, monitoring, temp files, appends and ranged reads."
requires-python = ">=3.10"
dependencies = []
keywords = ["gcs", "object storage", "bucket", "fuse", "filesystem"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gcsfuse"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
