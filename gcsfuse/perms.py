"""Process identity helpers."""

import os


def my_user_and_group() -> tuple[int, int]:
    """Return the UID and GID of this process."""
    return os.getuid(), os.getgid()