"""
Single-flight guard: at most one sync run at a time.
"""

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path

from eds_birthday_sync.models import SyncInProgressError


@contextmanager
def run_lock(lock_path: Path):
    """
    Hold an exclusive lock on ``lock_path`` for the duration of the block.

    flock() locks belong to the open file description, so a second
    acquisition conflicts whether it comes from another process (a timer
    firing during a manual run) or from this one.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise SyncInProgressError(
                f"Another sync is already running (lock held on {lock_path})"
            ) from None
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
