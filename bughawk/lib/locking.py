"""
Lock management for the file store.

Uses flock so that separate CLI processes serialize mutations on the same
issue or project.
"""

import atexit
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


POLL_INTERVAL = 0.1


@contextmanager
def file_lock(lock_file: Path, timeout: float = 30, lock_name: str = ""):
    """
    Acquire an exclusive flock on lock_file, yield, release on exit.

    Lock files are never deleted: removing one while another process waits
    on it would let two processes lock different inodes at the same path.

    Args:
        lock_file: Path to the lock file
        timeout: Seconds to wait for lock
        lock_name: Human-readable name for error messages
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.time()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.time() - start > timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name or lock_file.name} within {timeout}s")
            time.sleep(POLL_INTERVAL)

    def cleanup():
        if fd.closed:
            return
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()

    atexit.register(cleanup)

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        atexit.unregister(cleanup)
        cleanup()
