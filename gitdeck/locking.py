"""
Per-repository process lock for the CLI.

Two gitdeck processes must never mutate the same working copy at once.
Each repository maps to <home>/locks/<digest>.lock, held with flock for
the duration of one command.
"""

import atexit
import fcntl
import hashlib
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path


class LockTimeout(Exception):
    """Lock acquisition timed out."""


POLL_INTERVAL = 0.2


def lock_path(locks_dir: Path, repo: Path) -> Path:
    """Lock file for a repository, keyed by its resolved path."""
    digest = hashlib.sha1(str(Path(repo).resolve()).encode()).hexdigest()[:16]
    return locks_dir / f"{digest}.lock"


def is_locked(locks_dir: Path, repo: Path) -> bool:
    """Check whether another process currently holds the repository lock."""
    path = lock_path(locks_dir, repo)
    if not path.exists():
        return False
    with open(path, 'r') as fd:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        fcntl.flock(fd, fcntl.LOCK_UN)
    return False


@contextmanager
def repo_lock(locks_dir: Path, repo: Path, timeout: float = 30):
    """
    Acquire the lock for `repo`, yield, release on exit.

    Lock files are never deleted: removing one lets two processes hold
    "exclusive" locks on different inodes behind the same path.

    Raises:
        LockTimeout: if the lock is still held after `timeout` seconds
    """
    lock_file = lock_path(locks_dir, repo)
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.monotonic()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() - start >= timeout:
                fd.close()
                raise LockTimeout(f"Could not lock {repo} within {timeout}s (another gitdeck is running)")
            time.sleep(POLL_INTERVAL)

    def cleanup():
        if fd.closed:
            return
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()

    atexit.register(cleanup)
    original_sigterm = signal.signal(signal.SIGTERM, lambda *_: sys.exit(1))

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield lock_file
    finally:
        atexit.unregister(cleanup)
        signal.signal(signal.SIGTERM, original_sigterm)
        cleanup()
