"""Git stash operations."""

import logging
import time
from datetime import datetime
from pathlib import Path

from gitdeck.git.runner import run_git, GitResult

logger = logging.getLogger(__name__)

STASH_RETRIES = 3
STASH_RETRY_DELAY = 0.5

NOTHING_TO_STASH = "No local changes to save"
INDEX_LOCK_MARKERS = ("could not write index", "index.lock")


def stash_push(worktree: Path, retries: int = STASH_RETRIES, delay: float = STASH_RETRY_DELAY) -> GitResult:
    """
    Stash all local changes, untracked files included, under a
    timestamped message.

    "No local changes to save" counts as success; use stash_created() to
    tell whether an entry was pushed. A failure caused by a
    held index lock is retried `retries` times, `delay` seconds apart.
    """
    message = f"gitdeck auto-stash {datetime.now().isoformat(timespec='seconds')}"
    attempt = 0
    while True:
        result = run_git(["stash", "push", "--include-untracked", "-m", message], worktree)
        if result.success:
            return result
        if NOTHING_TO_STASH in result.stderr or NOTHING_TO_STASH in result.stdout:
            return GitResult(returncode=0, stdout=result.stdout, stderr=result.stderr)
        if attempt < retries and any(m in result.stderr for m in INDEX_LOCK_MARKERS):
            attempt += 1
            logger.debug(f"Index locked, retrying stash ({attempt}/{retries})")
            time.sleep(delay)
            continue
        return result


def stash_created(result: GitResult) -> bool:
    """True when a successful stash_push() actually pushed an entry."""
    return result.success and NOTHING_TO_STASH not in result.stdout + result.stderr


def stash_pop(worktree: Path) -> GitResult:
    """Re-apply and drop the most recent stash entry."""
    return run_git(["stash", "pop"], worktree)
