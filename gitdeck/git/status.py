"""Git status operations."""

from pathlib import Path

from gitdeck.git.runner import run_git, GitResult
from gitdeck.lib.types import FileState, FileStatus

# Porcelain v2 status letters -> file state
_STATE_FOR_CODE = {
    "A": FileState.ADDED,
    "M": FileState.MODIFIED,
    "D": FileState.DELETED,
    "R": FileState.RENAMED,
    "C": FileState.ADDED,
    "T": FileState.MODIFIED,
}


def _state(code: str) -> FileState:
    return _STATE_FOR_CODE.get(code, FileState.MODIFIED)


def parse_status_v2(output: str) -> list[FileStatus]:
    """
    Parse `git status --porcelain=v2 -z` output.

    Entry formats:
        1 XY sub mH mI mW hH hI <path>
        2 XY sub mH mI mW hH hI Xscore <path>\\0<origPath>
        u XY sub m1 m2 m3 mW h1 h2 h3 <path>
        ? <path>

    A path with both index and worktree changes (e.g. "MM") yields two
    entries, one staged and one unstaged.
    """
    files: list[FileStatus] = []
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if not entry:
            continue

        kind = entry[0]
        if kind == "1":
            parts = entry.split(" ", 8)
            if len(parts) < 9:
                continue
            _append_changed(files, parts[1], parts[8])
        elif kind == "2":
            parts = entry.split(" ", 9)
            if len(parts) < 10:
                continue
            # Rename source follows as its own NUL-terminated entry
            old_path = entries[i] if i < len(entries) else None
            i += 1
            _append_changed(files, parts[1], parts[9], old_path)
        elif kind == "u":
            parts = entry.split(" ", 10)
            if len(parts) < 11:
                continue
            files.append(FileStatus(path=parts[10], status=FileState.CONFLICT, staged=False))
        elif kind == "?":
            files.append(FileStatus(path=entry[2:], status=FileState.UNTRACKED, staged=False))
        # "!" (ignored) and "#" (headers) are skipped

    return files


def _append_changed(files: list[FileStatus], xy: str, path: str, old_path: str | None = None) -> None:
    index_code, worktree_code = xy[0], xy[1]
    if index_code != ".":
        files.append(FileStatus(
            path=path,
            status=_state(index_code),
            staged=True,
            old_path=old_path if index_code == "R" else None,
        ))
    if worktree_code != ".":
        files.append(FileStatus(
            path=path,
            status=_state(worktree_code),
            staged=False,
            old_path=old_path if worktree_code == "R" else None,
        ))


def get_status(worktree: Path) -> GitResult:
    """Run porcelain v2 status; caller parses stdout with parse_status_v2()."""
    return run_git(["status", "--porcelain=v2", "-z"], worktree)
