"""Git log, tag and reflog operations."""

import re
from pathlib import Path

from gitdeck.git.runner import run_git, GitResult
from gitdeck.lib.types import CommitInfo, ReflogEntry, TagInfo

COMMIT_SEPARATOR = "---GITDECK_COMMIT---"
REFLOG_SEPARATOR = "---GITDECK_REFLOG---"

LOG_FORMAT = "%H%n%h%n%s%n%an%n%ae%n%ci%n%D"
REFLOG_FORMAT = "%H%n%h%n%gs%n%ci"
TAG_FORMAT = "%(refname:short)|%(creatordate:iso)|%(subject)|%(objectname:short)"

REFLOG_ACTION_RE = re.compile(r"^(\w[\w-]*)(?:\s*\(.*?\))?:")


def _field(lines: list[str], index: int) -> str:
    return lines[index] if index < len(lines) else ""


def parse_log(output: str) -> list[CommitInfo]:
    """Parse log output produced with LOG_FORMAT + COMMIT_SEPARATOR."""
    commits = []
    for block in output.split(COMMIT_SEPARATOR):
        lines = block.strip("\n").split("\n")
        if not block.strip():
            continue
        commits.append(CommitInfo(
            hash=_field(lines, 0),
            short_hash=_field(lines, 1),
            message=_field(lines, 2),
            author=_field(lines, 3),
            email=_field(lines, 4),
            date=_field(lines, 5),
            refs=_field(lines, 6),
        ))
    return commits


def get_log(worktree: Path, limit: int = 100) -> GitResult:
    """Most recent commits; parse stdout with parse_log()."""
    return run_git(
        ["log", f"--max-count={limit}", f"--format={LOG_FORMAT}{COMMIT_SEPARATOR}"],
        worktree,
    )


def parse_tags(output: str) -> list[TagInfo]:
    """Parse `git tag -l --format=TAG_FORMAT` output."""
    tags = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("|", 3)
        parts += [""] * (4 - len(parts))
        tags.append(TagInfo(name=parts[0], date=parts[1], message=parts[2], hash=parts[3]))
    return tags


def list_tags(worktree: Path) -> GitResult:
    """Tags newest first; parse stdout with parse_tags()."""
    return run_git(["tag", "-l", "--sort=-creatordate", f"--format={TAG_FORMAT}"], worktree)


def create_tag(worktree: Path, name: str, message: str | None = None, sha: str | None = None) -> GitResult:
    """Create a lightweight tag, or an annotated one when a message is given."""
    args = ["tag", "-a", name, "-m", message] if message else ["tag", name]
    if sha:
        args.append(sha)
    return run_git(args, worktree)


def delete_tag(worktree: Path, name: str) -> GitResult:
    """Delete a local tag."""
    return run_git(["tag", "-d", name], worktree)


def parse_reflog(output: str) -> list[ReflogEntry]:
    """Parse reflog output produced with REFLOG_FORMAT + REFLOG_SEPARATOR."""
    entries = []
    for block in output.split(REFLOG_SEPARATOR):
        if not block.strip():
            continue
        lines = block.strip("\n").split("\n")
        description = _field(lines, 2)
        match = REFLOG_ACTION_RE.match(description)
        entries.append(ReflogEntry(
            hash=_field(lines, 0),
            short_hash=_field(lines, 1),
            action=match.group(1) if match else "unknown",
            description=description,
            date=_field(lines, 3),
            index=len(entries),
        ))
    return entries


def get_reflog(worktree: Path, limit: int = 100) -> GitResult:
    """Recent HEAD movements; parse stdout with parse_reflog()."""
    return run_git(
        ["reflog", f"--max-count={limit}", f"--format={REFLOG_FORMAT}{REFLOG_SEPARATOR}"],
        worktree,
    )
