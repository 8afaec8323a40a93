"""Git commit and index operations."""

from pathlib import Path

from gitdeck.git.runner import run_git, GitResult, Identity

RESOLVE_STRATEGIES = ("ours", "theirs")


def stage_files(worktree: Path, files: list[str]) -> GitResult:
    """Stage specific files. Staging an already-staged file is a no-op."""
    return run_git(["add", "--"] + files, worktree)


def unstage_files(worktree: Path, files: list[str]) -> GitResult:
    """Remove specific files from the index, keeping worktree changes."""
    return run_git(["reset", "-q", "HEAD", "--"] + files, worktree)


def create_commit(worktree: Path, message: str, identity: Identity | None = None) -> GitResult:
    """Create a commit with the given message."""
    return run_git(["commit", "-m", message], worktree, identity=identity)


def amend_message(worktree: Path, message: str, identity: Identity | None = None) -> GitResult:
    """Replace the message of the last commit."""
    return run_git(["commit", "--amend", "-m", message], worktree, identity=identity)


def reset(worktree: Path, mode: str, target: str) -> GitResult:
    """Move HEAD to target with --soft or --hard."""
    if mode not in ("soft", "hard"):
        raise ValueError(f"Unsupported reset mode: {mode}")
    return run_git(["reset", f"--{mode}", target], worktree)


def squash(worktree: Path, count: int, message: str, identity: Identity | None = None) -> GitResult:
    """
    Squash the last `count` commits into one.

    Soft-resets HEAD~count (keeping the changes staged) and commits them
    again with the combined message. Returns the first failing step.
    """
    result = reset(worktree, "soft", f"HEAD~{count}")
    if not result.success:
        return result
    return create_commit(worktree, message, identity=identity)


def revert_head(worktree: Path, identity: Identity | None = None) -> GitResult:
    """Create a commit that reverts HEAD."""
    return run_git(["revert", "HEAD", "--no-edit"], worktree, identity=identity)


def cherry_pick(worktree: Path, sha: str, identity: Identity | None = None) -> GitResult:
    """Apply a single commit on top of HEAD."""
    return run_git(["cherry-pick", sha], worktree, identity=identity)


def discard_file(worktree: Path, filepath: str) -> GitResult:
    """Restore a tracked file to its HEAD state."""
    return run_git(["checkout", "HEAD", "--", filepath], worktree)


def clean_file(worktree: Path, filepath: str) -> GitResult:
    """Remove an untracked file."""
    return run_git(["clean", "-f", "--", filepath], worktree)


def resolve_conflict(worktree: Path, filepath: str, strategy: str) -> GitResult:
    """
    Resolve a conflicted file by taking one side, then mark it resolved.

    Returns the first failing step.
    """
    if strategy not in RESOLVE_STRATEGIES:
        raise ValueError(f"Unknown conflict strategy: {strategy}")
    result = run_git(["checkout", f"--{strategy}", "--", filepath], worktree)
    if not result.success:
        return result
    return run_git(["add", "--", filepath], worktree)
