"""Git diff operations."""

from pathlib import Path

from gitdeck.git.runner import run_git


def get_diff(worktree: Path, filepath: str | None = None) -> str:
    """Staged diff followed by unstaged diff, optionally limited to one path."""
    unstaged_args = ["diff", "--no-color"]
    staged_args = ["diff", "--cached", "--no-color"]
    if filepath:
        unstaged_args += ["--", filepath]
        staged_args += ["--", filepath]

    staged = run_git(staged_args, worktree).stdout
    unstaged = run_git(unstaged_args, worktree).stdout
    if staged and unstaged:
        return staged + "\n" + unstaged
    return staged or unstaged


def get_conflicted_files(worktree: Path) -> list[str]:
    """Get list of files with unresolved conflicts."""
    result = run_git(["diff", "--name-only", "--diff-filter=U"], worktree)
    return [f.strip() for f in result.stdout.splitlines() if f.strip()]
