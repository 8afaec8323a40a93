"""Git remote operations."""

from pathlib import Path

from gitdeck.git.runner import run_git, GitResult, Identity, NETWORK_TIMEOUT

DEFAULT_REMOTE = "origin"

# Markers git prints when a pull stops on conflicting changes
CONFLICT_MARKERS = ("CONFLICT", "conflict")


def push(
    worktree: Path,
    remote: str = DEFAULT_REMOTE,
    branch: str | None = None,
    set_upstream: bool = False,
    force: bool = False,
    token: str | None = None,
    timeout: int = NETWORK_TIMEOUT,
) -> GitResult:
    """Push to remote."""
    args = ["push"]
    if set_upstream:
        args.append("-u")
    if force:
        args.append("--force")
    args.append(remote)
    if branch:
        args.append(branch)
    return run_git(args, worktree, timeout=timeout, token=token)


def pull(
    worktree: Path,
    token: str | None = None,
    identity: Identity | None = None,
    timeout: int = NETWORK_TIMEOUT,
) -> GitResult:
    """Pull with rebase, auto-stashing local changes for the duration."""
    return run_git(
        ["pull", "--rebase", "--autostash"],
        worktree,
        timeout=timeout,
        token=token,
        identity=identity,
    )


def reports_conflict(result: GitResult) -> bool:
    """Check whether a failed pull/merge output mentions conflicts."""
    text = result.stderr + result.stdout
    return any(marker in text for marker in CONFLICT_MARKERS)


def push_tag(worktree: Path, tag: str, remote: str = DEFAULT_REMOTE, token: str | None = None) -> GitResult:
    """Push a single tag."""
    return run_git(["push", remote, tag], worktree, timeout=NETWORK_TIMEOUT, token=token)


def delete_remote_tag(worktree: Path, tag: str, remote: str = DEFAULT_REMOTE, token: str | None = None) -> GitResult:
    """Delete a tag on the remote."""
    return run_git(["push", remote, f":refs/tags/{tag}"], worktree, timeout=NETWORK_TIMEOUT, token=token)
