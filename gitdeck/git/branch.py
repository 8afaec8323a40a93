"""Git branch operations."""

from pathlib import Path

from gitdeck.git.runner import run_git, GitResult, NETWORK_TIMEOUT
from gitdeck.lib.types import BranchInfo

LOCAL_PREFIX = "refs/heads/"
REMOTE_PREFIX = "refs/remotes/"

BRANCH_FORMAT = "%(HEAD)|%(refname)|%(objectname:short)"


def parse_branches(output: str) -> list[BranchInfo]:
    """Parse `git branch -a --format=BRANCH_FORMAT` output.

    Remote branches are reported without their remote prefix, so
    "refs/remotes/origin/main" becomes name "main" with remote=True.
    Symbolic remote HEADs and detached-HEAD pseudo entries are skipped.
    """
    branches = []
    for line in output.splitlines():
        parts = line.split("|")
        if len(parts) < 3:
            continue
        head, refname, sha = parts[0], parts[1], parts[2]

        if refname.startswith(LOCAL_PREFIX):
            name = refname[len(LOCAL_PREFIX):]
            remote = False
        elif refname.startswith(REMOTE_PREFIX):
            # refs/remotes/<remote>/<branch...>
            _, _, name = refname[len(REMOTE_PREFIX):].partition("/")
            if not name or name == "HEAD":
                continue
            remote = True
        else:
            continue

        branches.append(BranchInfo(
            name=name,
            current=head.strip() == "*" and not remote,
            remote=remote,
            last_commit=sha.strip() or None,
        ))
    return branches


def list_branches(repo: Path) -> GitResult:
    """List local and remote branches; parse stdout with parse_branches()."""
    return run_git(["branch", "-a", "--no-color", f"--format={BRANCH_FORMAT}"], repo)


def get_current_branch(worktree: Path) -> str | None:
    """Get the current branch name, or None if detached HEAD."""
    result = run_git(["branch", "--show-current"], worktree)
    if result.success:
        return result.stdout.strip() or None
    return None


def checkout_branch(repo: Path, branch: str, create: bool = False) -> GitResult:
    """Checkout a branch, optionally creating it."""
    args = ["checkout", "-b", branch] if create else ["checkout", branch]
    return run_git(args, repo)


def checkout_commit(repo: Path, sha: str) -> GitResult:
    """Checkout a commit (detached HEAD)."""
    return run_git(["checkout", sha], repo)


def delete_branch(repo: Path, branch: str) -> GitResult:
    """Force-delete a local branch."""
    return run_git(["branch", "-D", branch], repo)


def delete_remote_branch(repo: Path, remote: str, branch: str, token: str | None = None) -> GitResult:
    """Delete a branch on the remote."""
    return run_git(["push", remote, "--delete", branch], repo, timeout=NETWORK_TIMEOUT, token=token)


def merge(repo: Path, branch: str) -> GitResult:
    """Merge a branch into the current one."""
    return run_git(["merge", branch], repo)


def rebase(repo: Path, branch: str) -> GitResult:
    """
    Rebase the current branch onto another.

    A failed rebase is aborted so the repository is not left mid-rebase.
    The returned result is the failed rebase, not the abort.
    """
    result = run_git(["rebase", branch], repo)
    if not result.success:
        run_git(["rebase", "--abort"], repo)
    return result
