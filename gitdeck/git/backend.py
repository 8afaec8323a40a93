"""
VCS backend bound to one working copy.

VcsBackend is the capability the orchestrator consumes. GitBackend
implements it on top of the git primitive modules: every method either
returns normally or raises BackendError (ConflictError when the failure
left unmerged paths behind).
"""

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from gitdeck.git import branch as git_branch
from gitdeck.git import commit as git_commit
from gitdeck.git import diff as git_diff
from gitdeck.git import history as git_history
from gitdeck.git import remote as git_remote
from gitdeck.git import stash as git_stash
from gitdeck.git import status as git_status
from gitdeck.git.runner import GitResult, Identity
from gitdeck.lib.errors import BackendError, ConflictError
from gitdeck.lib.types import (
    BranchInfo,
    CommitInfo,
    FileState,
    FileStatus,
    ReflogEntry,
    SyncResult,
    TagInfo,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class VcsBackend(Protocol):
    """Primitive version-control operations against one working copy."""

    path: Path

    def status(self) -> list[FileStatus]: ...
    def stage(self, paths: list[str]) -> None: ...
    def unstage(self, paths: list[str]) -> None: ...
    def commit(self, message: str) -> None: ...
    def push(self, remote: str | None = None, branch: str | None = None,
             set_upstream: bool = False, force: bool = False,
             token: str | None = None) -> None: ...
    def pull(self, token: str | None = None) -> None: ...
    def sync(self, token: str | None = None) -> SyncResult: ...
    def checkout(self, branch: str, create: bool = False) -> None: ...
    def checkout_commit(self, sha: str) -> None: ...
    def stash(self) -> bool: ...
    def stash_pop(self) -> None: ...
    def merge(self, branch: str) -> None: ...
    def rebase(self, branch: str) -> None: ...
    def reset(self, mode: str, target: str) -> None: ...
    def delete_branch(self, name: str) -> None: ...
    def delete_remote_branch(self, remote: str, branch: str, token: str | None = None) -> None: ...
    def create_tag(self, name: str, message: str | None = None, sha: str | None = None) -> None: ...
    def push_tag(self, name: str, token: str | None = None) -> None: ...
    def delete_tag(self, name: str) -> None: ...
    def delete_remote_tag(self, name: str, token: str | None = None) -> None: ...
    def cherry_pick(self, sha: str) -> None: ...
    def squash_commits(self, count: int, message: str) -> None: ...
    def reword_commit(self, message: str) -> None: ...
    def revert_head(self) -> None: ...
    def discard_file(self, path: str) -> None: ...
    def clean_file(self, path: str) -> None: ...
    def resolve_conflict(self, path: str, strategy: str) -> None: ...
    def log(self, limit: int = 100) -> list[CommitInfo]: ...
    def branches(self) -> list[BranchInfo]: ...
    def current_branch(self) -> str | None: ...
    def tags(self) -> list[TagInfo]: ...
    def diff(self, path: str | None = None) -> str: ...
    def reflog(self, limit: int = 100) -> list[ReflogEntry]: ...
    def conflicted_files(self) -> list[str]: ...


class GitBackend:
    """VcsBackend over the `git` executable."""

    def __init__(self, path: Path, identity: Identity | None = None, remote: str = git_remote.DEFAULT_REMOTE):
        self.path = Path(path)
        self.identity = identity
        self.remote = remote

    def _check(self, operation: str, result: GitResult) -> GitResult:
        if not result.success:
            raise BackendError.from_result(operation, result)
        return result

    def _check_conflicts(self, operation: str, result: GitResult) -> GitResult:
        """Like _check, but a failure that left unmerged paths raises ConflictError."""
        if result.success:
            return result
        paths = self.conflicted_files()
        if paths:
            raise ConflictError(operation, paths, f"git {operation} failed: {result.error_text}", result)
        raise BackendError.from_result(operation, result)

    # ── Read operations ──

    def status(self) -> list[FileStatus]:
        if not self.path.exists():
            return []
        result = self._check("status", git_status.get_status(self.path))
        return git_status.parse_status_v2(result.stdout)

    def log(self, limit: int = 100) -> list[CommitInfo]:
        result = git_history.get_log(self.path, limit)
        if not result.success:
            # Unborn branch: no commits yet
            return []
        return git_history.parse_log(result.stdout)

    def branches(self) -> list[BranchInfo]:
        result = self._check("branch", git_branch.list_branches(self.path))
        return git_branch.parse_branches(result.stdout)

    def current_branch(self) -> str | None:
        return git_branch.get_current_branch(self.path)

    def tags(self) -> list[TagInfo]:
        result = self._check("tag", git_history.list_tags(self.path))
        return git_history.parse_tags(result.stdout)

    def diff(self, path: str | None = None) -> str:
        return git_diff.get_diff(self.path, path)

    def reflog(self, limit: int = 100) -> list[ReflogEntry]:
        result = git_history.get_reflog(self.path, limit)
        if not result.success:
            return []
        return git_history.parse_reflog(result.stdout)

    def conflicted_files(self) -> list[str]:
        return git_diff.get_conflicted_files(self.path)

    # ── Index ──

    def stage(self, paths: list[str]) -> None:
        self._check("add", git_commit.stage_files(self.path, paths))

    def unstage(self, paths: list[str]) -> None:
        self._check("reset", git_commit.unstage_files(self.path, paths))

    def discard_file(self, path: str) -> None:
        self._check("checkout", git_commit.discard_file(self.path, path))

    def clean_file(self, path: str) -> None:
        self._check("clean", git_commit.clean_file(self.path, path))

    def resolve_conflict(self, path: str, strategy: str) -> None:
        self._check(f"checkout --{strategy}", git_commit.resolve_conflict(self.path, path, strategy))

    # ── Commits ──

    def commit(self, message: str) -> None:
        self._check("commit", git_commit.create_commit(self.path, message, self.identity))

    def reword_commit(self, message: str) -> None:
        self._check("commit --amend", git_commit.amend_message(self.path, message, self.identity))

    def squash_commits(self, count: int, message: str) -> None:
        self._check("squash", git_commit.squash(self.path, count, message, self.identity))

    def revert_head(self) -> None:
        self._check("revert", git_commit.revert_head(self.path, self.identity))

    def cherry_pick(self, sha: str) -> None:
        self._check_conflicts("cherry-pick", git_commit.cherry_pick(self.path, sha, self.identity))

    def reset(self, mode: str, target: str) -> None:
        self._check("reset", git_commit.reset(self.path, mode, target))

    # ── Branches ──

    def checkout(self, branch: str, create: bool = False) -> None:
        self._check("checkout", git_branch.checkout_branch(self.path, branch, create))

    def checkout_commit(self, sha: str) -> None:
        self._check("checkout", git_branch.checkout_commit(self.path, sha))

    def merge(self, branch: str) -> None:
        self._check_conflicts("merge", git_branch.merge(self.path, branch))

    def rebase(self, branch: str) -> None:
        # Failed rebases are aborted, so no conflicts remain to report
        self._check("rebase", git_branch.rebase(self.path, branch))

    def delete_branch(self, name: str) -> None:
        self._check("branch -D", git_branch.delete_branch(self.path, name))

    def delete_remote_branch(self, remote: str, branch: str, token: str | None = None) -> None:
        self._check("push --delete", git_branch.delete_remote_branch(self.path, remote, branch, token))

    # ── Stash ──

    def stash(self) -> bool:
        """Stash local changes. Returns False when there was nothing to stash."""
        result = git_stash.stash_push(self.path)
        self._check("stash", result)
        return git_stash.stash_created(result)

    def stash_pop(self) -> None:
        self._check_conflicts("stash pop", git_stash.stash_pop(self.path))

    # ── Remote ──

    def push(self, remote: str | None = None, branch: str | None = None,
             set_upstream: bool = False, force: bool = False,
             token: str | None = None) -> None:
        result = git_remote.push(
            self.path,
            remote=remote or self.remote,
            branch=branch,
            set_upstream=set_upstream,
            force=force,
            token=token,
        )
        self._check("push", result)

    def pull(self, token: str | None = None) -> None:
        result = git_remote.pull(self.path, token=token, identity=self.identity)
        if result.success:
            return
        if git_remote.reports_conflict(result):
            paths = [f.path for f in self.status() if f.status is FileState.CONFLICT]
            raise ConflictError("pull", paths, "Merge conflicts detected", result)
        raise BackendError.from_result("pull", result)

    def sync(self, token: str | None = None) -> SyncResult:
        """Pull then push in one call, never raising."""
        outcome = SyncResult()
        try:
            self.pull(token)
        except ConflictError as e:
            outcome.conflicts = e.paths
            return outcome
        except BackendError as e:
            outcome.error = e.message
            return outcome
        outcome.pulled = True
        try:
            self.push(token=token)
        except BackendError as e:
            outcome.error = e.message
            return outcome
        outcome.pushed = True
        outcome.success = True
        return outcome

    # ── Tags ──

    def create_tag(self, name: str, message: str | None = None, sha: str | None = None) -> None:
        self._check("tag", git_history.create_tag(self.path, name, message, sha))

    def delete_tag(self, name: str) -> None:
        self._check("tag -d", git_history.delete_tag(self.path, name))

    def push_tag(self, name: str, token: str | None = None) -> None:
        self._check("push tag", git_remote.push_tag(self.path, name, self.remote, token))

    def delete_remote_tag(self, name: str, token: str | None = None) -> None:
        self._check("push delete tag", git_remote.delete_remote_tag(self.path, name, self.remote, token))
