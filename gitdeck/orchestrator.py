"""
Mutation orchestrator.

One public method per user action. Each runs against the active
repository under a single in-flight slot, sequences its backend calls,
reduces any structured failure to a MutationOutcome, refreshes the
session in a finally block and reports the outcome to the notifier.

Working-tree operations (checkout, merge, rebase) run under StashGuard.
History operations (cherry-pick, squash, reword, tags, reset) do not;
git rejects them itself on a dirty tree.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Iterable, Protocol

from gitdeck.git.commit import RESOLVE_STRATEGIES
from gitdeck.lib.errors import (
    BackendError,
    ConflictError,
    DestructiveActionDeclined,
    GitdeckError,
    OperationInProgress,
    PreconditionError,
    is_non_fast_forward,
)
from gitdeck.lib.types import MutationOutcome, OutcomeKind
from gitdeck.session import (
    ALL_SCOPES,
    BRANCHES,
    DIFF,
    LOG,
    STATUS,
    TAGS,
    RepositorySession,
    SessionRegistry,
)
from gitdeck.sinks import (
    DELETE_COMMIT,
    FORCE_PUSH,
    UNDO_COMMIT,
    DecisionSink,
    NotificationSink,
)
from gitdeck.stash_guard import StashGuard, outcome_from_error
from gitdeck.workflow.fsm import SyncFSM

logger = logging.getLogger(__name__)

# Refresh scopes per operation family
INDEX_SCOPES = (STATUS,)
COMMIT_SCOPES = (STATUS, LOG)
BRANCH_SCOPES = (STATUS, BRANCHES, LOG)
TAG_SCOPES = (TAGS,)

FORCE_PUSH_DETAILS = (
    "The remote rejected the push because it has commits you don't have.\n"
    "Force push and overwrite the remote branch?"
)
UNDO_DETAILS = "Undo the last commit? Its changes will stay staged."
DELETE_DETAILS = (
    "Permanently delete the last commit AND its changes?\n"
    "This hard-resets the working tree and force-pushes, rewriting remote history. "
    "It cannot be undone."
)


class CredentialProvider(Protocol):
    def get_token(self, identity: str | None) -> str | None: ...


class MutationOrchestrator:
    """Sequences multi-step git operations against the active repository."""

    def __init__(
        self,
        registry: SessionRegistry,
        decisions: DecisionSink,
        notifier: NotificationSink,
        credentials: CredentialProvider | None = None,
        remote: str = "origin",
    ):
        self.registry = registry
        self.decisions = decisions
        self.notifier = notifier
        self.credentials = credentials
        self.remote = remote
        self._in_flight = threading.Lock()
        self._running: str | None = None

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    # ── Core sequencing ──

    def _run(
        self,
        name: str,
        body: Callable[[RepositorySession], MutationOutcome],
        scopes: Iterable[str] = (),
        diff_path: str | None = None,
        quiet: bool = False,
    ) -> MutationOutcome:
        session = self.registry.active
        if session is None:
            logger.debug(f"{name}: no active repository")
            return MutationOutcome.noop()

        if not self._in_flight.acquire(blocking=False):
            outcome = MutationOutcome.precondition(str(OperationInProgress(self._running or "unknown")))
            self._report(name, outcome)
            return outcome

        self._running = name
        logger.info(f"{name}: started on {session.handle.path}")
        try:
            try:
                outcome = body(session)
            except GitdeckError as e:
                outcome = outcome_from_error(e)
        finally:
            try:
                if scopes:
                    session.refresh(scopes, diff_path)
            finally:
                self._running = None
                self._in_flight.release()

        logger.info(f"{name}: {outcome.kind.value}")
        if not quiet:
            self._report(name, outcome)
        return outcome

    def _report(self, name: str, outcome: MutationOutcome) -> None:
        kind = outcome.kind
        if kind is OutcomeKind.NOOP:
            return
        if kind is OutcomeKind.COMPLETED:
            level = "info" if outcome.local_only else "success"
            self.notifier.notify(level, outcome.message or f"{name} completed")
        elif kind is OutcomeKind.DECLINED:
            logger.info(f"{name}: declined by user")
            self.notifier.notify("info", outcome.message or "Cancelled")
        else:
            logger.warning(f"{name} failed: {outcome.message}")
            self.notifier.notify("error", outcome.message)

        if outcome.stash_not_restored:
            self.notifier.notify(
                "info",
                f"Your local changes are still in the stash ({outcome.stash_message})",
            )

    def _token(self, session: RepositorySession) -> str | None:
        if self.credentials is None:
            return None
        return self.credentials.get_token(session.handle.identity)

    def _confirm(self, kind: str, details: str) -> None:
        if not self.decisions.propose_risky_action(kind, details):
            raise DestructiveActionDeclined(kind)

    def _guarded(self, session: RepositorySession, step: Callable[[], None], message: str) -> MutationOutcome:
        # Fresh status: the cached snapshot may predate external edits
        dirty = bool(session.backend.status())

        def body() -> MutationOutcome:
            step()
            return MutationOutcome.completed(message)

        return StashGuard(session.backend).run_guarded(dirty, body)

    @staticmethod
    def _require_text(value: str | None, what: str) -> str:
        if value is None or not value.strip():
            raise PreconditionError(f"{what} is empty")
        return value

    # ── Index ──

    def stage_files(self, paths: list[str]) -> MutationOutcome:
        def body(session):
            if not paths:
                raise PreconditionError("No files selected")
            session.backend.stage(paths)
            return MutationOutcome.completed(f"Staged {len(paths)} file(s)")
        return self._run("stage", body, INDEX_SCOPES)

    def unstage_files(self, paths: list[str]) -> MutationOutcome:
        def body(session):
            if not paths:
                raise PreconditionError("No files selected")
            session.backend.unstage(paths)
            return MutationOutcome.completed(f"Unstaged {len(paths)} file(s)")
        return self._run("unstage", body, INDEX_SCOPES)

    def discard_changes(self, path: str) -> MutationOutcome:
        def body(session):
            session.backend.discard_file(path)
            return MutationOutcome.completed(f"Discarded changes to {path}")
        return self._run("discard", body, INDEX_SCOPES)

    def clean_file(self, path: str) -> MutationOutcome:
        def body(session):
            session.backend.clean_file(path)
            return MutationOutcome.completed(f"Removed untracked file {path}")
        return self._run("clean", body, INDEX_SCOPES)

    def stash_changes(self) -> MutationOutcome:
        def body(session):
            if not session.backend.stash():
                return MutationOutcome.completed("No local changes to stash")
            return MutationOutcome.completed("Changes stashed")
        return self._run("stash", body, INDEX_SCOPES)

    def pop_stash(self) -> MutationOutcome:
        def body(session):
            session.backend.stash_pop()
            return MutationOutcome.completed("Stash applied")
        return self._run("stash pop", body, INDEX_SCOPES)

    def resolve_conflict(self, path: str, strategy: str) -> MutationOutcome:
        """Take one side for `path`. Whether conflicts remain is left to the next status refresh."""
        def body(session):
            if strategy not in RESOLVE_STRATEGIES:
                raise PreconditionError(f"Unknown strategy '{strategy}' (expected ours or theirs)")
            session.backend.resolve_conflict(path, strategy)
            return MutationOutcome.completed(f"Resolved {path} using {strategy}")
        return self._run("resolve", body, (STATUS, DIFF), diff_path=path)

    # ── Commit and push ──

    def _commit_staged(self, session: RepositorySession, message: str) -> int:
        self._require_text(message, "Commit message")
        staged = [f for f in session.backend.status() if f.staged]
        if not staged:
            raise PreconditionError("No staged files to commit")
        session.backend.commit(message)
        return len(staged)

    def commit(self, message: str) -> MutationOutcome:
        def body(session):
            count = self._commit_staged(session, message)
            return MutationOutcome.completed(f"Committed {count} file(s)")
        return self._run("commit", body, COMMIT_SCOPES)

    def commit_and_push(self, message: str) -> MutationOutcome:
        """
        Commit, then push with the repository's credential.

        No credential is a local-only success. A non-fast-forward
        rejection is offered as a force push exactly once; declining it
        reports the original rejection.
        """
        def body(session):
            self._commit_staged(session, message)

            token = self._token(session)
            if not token:
                return MutationOutcome.completed("Committed locally (no account linked)", local_only=True)

            try:
                session.backend.push(token=token)
            except ConflictError:
                raise
            except BackendError as e:
                if not e.rejected_non_fast_forward:
                    raise
                if not self.decisions.propose_risky_action(FORCE_PUSH, FORCE_PUSH_DETAILS):
                    logger.info("Force push declined")
                    return MutationOutcome.rejected(e.message)
                session.backend.push(token=token, force=True)
                return MutationOutcome.completed("Committed and force-pushed", forced=True)

            return MutationOutcome.completed("Committed and pushed")
        return self._run("commit and push", body, COMMIT_SCOPES)

    def sync(self, token: str | None = None) -> MutationOutcome:
        """Pull then push. The SyncResult is attached to the outcome."""
        def body(session):
            fsm = SyncFSM(
                session.backend,
                token or self._token(session),
                on_terminal=lambda state: session.refresh(COMMIT_SCOPES),
            )
            try:
                result = fsm.run()
            finally:
                if not fsm.is_terminal:
                    session.refresh(COMMIT_SCOPES)

            if result.success:
                outcome = MutationOutcome.completed("Synced with remote")
            elif result.conflicts:
                outcome = MutationOutcome.conflict(result.conflicts, "Merge conflicts detected during pull")
            elif result.pulled and is_non_fast_forward(result.error or ""):
                outcome = MutationOutcome.rejected(result.error)
            else:
                outcome = MutationOutcome.backend_error(result.error or "Sync failed")
            return replace(outcome, sync=result)
        return self._run("sync", body)

    def publish_branch(self, token: str | None = None) -> MutationOutcome:
        def body(session):
            branch = session.backend.current_branch()
            if not branch:
                raise PreconditionError("Not on a branch (detached HEAD)")
            session.backend.push(
                remote=self.remote,
                branch=branch,
                set_upstream=True,
                token=token or self._token(session),
            )
            return MutationOutcome.completed(f"Published {branch} to {self.remote}")
        return self._run("publish", body, (STATUS, BRANCHES))

    # ── Branches ──

    def checkout_branch(self, name: str, create: bool = False) -> MutationOutcome:
        def body(session):
            self._require_text(name, "Branch name")
            verb = "Created and switched to" if create else "Switched to"
            return self._guarded(session, lambda: session.backend.checkout(name, create), f"{verb} {name}")
        return self._run("checkout", body, BRANCH_SCOPES)

    def merge_branch(self, name: str) -> MutationOutcome:
        def body(session):
            self._require_text(name, "Branch name")
            return self._guarded(session, lambda: session.backend.merge(name), f"Merged {name}")
        return self._run("merge", body, BRANCH_SCOPES)

    def rebase_branch(self, name: str) -> MutationOutcome:
        def body(session):
            self._require_text(name, "Branch name")
            return self._guarded(session, lambda: session.backend.rebase(name), f"Rebased onto {name}")
        return self._run("rebase", body, BRANCH_SCOPES)

    def delete_branch(self, name: str) -> MutationOutcome:
        def body(session):
            if name == session.backend.current_branch():
                raise PreconditionError(f"Cannot delete the checked-out branch {name}")
            session.backend.delete_branch(name)
            return MutationOutcome.completed(f"Deleted branch {name}")
        return self._run("delete branch", body, (BRANCHES,))

    def delete_remote_branch(self, name: str, remote: str | None = None) -> MutationOutcome:
        def body(session):
            target = remote or self.remote
            session.backend.delete_remote_branch(target, name, self._token(session))
            return MutationOutcome.completed(f"Deleted {target}/{name}")
        return self._run("delete remote branch", body, (BRANCHES,))

    def checkout_commit(self, sha: str) -> MutationOutcome:
        def body(session):
            session.backend.checkout_commit(sha)
            return MutationOutcome.completed(f"Checked out {sha[:7]} (detached HEAD)")
        return self._run("checkout commit", body, BRANCH_SCOPES)

    # ── Destructive reset ──

    def undo_last_commit(self) -> MutationOutcome:
        def body(session):
            self._confirm(UNDO_COMMIT, UNDO_DETAILS)
            session.backend.reset("soft", "HEAD~1")
            return MutationOutcome.completed("Last commit undone, changes kept staged")
        return self._run("undo commit", body, COMMIT_SCOPES)

    def delete_last_commit(self) -> MutationOutcome:
        """
        Hard-reset away the last commit and force-push the result.

        Without a credential the force push is refused and the outcome is
        reported as local-only, so the user knows the remote still has
        the commit.
        """
        def body(session):
            self._confirm(DELETE_COMMIT, DELETE_DETAILS)
            session.backend.reset("hard", "HEAD~1")

            token = self._token(session)
            if not token:
                return MutationOutcome.completed(
                    "Last commit deleted locally; remote not rewritten (no account linked)",
                    local_only=True,
                )
            session.backend.push(token=token, force=True)
            return MutationOutcome.completed("Last commit deleted and force-pushed", forced=True)
        return self._run("delete commit", body, COMMIT_SCOPES)

    def revert_last_commit(self) -> MutationOutcome:
        def body(session):
            session.backend.revert_head()
            return MutationOutcome.completed("Reverted last commit")
        return self._run("revert", body, COMMIT_SCOPES)

    # ── History ──

    def cherry_pick(self, sha: str) -> MutationOutcome:
        def body(session):
            session.backend.cherry_pick(sha)
            return MutationOutcome.completed(f"Cherry-picked {sha[:7]}")
        return self._run("cherry-pick", body, COMMIT_SCOPES)

    def squash_commits(self, count: int, message: str) -> MutationOutcome:
        def body(session):
            if count < 2:
                raise PreconditionError("Select at least two commits to squash")
            self._require_text(message, "Commit message")
            session.backend.squash_commits(count, message)
            return MutationOutcome.completed(f"Squashed {count} commits")
        return self._run("squash", body, COMMIT_SCOPES)

    def reword_commit(self, message: str) -> MutationOutcome:
        def body(session):
            self._require_text(message, "Commit message")
            session.backend.reword_commit(message)
            return MutationOutcome.completed("Commit message updated")
        return self._run("reword", body, (LOG,))

    # ── Tags ──

    def create_tag(self, name: str, message: str | None = None, sha: str | None = None) -> MutationOutcome:
        def body(session):
            self._require_text(name, "Tag name")
            session.backend.create_tag(name, message, sha)
            return MutationOutcome.completed(f"Created tag {name}")
        return self._run("create tag", body, TAG_SCOPES)

    def push_tag(self, name: str) -> MutationOutcome:
        def body(session):
            token = self._token(session)
            if not token:
                raise PreconditionError("No account linked; cannot push tags")
            session.backend.push_tag(name, token)
            return MutationOutcome.completed(f"Pushed tag {name}")
        return self._run("push tag", body, TAG_SCOPES)

    def delete_tag(self, name: str) -> MutationOutcome:
        def body(session):
            session.backend.delete_tag(name)
            return MutationOutcome.completed(f"Deleted tag {name}")
        return self._run("delete tag", body, TAG_SCOPES)

    def delete_remote_tag(self, name: str) -> MutationOutcome:
        def body(session):
            token = self._token(session)
            if not token:
                raise PreconditionError("No account linked; cannot delete remote tags")
            session.backend.delete_remote_tag(name, token)
            return MutationOutcome.completed(f"Deleted tag {name} from {self.remote}")
        return self._run("delete remote tag", body, TAG_SCOPES)

    # ── Read ──

    def refresh(self) -> MutationOutcome:
        """Reload every cached view of the active repository."""
        def body(session):
            session.refresh_reflog()
            return MutationOutcome.completed()
        return self._run("refresh", body, ALL_SCOPES, quiet=True)
