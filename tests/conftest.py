"""Shared fixtures: a recording in-memory backend and orchestrator wiring."""

from pathlib import Path

import pytest

from gitdeck.lib.types import FileState, FileStatus, SyncResult
from gitdeck.orchestrator import MutationOrchestrator
from gitdeck.session import SessionRegistry
from gitdeck.sinks import ScriptedDecisionSink


class FakeBackend:
    """VcsBackend that records every call.

    fail(name, *errors) queues exceptions raised by successive calls to
    `name` (None in the queue means "succeed this time"). on[name] runs
    a hook inside the call, before any queued failure.
    """

    def __init__(self, path: Path = Path("/repo")):
        self.path = path
        self.calls: list[tuple] = []
        self.failures: dict[str, list] = {}
        self.on: dict = {}
        self.files: list[FileStatus] = []
        self.branch: str | None = "main"
        self.branch_list = []
        self.commits = []
        self.tag_list = []
        self.conflicts: list[str] = []
        self.stash_creates = True

    def fail(self, name: str, *errors) -> None:
        self.failures.setdefault(name, []).extend(errors)

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def _call(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        hook = self.on.get(name)
        if hook:
            hook()
        queue = self.failures.get(name)
        if queue:
            error = queue.pop(0)
            if error is not None:
                raise error

    # reads
    def status(self):
        self._call("status")
        return list(self.files)

    def branches(self):
        self._call("branches")
        return list(self.branch_list)

    def log(self, limit=100):
        self._call("log", limit)
        return list(self.commits)

    def tags(self):
        self._call("tags")
        return list(self.tag_list)

    def diff(self, path=None):
        self._call("diff", path)
        return f"diff {path}" if path else "diff"

    def reflog(self, limit=100):
        self._call("reflog", limit)
        return []

    def current_branch(self):
        self._call("current_branch")
        return self.branch

    def conflicted_files(self):
        self._call("conflicted_files")
        return list(self.conflicts)

    # index
    def stage(self, paths):
        self._call("stage", list(paths))
        for p in paths:
            self.files = [f for f in self.files if f.path != p]
            self.files.append(FileStatus(path=p, status=FileState.MODIFIED, staged=True))

    def unstage(self, paths):
        self._call("unstage", list(paths))

    def discard_file(self, path):
        self._call("discard_file", path)

    def clean_file(self, path):
        self._call("clean_file", path)

    def resolve_conflict(self, path, strategy):
        self._call("resolve_conflict", path, strategy)

    # commits
    def commit(self, message):
        self._call("commit", message)
        self.files = [f for f in self.files if not f.staged]

    def reword_commit(self, message):
        self._call("reword_commit", message)

    def squash_commits(self, count, message):
        self._call("squash_commits", count, message)

    def revert_head(self):
        self._call("revert_head")

    def cherry_pick(self, sha):
        self._call("cherry_pick", sha)

    def reset(self, mode, target):
        self._call("reset", mode, target)

    # branches
    def checkout(self, branch, create=False):
        self._call("checkout", branch, create)

    def checkout_commit(self, sha):
        self._call("checkout_commit", sha)

    def merge(self, branch):
        self._call("merge", branch)

    def rebase(self, branch):
        self._call("rebase", branch)

    def delete_branch(self, name):
        self._call("delete_branch", name)

    def delete_remote_branch(self, remote, branch, token=None):
        self._call("delete_remote_branch", remote, branch, token=token)

    # stash
    def stash(self):
        self._call("stash")
        return self.stash_creates

    def stash_pop(self):
        self._call("stash_pop")

    # remote
    def push(self, remote=None, branch=None, set_upstream=False, force=False, token=None):
        self._call("push", remote=remote, branch=branch, set_upstream=set_upstream, force=force, token=token)

    def pull(self, token=None):
        self._call("pull", token=token)

    def sync(self, token=None):
        self._call("sync", token=token)
        return SyncResult(success=True, pulled=True, pushed=True)

    # tags
    def create_tag(self, name, message=None, sha=None):
        self._call("create_tag", name, message, sha)

    def delete_tag(self, name):
        self._call("delete_tag", name)

    def push_tag(self, name, token=None):
        self._call("push_tag", name, token=token)

    def delete_remote_tag(self, name, token=None):
        self._call("delete_remote_tag", name, token=token)


class RecordingNotifier:
    def __init__(self):
        self.notices: list[tuple[str, str]] = []

    def notify(self, level, message):
        self.notices.append((level, message))

    @property
    def levels(self):
        return [level for level, _ in self.notices]


class StaticCredentials:
    def __init__(self, token):
        self.token = token
        self.asked: list = []

    def get_token(self, identity):
        self.asked.append(identity)
        return self.token


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def registry(backend):
    registry = SessionRegistry(lambda handle: backend)
    registry.open(backend.path, identity="work")
    return registry


@pytest.fixture
def make_orchestrator(registry):
    """Build an orchestrator; token=None means no linked account."""
    def make(token="tok", answers=None):
        return MutationOrchestrator(
            registry,
            decisions=ScriptedDecisionSink(answers or {}),
            notifier=RecordingNotifier(),
            credentials=StaticCredentials(token),
        )
    return make


@pytest.fixture
def orch(make_orchestrator):
    return make_orchestrator()
