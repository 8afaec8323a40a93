"""
Cached repository state.

A RepositorySession is the snapshot shown to the user: file statuses,
branches, commits, tags and the diff of the selected file. It is a cache
of the last successful refresh and nothing more; the orchestrator always
re-queries the backend before making a decision.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from gitdeck.lib.errors import GitdeckError
from gitdeck.lib.types import (
    BranchInfo,
    CommitInfo,
    FileState,
    FileStatus,
    ReflogEntry,
    RepositoryHandle,
    TagInfo,
)

logger = logging.getLogger(__name__)

STATUS = "status"
BRANCHES = "branches"
LOG = "log"
TAGS = "tags"
DIFF = "diff"

# Refresh order is fixed regardless of how scopes are requested
SCOPE_ORDER = (STATUS, BRANCHES, LOG, TAGS, DIFF)
ALL_SCOPES = frozenset(SCOPE_ORDER)


class RepositorySession:
    """Snapshot of one repository, replaced wholesale on each refresh."""

    def __init__(self, handle: RepositoryHandle, backend, log_limit: int = 100):
        self.handle = handle
        self.backend = backend
        self.log_limit = log_limit

        self.file_statuses: list[FileStatus] = []
        self.branches: list[BranchInfo] = []
        self.commits: list[CommitInfo] = []
        self.tags: list[TagInfo] = []
        self.reflog: list[ReflogEntry] = []
        self.diff_path: str | None = None
        self.current_diff: str = ""
        self.last_refreshed: datetime | None = None

    def _load(self, what: str, loader: Callable):
        """Run a backend read; on failure log and return None so the cache is kept."""
        try:
            value = loader()
        except (GitdeckError, OSError) as e:
            logger.warning(f"Failed to refresh {what} for {self.handle.path}: {e}")
            return None
        self.last_refreshed = datetime.now()
        return value

    def refresh_status(self) -> None:
        value = self._load(STATUS, self.backend.status)
        if value is not None:
            self.file_statuses = list(value)

    def refresh_branches(self) -> None:
        value = self._load(BRANCHES, self.backend.branches)
        if value is not None:
            self.branches = list(value)

    def refresh_log(self) -> None:
        value = self._load(LOG, lambda: self.backend.log(self.log_limit))
        if value is not None:
            self.commits = list(value)

    def refresh_tags(self) -> None:
        value = self._load(TAGS, self.backend.tags)
        if value is not None:
            self.tags = list(value)

    def refresh_reflog(self) -> None:
        value = self._load("reflog", lambda: self.backend.reflog(self.log_limit))
        if value is not None:
            self.reflog = list(value)

    def load_diff(self, path: str | None = None) -> None:
        """Load the diff for `path` (or the last selected path)."""
        if path is not None:
            self.diff_path = path
        value = self._load(DIFF, lambda: self.backend.diff(self.diff_path))
        if value is not None:
            self.current_diff = value

    def refresh(self, scopes: Iterable[str] = ALL_SCOPES, diff_path: str | None = None) -> None:
        """Refresh the requested scopes in SCOPE_ORDER. Never raises for backend failures."""
        requested = set(scopes)
        unknown = requested - ALL_SCOPES
        if unknown:
            raise ValueError(f"Unknown refresh scopes: {sorted(unknown)}")

        loaders = {
            STATUS: self.refresh_status,
            BRANCHES: self.refresh_branches,
            LOG: self.refresh_log,
            TAGS: self.refresh_tags,
            DIFF: lambda: self.load_diff(diff_path),
        }
        for scope in SCOPE_ORDER:
            if scope in requested:
                loaders[scope]()

    # ── Display read-outs (cache only) ──

    @property
    def current_branch(self) -> str | None:
        for b in self.branches:
            if b.current and not b.remote:
                return b.name
        return None

    @property
    def staged_files(self) -> list[FileStatus]:
        return [f for f in self.file_statuses if f.staged]

    @property
    def conflicted_files(self) -> list[str]:
        return [f.path for f in self.file_statuses if f.status is FileState.CONFLICT]

    @property
    def is_dirty(self) -> bool:
        return bool(self.file_statuses)


class SessionRegistry:
    """Known repositories and the single active one."""

    def __init__(self, backend_factory: Callable[[RepositoryHandle], object], log_limit: int = 100):
        self.backend_factory = backend_factory
        self.log_limit = log_limit
        self._sessions: dict[Path, RepositorySession] = {}
        self._active: Path | None = None

    @staticmethod
    def _key(path) -> Path:
        return Path(path).expanduser().resolve()

    def open(self, path, identity: str | None = None) -> RepositorySession:
        """Create or reuse the session for `path` and make it active."""
        key = self._key(path)
        session = self._sessions.get(key)
        if session is None:
            handle = RepositoryHandle(path=key, identity=identity)
            session = RepositorySession(handle, self.backend_factory(handle), self.log_limit)
            self._sessions[key] = session
            logger.debug(f"Opened session for {key}")
        self._active = key
        return session

    def activate(self, path) -> RepositorySession:
        key = self._key(path)
        if key not in self._sessions:
            raise KeyError(f"Repository not open: {key}")
        self._active = key
        return self._sessions[key]

    def close(self, path) -> None:
        key = self._key(path)
        self._sessions.pop(key, None)
        if self._active == key:
            self._active = None

    def get(self, path) -> RepositorySession | None:
        return self._sessions.get(self._key(path))

    def paths(self) -> list[Path]:
        return list(self._sessions)

    @property
    def active(self) -> RepositorySession | None:
        if self._active is None:
            return None
        return self._sessions.get(self._active)
