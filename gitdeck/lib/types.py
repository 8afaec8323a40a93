"""
Shared data types for gitdeck.

This module contains dataclasses used across the git layer, the session
and the orchestrator to avoid circular imports.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path


class FileState(Enum):
    """Working tree state of a single path."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class RepositoryHandle:
    """One working copy, identified by its path."""
    path: Path
    identity: str | None = None  # Account used for network operations


@dataclass
class FileStatus:
    """Status of one path as reported by the last status refresh."""
    path: str
    status: FileState
    staged: bool
    old_path: str | None = None  # Source path for renames


@dataclass
class BranchInfo:
    name: str
    current: bool
    remote: bool
    last_commit: str | None = None


@dataclass(frozen=True)
class CommitInfo:
    hash: str
    short_hash: str
    message: str
    author: str
    email: str
    date: str
    refs: str


@dataclass(frozen=True)
class TagInfo:
    name: str
    date: str
    message: str
    hash: str


@dataclass(frozen=True)
class ReflogEntry:
    hash: str
    short_hash: str
    action: str  # "commit", "checkout", "reset", ...
    description: str
    date: str
    index: int


@dataclass
class SyncResult:
    """Terminal outcome of a pull-then-push sync.

    conflicts and error are mutually exclusive shapes: a conflicted sync
    carries paths, a failed one carries a message.
    """
    success: bool = False
    pulled: bool = False
    pushed: bool = False
    conflicts: list[str] = field(default_factory=list)
    error: str | None = None


class OutcomeKind(Enum):
    """What a single orchestrator step reduced to."""
    COMPLETED = "completed"
    REJECTED_NON_FAST_FORWARD = "rejected_non_fast_forward"
    CONFLICT_DETECTED = "conflict_detected"
    BACKEND_ERROR = "backend_error"
    PRECONDITION_FAILED = "precondition_failed"
    DECLINED = "declined"
    NOOP = "noop"


@dataclass(frozen=True)
class MutationOutcome:
    """Result of one orchestrator operation."""
    kind: OutcomeKind
    message: str = ""
    conflicts: tuple[str, ...] = ()
    stash_not_restored: bool = False
    stash_message: str = ""
    local_only: bool = False  # Committed/reset locally, remote untouched
    forced: bool = False  # A force push was issued
    sync: SyncResult | None = field(default=None, compare=False)  # Set by sync only

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.COMPLETED

    @classmethod
    def completed(cls, message: str = "", **kwargs) -> "MutationOutcome":
        return cls(OutcomeKind.COMPLETED, message, **kwargs)

    @classmethod
    def backend_error(cls, message: str) -> "MutationOutcome":
        return cls(OutcomeKind.BACKEND_ERROR, message)

    @classmethod
    def rejected(cls, message: str) -> "MutationOutcome":
        return cls(OutcomeKind.REJECTED_NON_FAST_FORWARD, message)

    @classmethod
    def conflict(cls, paths, message: str = "") -> "MutationOutcome":
        paths = tuple(paths)
        return cls(
            OutcomeKind.CONFLICT_DETECTED,
            message or f"Conflicts detected in {len(paths)} file(s)",
            conflicts=paths,
        )

    @classmethod
    def precondition(cls, message: str) -> "MutationOutcome":
        return cls(OutcomeKind.PRECONDITION_FAILED, message)

    @classmethod
    def declined(cls, message: str = "") -> "MutationOutcome":
        return cls(OutcomeKind.DECLINED, message)

    @classmethod
    def noop(cls) -> "MutationOutcome":
        return cls(OutcomeKind.NOOP)

    def with_stash_retained(self, message: str) -> "MutationOutcome":
        """Attach the 'stash not restored' flag without touching the primary result."""
        return replace(self, stash_not_restored=True, stash_message=message)
