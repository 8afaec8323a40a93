"""
Error taxonomy for gitdeck.

Precondition failures are raised before any backend call. Backend and
conflict errors wrap a failed git primitive. A declined decision is a
normal termination, not a failure.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitdeck.git.runner import GitResult

NON_FAST_FORWARD_MARKERS = ("non-fast-forward", "[rejected]", "fetch first")


def is_non_fast_forward(message: str) -> bool:
    """Check whether a push error reads as a non-fast-forward rejection."""
    text = message.lower()
    return any(marker in text for marker in NON_FAST_FORWARD_MARKERS)


class GitdeckError(Exception):
    """Base for every error the orchestrator reduces to an outcome."""


class PreconditionError(GitdeckError):
    """Operation refused before touching the repository."""


class OperationInProgress(PreconditionError):
    """Another mutation already holds the repository."""

    def __init__(self, running: str):
        self.running = running
        super().__init__(f"Another operation is in progress: {running}")


class BackendError(GitdeckError):
    """A git primitive failed."""

    def __init__(self, operation: str, message: str, result: "GitResult | None" = None):
        self.operation = operation
        self.message = message
        self.result = result
        super().__init__(message)

    @classmethod
    def from_result(cls, operation: str, result: "GitResult") -> "BackendError":
        return cls(operation, f"git {operation} failed: {result.error_text}", result)

    @property
    def rejected_non_fast_forward(self) -> bool:
        """True for a push the remote refused because it is behind."""
        return self.operation.startswith("push") and is_non_fast_forward(self.message)


class ConflictError(BackendError):
    """A merge, pull, rebase or stash pop left conflicted files behind."""

    def __init__(self, operation: str, paths: list[str], message: str = "", result: "GitResult | None" = None):
        self.paths = list(paths)
        super().__init__(
            operation,
            message or f"{operation} produced conflicts in {len(self.paths)} file(s)",
            result,
        )


class DestructiveActionDeclined(GitdeckError):
    """The user rejected a risky-action proposal."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind} declined")


class ConfigError(GitdeckError):
    """Configuration file missing required values or malformed."""
