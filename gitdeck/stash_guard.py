"""
Stash-wrapped execution of working-tree operations.

Uncommitted changes are stashed before the body runs and popped after
it, whether the body succeeded or not. A pop that fails does not replace
the body's outcome; it is flagged on it as a retained stash.
"""

import logging
from typing import Callable

from gitdeck.lib.errors import (
    BackendError,
    ConflictError,
    DestructiveActionDeclined,
    GitdeckError,
    PreconditionError,
)
from gitdeck.lib.types import MutationOutcome

logger = logging.getLogger(__name__)


def outcome_from_error(error: GitdeckError) -> MutationOutcome:
    """Reduce a structured error to the outcome reported to the user."""
    if isinstance(error, ConflictError):
        return MutationOutcome.conflict(error.paths, error.message)
    if isinstance(error, BackendError):
        if error.rejected_non_fast_forward:
            return MutationOutcome.rejected(error.message)
        return MutationOutcome.backend_error(error.message)
    if isinstance(error, DestructiveActionDeclined):
        return MutationOutcome.declined(f"{error.kind} cancelled")
    if isinstance(error, PreconditionError):
        return MutationOutcome.precondition(str(error))
    return MutationOutcome.backend_error(str(error))


class StashGuard:
    """Run a body with local changes stashed away."""

    def __init__(self, backend):
        self.backend = backend

    def run_guarded(self, dirty: bool, body: Callable[[], MutationOutcome]) -> MutationOutcome:
        """
        Run `body`, stashing first when `dirty`.

        `dirty` must come from a fresh status query, not from a cached
        session. If the stash itself fails the body is not run. The pop
        only happens when the stash pushed an entry.
        """
        if not dirty:
            return self._run_body(body)

        try:
            stashed = self.backend.stash()
        except BackendError as e:
            logger.warning(f"Stash failed, operation not started: {e.message}")
            return MutationOutcome.backend_error(f"Could not stash local changes: {e.message}")
        if not stashed:
            # No entry of ours on the stack; popping would take the user's own
            logger.debug("Nothing was stashed, skipping pop")
            return self._run_body(body)

        outcome = MutationOutcome.backend_error("Operation did not complete")
        try:
            outcome = self._run_body(body)
        finally:
            outcome = self._pop(outcome)
        return outcome

    def _run_body(self, body: Callable[[], MutationOutcome]) -> MutationOutcome:
        try:
            return body()
        except GitdeckError as e:
            return outcome_from_error(e)

    def _pop(self, outcome: MutationOutcome) -> MutationOutcome:
        try:
            self.backend.stash_pop()
        except BackendError as e:
            logger.warning(f"Stash pop failed, changes remain in the stash: {e.message}")
            return outcome.with_stash_retained(e.message)
        return outcome
