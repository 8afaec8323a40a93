"""Sync state machine using the transitions library.

One SyncFSM drives one pull-then-push:

    idle -> pulling -> conflicted | pull_failed | pushing
    pushing -> pushed | push_failed

Every path ends in exactly one of the four terminal states, none of which
has an outgoing transition, and no state is entered twice. Entering a
terminal state invokes the `on_terminal` callback (the orchestrator
refreshes the session there).

Usage:
    from gitdeck.workflow.fsm import SyncFSM

    fsm = SyncFSM(backend, token, on_terminal=lambda state: session.refresh(...))
    result = fsm.run()
"""

import logging
from typing import Callable

from transitions import Machine

from gitdeck.lib.errors import BackendError, ConflictError
from gitdeck.lib.types import SyncResult

logger = logging.getLogger(__name__)


STATES = [
    "idle",
    "pulling",
    "conflicted",
    "pull_failed",
    "pushing",
    "pushed",
    "push_failed",
]

TERMINAL_STATES = frozenset({"conflicted", "pull_failed", "pushed", "push_failed"})

TRANSITIONS = [
    {"trigger": "start", "source": "idle", "dest": "pulling"},

    # Pull outcomes
    {"trigger": "pull_conflicts", "source": "pulling", "dest": "conflicted"},
    {"trigger": "pull_error", "source": "pulling", "dest": "pull_failed"},
    {"trigger": "pull_ok", "source": "pulling", "dest": "pushing"},

    # Push outcomes
    {"trigger": "push_ok", "source": "pushing", "dest": "pushed"},
    {"trigger": "push_error", "source": "pushing", "dest": "push_failed"},
]


class SyncFSM:
    """State machine for one pull+push sync.

    The backend's pull raises ConflictError or BackendError, push raises
    BackendError; each maps onto a transition and a SyncResult shape.
    Conflicts and errors are mutually exclusive in the result.
    """

    def __init__(self, backend, token: str | None = None,
                 on_terminal: Callable[[str], None] | None = None):
        self.backend = backend
        self.token = token
        self.on_terminal = on_terminal
        self.result = SyncResult()

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def on_state_change(self, event) -> None:
        logger.debug(f"[sync] {event.transition.source} -> {event.transition.dest} ({event.event.name})")
        if self.state in TERMINAL_STATES and self.on_terminal:
            self.on_terminal(self.state)

    def run(self) -> SyncResult:
        """Pull, then push if the pull was clean. Never pushes over conflicts."""
        self.start()

        try:
            self.backend.pull(self.token)
        except ConflictError as e:
            self.result.conflicts = list(e.paths)
            self.pull_conflicts()
            return self.result
        except BackendError as e:
            self.result.error = e.message
            self.pull_error()
            return self.result

        self.result.pulled = True
        self.pull_ok()

        try:
            self.backend.push(token=self.token)
        except BackendError as e:
            self.result.error = e.message
            self.push_error()
            return self.result

        self.result.pushed = True
        self.result.success = True
        self.push_ok()
        return self.result

    def get_available_triggers(self) -> list[str]:
        """Triggers valid in the current state (empty once terminal)."""
        return self.machine.get_triggers(self.state)
