"""
Decision and notification sinks.

The orchestrator never prompts or prints by itself. It asks a
DecisionSink before destructive steps and reports every outcome to a
NotificationSink. Console implementations serve the CLI, notify-send
serves desktop sessions (mako, dunst, GNOME, KDE), and the scripted sink
drives tests and unattended runs.
"""

import logging
import shutil
import subprocess
import sys
from typing import Protocol, TextIO

logger = logging.getLogger(__name__)

# Decision kinds
FORCE_PUSH = "force_push"
UNDO_COMMIT = "undo_commit"
DELETE_COMMIT = "delete_commit"


class DecisionSink(Protocol):
    def propose_risky_action(self, kind: str, details: str) -> bool: ...


class NotificationSink(Protocol):
    def notify(self, level: str, message: str) -> None: ...


# ── Decision sinks ──

class ConsoleDecisionSink:
    """Ask on the terminal; anything but y/yes declines."""

    def __init__(self, stream: TextIO | None = None, prompt=None):
        self.stream = stream or sys.stderr
        self._prompt = prompt or input

    def propose_risky_action(self, kind: str, details: str) -> bool:
        print(details, file=self.stream)
        try:
            answer = self._prompt("Proceed? [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")


class AutoAcceptDecisionSink:
    """Accept every proposal (CLI --yes)."""

    def propose_risky_action(self, kind: str, details: str) -> bool:
        logger.info(f"Auto-accepting {kind}")
        return True


class ScriptedDecisionSink:
    """Answer proposals from a fixed table and record what was asked.

    Kinds missing from `answers` get `default`.
    """

    def __init__(self, answers: dict[str, bool] | None = None, default: bool = False):
        self.answers = dict(answers or {})
        self.default = default
        self.proposals: list[tuple[str, str]] = []

    def propose_risky_action(self, kind: str, details: str) -> bool:
        self.proposals.append((kind, details))
        return self.answers.get(kind, self.default)


# ── Notification sinks ──

class ConsoleNotifier:
    """Print notices; errors go to stderr."""

    PREFIXES = {"success": "✓", "error": "✗", "info": "·"}

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def notify(self, level: str, message: str) -> None:
        stream = self.err if level == "error" else self.out
        print(f"{self.PREFIXES.get(level, '·')} {message}", file=stream)


URGENCY_BY_LEVEL = {"success": "low", "info": "normal", "error": "critical"}
MAX_NOTIFICATION_LENGTH = 200


class DesktopNotifier:
    """Desktop notifications via notify-send. Silently inert when it is not installed."""

    def __init__(self, app_name: str = "gitdeck", title: str = "gitdeck"):
        self.app_name = app_name
        self.title = title

    def notify(self, level: str, message: str) -> None:
        urgency = URGENCY_BY_LEVEL.get(level)
        if urgency is None:
            logger.warning(f"Invalid notification level '{level}', using 'info'")
            urgency = "normal"

        if not shutil.which("notify-send"):
            logger.debug("notify-send not found, skipping notification")
            return

        if len(message) > MAX_NOTIFICATION_LENGTH:
            message = message[:MAX_NOTIFICATION_LENGTH] + "..."

        try:
            result = subprocess.run([
                "notify-send",
                "--urgency", urgency,
                "--app-name", self.app_name,
                self.title,
                message,
            ], capture_output=True, text=True, timeout=5)

            if result.returncode != 0:
                logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr}")
        except subprocess.TimeoutExpired:
            logger.warning("notify-send timed out")
        except OSError as e:
            logger.warning(f"Failed to run notify-send: {e}")


class MultiNotifier:
    """Fan a notice out to several sinks."""

    def __init__(self, *sinks: NotificationSink):
        self.sinks = list(sinks)

    def notify(self, level: str, message: str) -> None:
        for sink in self.sinks:
            sink.notify(level, message)
