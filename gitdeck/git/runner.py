"""Git command runner with timeout handling and credential injection."""

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
NETWORK_TIMEOUT = 120

MASK = "***"


@dataclass
class GitResult:
    """Result of a git command."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def error_text(self) -> str:
        """Best message for a failed command (stderr, falling back to stdout)."""
        return (self.stderr or self.stdout).strip()


@dataclass
class Identity:
    """Author/committer identity injected into every command."""
    name: str | None = None
    email: str | None = None


def mask_args(args: list[str], token: str | None) -> list[str]:
    """Replace any argument containing the token with a mask."""
    if not token:
        return list(args)
    return [MASK if token in a else a for a in args]


def _write_askpass(token: str) -> Path:
    """Write a throwaway GIT_ASKPASS script that echoes the token."""
    fd, name = tempfile.mkstemp(prefix="gitdeck-askpass-", suffix=".sh")
    with os.fdopen(fd, "w") as f:
        f.write(f'#!/bin/sh\necho "{token}"\n')
    os.chmod(name, 0o700)
    return Path(name)


def build_env(token: str | None = None, identity: Identity | None = None) -> tuple[dict, Path | None]:
    """
    Build the environment for a git subprocess.

    Returns:
        (env, askpass_path) - askpass_path must be removed by the caller
    """
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"

    if identity:
        if identity.name:
            env["GIT_AUTHOR_NAME"] = identity.name
            env["GIT_COMMITTER_NAME"] = identity.name
        if identity.email:
            env["GIT_AUTHOR_EMAIL"] = identity.email
            env["GIT_COMMITTER_EMAIL"] = identity.email

    askpass = None
    if token:
        askpass = _write_askpass(token)
        env["GIT_ASKPASS"] = str(askpass)
        env["GIT_CONFIG_NOSYSTEM"] = "1"
        # Stored credential helpers are consulted before GIT_ASKPASS
        env["GIT_CONFIG_COUNT"] = "1"
        env["GIT_CONFIG_KEY_0"] = "credential.helper"
        env["GIT_CONFIG_VALUE_0"] = ""

    return env, askpass


def run_git(
    args: list[str],
    cwd: Path,
    timeout: int = DEFAULT_TIMEOUT,
    token: str | None = None,
    identity: Identity | None = None,
) -> GitResult:
    """
    Run a git command with timeout handling.

    Args:
        args: Git command arguments (e.g., ["status", "--porcelain=v2"])
        cwd: Working directory for the command
        timeout: Timeout in seconds
        token: Optional remote token, passed through GIT_ASKPASS
        identity: Optional author/committer identity

    Returns:
        GitResult with returncode, stdout, stderr, and timed_out flag
    """
    cmd = ["git", "-C", str(cwd)] + args
    logger.debug(f"$ {' '.join(mask_args(cmd, token))}")

    env, askpass = build_env(token, identity)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
        if result.returncode != 0:
            logger.debug(f"git {args[0] if args else ''} exited {result.returncode}: {result.stderr.strip()}")
        return GitResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"git {' '.join(mask_args(args[:2], token))} timed out after {timeout}s")
        return GitResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )
    except OSError as e:
        return GitResult(returncode=-1, stdout="", stderr=f"Failed to run git: {e}")
    finally:
        if askpass is not None:
            askpass.unlink(missing_ok=True)
