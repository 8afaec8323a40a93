"""
Configuration loaders for gitdeck.

Settings live in $GITDECK_HOME/gitdeck.env (default ~/.gitdeck). Every
key is optional; a missing file yields the defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from . import envparse
from . import validate
from .errors import ConfigError

HOME_ENV_VAR = "GITDECK_HOME"
SETTINGS_FILE = "gitdeck.env"
ACCOUNTS_FILE = "accounts.yaml"


@dataclass
class Settings:
    """User settings from gitdeck.env"""
    home: Path
    default_remote: str = "origin"
    default_identity: str | None = None
    log_limit: int = 100
    lock_timeout: int = 30  # Seconds to wait for the per-repo CLI lock
    desktop_notifications: bool = False

    @property
    def accounts_path(self) -> Path:
        return self.home / ACCOUNTS_FILE

    @property
    def locks_dir(self) -> Path:
        return self.home / "locks"


def gitdeck_home() -> Path:
    """Resolve the configuration directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".gitdeck"


def load_settings(home: Path | None = None) -> Settings:
    """Load gitdeck.env and return Settings.

    Raises:
        ConfigError: if the file is unparseable or fails schema validation
    """
    home = home or gitdeck_home()
    settings_path = home / SETTINGS_FILE
    if not settings_path.exists():
        return Settings(home=home)

    try:
        env = envparse.load_env(settings_path)
        validate.validate(env, "settings")
    except (ValueError, validate.ValidationError) as e:
        raise ConfigError(f"Invalid {settings_path}: {e}") from e

    return Settings(
        home=home,
        default_remote=env.get("DEFAULT_REMOTE", "origin"),
        default_identity=env.get("DEFAULT_IDENTITY") or None,
        log_limit=int(env.get("LOG_LIMIT", "100")),
        lock_timeout=int(env.get("LOCK_TIMEOUT", "30")),
        desktop_notifications=env.get("DESKTOP_NOTIFICATIONS", "false").lower() in ("true", "1"),
    )
