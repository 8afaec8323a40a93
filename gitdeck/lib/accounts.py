"""
Account configuration.

Loads accounts.yaml, which maps an identity name to the credential and
author details used for network operations:

    accounts:
      work:
        token_env: GITDECK_WORK_TOKEN   # token read from this variable
        name: Jane Doe
        email: jane@example.com
      personal:
        token: ghp_xxx                  # inline token, token_env wins if both set

The token itself is never logged. An identity with no resolvable token
is not an error: callers decide whether the operation can proceed
without one.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gitdeck.git.runner import Identity
from . import validate
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class Account:
    """One entry under `accounts:`."""
    identity: str
    token_env: str | None = None
    token: str | None = None
    name: str | None = None
    email: str | None = None

    def resolve_token(self) -> str | None:
        if self.token_env:
            value = os.environ.get(self.token_env)
            if value:
                return value
        return self.token or None

    @property
    def author(self) -> Identity | None:
        if self.name and self.email:
            return Identity(name=self.name, email=self.email)
        return None


@dataclass
class CredentialProvider:
    """Resolves tokens and author details by identity name."""
    accounts: dict[str, Account] = field(default_factory=dict)
    default_identity: str | None = None

    def _lookup(self, identity: str | None) -> Account | None:
        name = identity or self.default_identity
        if not name:
            return None
        account = self.accounts.get(name)
        if account is None:
            logger.debug(f"No account configured for identity '{name}'")
        return account

    def get_token(self, identity: str | None) -> str | None:
        account = self._lookup(identity)
        return account.resolve_token() if account else None

    def get_identity(self, identity: str | None) -> Account | None:
        return self._lookup(identity)


def load_accounts(path: Path, default_identity: str | None = None) -> CredentialProvider:
    """Load accounts.yaml and return a CredentialProvider.

    A missing file yields an empty provider.

    Raises:
        ConfigError: if the YAML is malformed or fails schema validation
    """
    if not path.exists():
        return CredentialProvider(default_identity=default_identity)

    try:
        data = yaml.safe_load(path.read_text()) or {}
        validate.validate(data, "accounts")
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e
    except validate.ValidationError as e:
        raise ConfigError(f"Invalid {path}: {e}") from e

    accounts = {
        name: Account(identity=name, **(entry or {}))
        for name, entry in (data.get("accounts") or {}).items()
    }
    return CredentialProvider(accounts=accounts, default_identity=default_identity)
