"""Credential validation and the local key-value file that remembers it."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from foliosync.exceptions import ValidationError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_KEY = "github_token"
TOKEN_PREFIXES = ("ghp_", "gho_", "github_pat_")


def validate_token_format(token: str) -> str:
    """Return the stripped token, or raise ValidationError for an unrecognized format."""
    candidate = token.strip()
    if not candidate:
        msg = "Please enter a GitHub token"
        raise ValidationError(msg)
    if not candidate.startswith(TOKEN_PREFIXES):
        msg = "Invalid token format. Please check your GitHub token."
        raise ValidationError(msg)
    return candidate


def load_store(path: Path) -> dict[str, str]:
    """Load the key-value file, treating a missing or corrupt file as empty."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable credential file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): str(v) for k, v in data.items()}


def save_store(path: Path, data: dict[str, str]) -> None:
    """Write the key-value file, readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    path.chmod(0o600)


def _checked(token: str | None, source: str) -> str | None:
    if not token:
        return None
    try:
        return validate_token_format(token)
    except ValidationError as exc:
        logger.warning("Ignoring %s GitHub token: %s", source, exc)
        return None


class CredentialStore:
    """Holds the operator's GitHub token and persists it under a fixed key.

    A ``seed`` token (e.g. from the environment) is used when nothing has been
    saved; it is never written to disk. Saved and seeded values that fail the
    format check are dropped, so the next attempt asks for a credential.
    """

    def __init__(self, path: Path, seed: str | None = None) -> None:
        self.path = path
        self._seed = _checked(seed, "configured")
        self._token: str | None = None
        self._loaded = False

    def get(self) -> str | None:
        """Return the current token, loading the saved one on first use."""
        if not self._loaded:
            self._token = _checked(load_store(self.path).get(TOKEN_KEY), "saved")
            self._loaded = True
        return self._token or self._seed

    def set(self, token: str) -> str:
        """Validate and persist a token. Returns the normalized value."""
        normalized = validate_token_format(token)
        data = load_store(self.path)
        data[TOKEN_KEY] = normalized
        save_store(self.path, data)
        self._token = normalized
        self._loaded = True
        logger.info("GitHub token saved to %s", self.path)
        return normalized

    def clear(self) -> None:
        """Forget the token so the next attempt asks for a new one."""
        data = load_store(self.path)
        if data.pop(TOKEN_KEY, None) is not None:
            save_store(self.path, data)
        self._token = None
        self._seed = None
        self._loaded = True
        logger.info("GitHub token cleared")
