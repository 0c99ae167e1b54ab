"""Tests for token validation and the credential file."""

from __future__ import annotations

import json
import stat
from typing import TYPE_CHECKING

import pytest

from foliosync.exceptions import ValidationError
from foliosync.store.credentials import TOKEN_KEY, CredentialStore, validate_token_format

if TYPE_CHECKING:
    from pathlib import Path


class TestValidateTokenFormat:
    @pytest.mark.parametrize("token", ["ghp_abc123", "gho_abc123", "github_pat_11AB_cd"])
    def test_accepts_known_prefixes(self, token: str) -> None:
        assert validate_token_format(f"  {token}\n") == token

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValidationError, match="Please enter a GitHub token"):
            validate_token_format("   ")

    @pytest.mark.parametrize("token", ["abc", "ghs_abc", "Bearer ghp_abc"])
    def test_rejects_unknown_format(self, token: str) -> None:
        with pytest.raises(ValidationError, match="Invalid token format"):
            validate_token_format(token)


class TestCredentialStore:
    def test_missing_file_means_no_token(self, tmp_path: Path) -> None:
        assert CredentialStore(tmp_path / "creds.json").get() is None

    def test_set_persists_under_fixed_key(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "creds.json"
        CredentialStore(path).set("ghp_saved")

        assert json.loads(path.read_text())[TOKEN_KEY] == "ghp_saved"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert CredentialStore(path).get() == "ghp_saved"

    def test_invalid_token_is_not_saved(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        store = CredentialStore(path)
        with pytest.raises(ValidationError):
            store.set("nope")
        assert not path.exists()
        assert store.get() is None

    def test_seed_is_used_but_not_written(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        store = CredentialStore(path, seed="ghp_from_env")
        assert store.get() == "ghp_from_env"
        assert not path.exists()

    def test_saved_token_wins_over_seed(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        path.write_text(json.dumps({TOKEN_KEY: "ghp_saved"}))
        assert CredentialStore(path, seed="ghp_from_env").get() == "ghp_saved"

    def test_clear_forgets_saved_and_seed(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        store = CredentialStore(path, seed="ghp_from_env")
        store.set("ghp_saved")

        store.clear()

        assert store.get() is None
        assert TOKEN_KEY not in json.loads(path.read_text())

    def test_corrupt_file_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        path.write_text("{not json")
        assert CredentialStore(path).get() is None

    def test_malformed_seed_is_dropped(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "creds.json", seed="not-a-github-token")
        assert store.get() is None

    def test_malformed_saved_token_falls_back_to_seed(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        path.write_text(json.dumps({TOKEN_KEY: "hand-edited"}))
        assert CredentialStore(path).get() is None
        assert CredentialStore(path, seed="ghp_from_env").get() == "ghp_from_env"

    def test_seed_is_normalized(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "creds.json", seed="  ghp_from_env\n")
        assert store.get() == "ghp_from_env"
