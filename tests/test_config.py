"""Tests for oauth2cli.config -- client config files, credential sources, data dir."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from oauth2cli.config import get_data_dir, load_client_config, resolve_credential
from oauth2cli.exceptions import ConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def _client_file(tmp_path: Path, **overrides: Any) -> Path:
    data: dict[str, Any] = {
        "client_id": "my-client",
        "client_secret": "inline-secret",
        "authorization_url": "https://auth.example.com/authorize",
        "token_url": "https://auth.example.com/token",
        "scopes": ["openid"],
    }
    data.update(overrides)
    return _write_json(tmp_path / "client.json", data)


# ---------------------------------------------------------------------------
# load_client_config
# ---------------------------------------------------------------------------


class TestLoadClientConfig:
    def test_inline_credentials(self, tmp_path: Path) -> None:
        config, auth_params = load_client_config(_client_file(tmp_path))

        assert config.client_id == "my-client"
        assert config.client_secret == "inline-secret"
        assert config.authorization_url == "https://auth.example.com/authorize"
        assert config.token_url == "https://auth.example.com/token"
        assert config.redirect_url == ""
        assert config.scopes == ["openid"]
        assert auth_params == {}

    def test_secret_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_SECRET", "env-secret")
        path = _client_file(tmp_path, client_secret=None, client_secret_source="env:MY_SECRET")

        config, _ = load_client_config(path)
        assert config.client_secret == "env-secret"

    def test_client_id_from_file(self, tmp_path: Path) -> None:
        id_file = tmp_path / "client_id.txt"
        id_file.write_text("  file-client\n")
        path = _client_file(tmp_path, client_id=None, client_id_source=f"file:{id_file}")

        config, _ = load_client_config(path)
        assert config.client_id == "file-client"

    def test_public_client_without_secret(self, tmp_path: Path) -> None:
        path = _client_file(tmp_path, client_secret=None)
        config, _ = load_client_config(path)
        assert config.client_secret == ""

    def test_auth_params_and_redirect(self, tmp_path: Path) -> None:
        path = _client_file(
            tmp_path,
            redirect_url="http://localhost:8000",
            auth_params={"access_type": "offline"},
        )
        config, auth_params = load_client_config(path)

        assert config.redirect_url == "http://localhost:8000"
        assert auth_params == {"access_type": "offline"}

    def test_state_in_auth_params_rejected(self, tmp_path: Path) -> None:
        path = _client_file(tmp_path, auth_params={"state": "fixed"})
        with pytest.raises(ConfigError, match="state"):
            load_client_config(path)

    def test_scope_override(self, tmp_path: Path) -> None:
        config, _ = load_client_config(_client_file(tmp_path), scopes=["email", "profile"])
        assert config.scopes == ["email", "profile"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_client_config(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "client.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_client_config(path)

    def test_missing_client_id(self, tmp_path: Path) -> None:
        path = _client_file(tmp_path, client_id=None)
        with pytest.raises(ConfigError, match="client_id"):
            load_client_config(path)

    def test_missing_token_url(self, tmp_path: Path) -> None:
        data = json.loads(_client_file(tmp_path).read_text())
        del data["token_url"]
        path = _write_json(tmp_path / "client.json", data)
        with pytest.raises(ConfigError, match="token_url"):
            load_client_config(path)

    def test_unknown_field_rejected(self, tmp_path: Path) -> None:
        path = _client_file(tmp_path, tokenurl="typo")
        with pytest.raises(ConfigError):
            load_client_config(path)

    def test_unset_env_source(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_SECRET", raising=False)
        path = _client_file(tmp_path, client_secret=None, client_secret_source="env:MISSING_SECRET")
        with pytest.raises(ConfigError, match="MISSING_SECRET"):
            load_client_config(path)


# ---------------------------------------------------------------------------
# resolve_credential
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOKEN_VAR", "value")
        assert resolve_credential("env:TOKEN_VAR") == "value"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOKEN_VAR", raising=False)
        with pytest.raises(ConfigError, match="not set"):
            resolve_credential("env:TOKEN_VAR")

    def test_file(self, tmp_path: Path) -> None:
        secret = tmp_path / "secret"
        secret.write_text("s3cret\n")
        assert resolve_credential(f"file:{secret}") == "s3cret"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'missing'}")

    def test_prompt_requires_tty(self) -> None:
        with patch("oauth2cli.config.sys.stdin") as mock_stdin:
            mock_stdin.isatty.return_value = False
            with pytest.raises(ConfigError, match="not a TTY"):
                resolve_credential("prompt")

    def test_prompt_reads_secret(self) -> None:
        with patch("oauth2cli.config.sys.stdin") as mock_stdin, patch(
            "oauth2cli.config.getpass.getpass", return_value="typed"
        ):
            mock_stdin.isatty.return_value = True
            assert resolve_credential("prompt") == "typed"

    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("keyring:svc:acct")


# ---------------------------------------------------------------------------
# Data directory
# ---------------------------------------------------------------------------


class TestDataDir:
    def test_xdg_data_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("oauth2cli.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

        result = get_data_dir()
        assert result == tmp_path / "data" / "oauth2cli"
        assert result.is_dir()

    def test_non_xdg_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("oauth2cli.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".oauth2cli"
        assert result.is_dir()
