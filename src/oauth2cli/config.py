"""Client configuration loading, credential resolution and data paths.

This module handles everything the CLI reads from outside the process:

* **Client configuration files** -- a JSON document describing one OAuth
  client, loaded into an :class:`~oauth2cli.models.OAuth2Config` by
  :func:`load_client_config`.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts so that client secrets do
  not need to live in the configuration file.
* **Data directory** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.oauth2cli/`` on macOS and Windows. Crash logs are written here.

Example configuration file::

    {
      "client_id": "my-client",
      "client_secret_source": "env:MY_CLIENT_SECRET",
      "authorization_url": "https://auth.example.com/authorize",
      "token_url": "https://auth.example.com/token",
      "scopes": ["openid", "email"],
      "auth_params": {"access_type": "offline"}
    }
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from oauth2cli.exceptions import ConfigError
from oauth2cli.models import OAuth2Config

_APP_NAME = "oauth2cli"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/oauth2cli/`` (default ``~/.local/share/oauth2cli/``).
    On macOS/Windows: ``~/.oauth2cli/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Client configuration file ---


class ClientConfigFile(BaseModel):
    """On-disk shape of a client configuration file.

    Secrets may be given inline (``client_secret``) or through a credential
    source (``client_secret_source``); the same goes for ``client_id``.
    """

    model_config = ConfigDict(extra="forbid")

    client_id: Optional[str] = None
    client_id_source: Optional[str] = None
    client_secret: Optional[str] = None
    client_secret_source: Optional[str] = None
    authorization_url: str
    token_url: str
    redirect_url: str = ""
    scopes: list[str] = Field(default_factory=list)
    auth_params: dict[str, str] = Field(default_factory=dict)

    @field_validator("auth_params")
    @classmethod
    def _reject_state_param(cls, value: dict[str, str]) -> dict[str, str]:
        if "state" in value:
            raise ValueError("'state' is generated per login and cannot be set in auth_params")
        return value

    @model_validator(mode="after")
    def _require_client_id(self) -> ClientConfigFile:
        if not self.client_id and not self.client_id_source:
            raise ValueError("either 'client_id' or 'client_id_source' is required")
        return self


def load_client_config(
    path: Path, scopes: Optional[list[str]] = None
) -> tuple[OAuth2Config, dict[str, str]]:
    """Load a client configuration file.

    Args:
        path: Path to the JSON configuration file.
        scopes: Scopes that replace the file's ``scopes`` when non-empty.

    Returns:
        A tuple of the resolved :class:`~oauth2cli.models.OAuth2Config`
        and the extra authorization URL parameters (``auth_params``).

    Raises:
        ConfigError: If the file is missing, is not valid JSON, fails
            validation, or names a credential source that cannot be resolved.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigError(f"Client configuration not found: {path}")
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc

    try:
        data = ClientConfigFile.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client configuration {path}: {exc}") from exc

    client_id = data.client_id or resolve_credential(data.client_id_source or "")
    if data.client_secret is not None:
        client_secret = data.client_secret
    elif data.client_secret_source:
        client_secret = resolve_credential(data.client_secret_source)
    else:
        client_secret = ""

    config = OAuth2Config(
        client_id=client_id,
        client_secret=client_secret,
        authorization_url=data.authorization_url,
        token_url=data.token_url,
        redirect_url=data.redirect_url,
        scopes=scopes or data.scopes,
    )
    return config, dict(data.auth_params)


# --- Credential resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        file_path = source[5:]
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
