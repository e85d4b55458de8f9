"""Canonical Pydantic models shared across all oauth2cli modules.

The models fall into two groups:

**Configuration** -- :class:`OAuth2Config`, the provider endpoints and
client credentials a flow runs against. It is supplied by the caller (or
loaded from a JSON file by :func:`~oauth2cli.config.load_client_config`)
and treated as opaque by the flow apart from URL construction.

**Token models** -- :class:`TokenResponse` mirrors the JSON body returned
by the token endpoint, and :class:`TokenRecord` is the normalized,
immutable result handed back to the caller with an absolute expiry.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Client config ---


class OAuth2Config(BaseModel):
    """OAuth 2.0 client configuration for the authorization code grant.

    Example::

        OAuth2Config(
            client_id="my-client",
            client_secret="s3cret",
            authorization_url="https://auth.example.com/authorize",
            token_url="https://auth.example.com/token",
            scopes=["openid", "email"],
        )

    ``redirect_url`` may be left empty, in which case
    :class:`~oauth2cli.flow.AuthCodeFlow` fills it in with the local
    listener URL.
    """

    client_id: str
    client_secret: str = ""
    authorization_url: str
    token_url: str
    redirect_url: str = ""
    scopes: list[str] = Field(default_factory=list)

    def auth_code_url(self, state: str, extra: Optional[Mapping[str, str]] = None) -> str:
        """Build the provider authorization URL for *state*.

        Args:
            state: The correlation state to round-trip through the provider.
            extra: Additional query parameters (e.g. ``access_type``,
                ``prompt``) appended after the standard ones. A ``state``
                key here never replaces *state*.

        Returns:
            The authorization endpoint URL with ``response_type=code``,
            ``client_id``, ``redirect_uri`` (when set), ``scope`` (when
            any), ``state`` and the extra parameters.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
        }
        if self.redirect_url:
            params["redirect_uri"] = self.redirect_url
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        params["state"] = state
        for key, value in (extra or {}).items():
            if key != "state":
                params[key] = value

        sep = "&" if "?" in self.authorization_url else "?"
        return f"{self.authorization_url}{sep}{urlencode(params)}"


# --- Token models ---

_MAX_LIFETIME = 2**31 - 1
"""Largest lifetime in seconds accepted from a token endpoint (signed 32-bit)."""


class TokenResponse(BaseModel):
    """Wire shape of a token endpoint JSON response.

    ``expires_in`` is the standard lifetime field. Some providers send it as
    a string, and at least one spells it ``expires``; both are accepted and
    an absent, ``null`` or empty value counts as zero. Lifetimes outside
    the signed 32-bit range fail validation.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    token_type: str = ""
    id_token: str = ""
    refresh_token: str = ""
    expires_in: int = Field(default=0, ge=-_MAX_LIFETIME - 1, le=_MAX_LIFETIME)
    expires: int = Field(default=0, ge=-_MAX_LIFETIME - 1, le=_MAX_LIFETIME)

    @field_validator("access_token", "token_type", "id_token", "refresh_token", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("expires_in", "expires", mode="before")
    @classmethod
    def _coerce_lifetime(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0
        return value

    def expiry(self, now: datetime) -> Optional[datetime]:
        """Return the absolute expiry relative to *now*, or ``None`` if unknown."""
        if self.expires_in:
            return now + timedelta(seconds=self.expires_in)
        if self.expires:
            return now + timedelta(seconds=self.expires)
        return None


class TokenRecord(BaseModel):
    """Normalized token returned by a completed flow.

    Immutable once built. ``expiry`` is a timezone-aware UTC timestamp, or
    ``None`` when the provider did not report a lifetime.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = ""
    token_type: str = ""
    id_token: str = ""
    refresh_token: str = ""
    expiry: Optional[datetime] = None

    @classmethod
    def from_response(
        cls, response: TokenResponse, now: Optional[datetime] = None
    ) -> TokenRecord:
        """Build a record from a decoded token response.

        Args:
            response: The decoded token endpoint body.
            now: The moment of exchange. Defaults to the current UTC time.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        return cls(
            access_token=response.access_token,
            token_type=response.token_type,
            id_token=response.id_token,
            refresh_token=response.refresh_token,
            expiry=response.expiry(now),
        )
