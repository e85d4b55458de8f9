"""Authorization code exchange against the provider's token endpoint.

:func:`exchange_with_basic_auth` performs the single code-for-token POST of
the authorization code grant (:rfc:`6749` section 4.1.3). The client
authenticates with HTTP Basic credentials rather than form fields, the
response body is read up to :data:`MAX_TOKEN_RESPONSE_BYTES`, and a 2xx
body is decoded into a :class:`~oauth2cli.models.TokenRecord`.

There is no retry at this layer. A failed exchange is reported to the
caller, who may rerun the whole flow since authorization codes are single
use anyway.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from oauth2cli.exceptions import RetrieveError, TokenDecodeError, TokenRequestError
from oauth2cli.models import OAuth2Config, TokenRecord, TokenResponse

logger = logging.getLogger(__name__)

MAX_TOKEN_RESPONSE_BYTES = 1 << 20
"""Upper bound on how much of the token endpoint's body is read (1 MiB)."""


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Return the ``Authorization`` header value for client credentials."""
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def exchange_with_basic_auth(
    config: OAuth2Config,
    code: str,
    redirect_url: str,
    *,
    client: Optional[httpx.Client] = None,
    timeout: float = 30.0,
) -> TokenRecord:
    """Exchange an authorization code for a token.

    Args:
        config: Client configuration providing ``token_url``,
            ``client_id`` and ``client_secret``.
        code: The authorization code received on the callback.
        redirect_url: The ``redirect_uri`` sent in the authorization
            request. Providers require it to match exactly.
        client: Optional :class:`httpx.Client` to send the request with.
            A short-lived client is created and closed when omitted.
        timeout: Request timeout in seconds.

    Returns:
        The decoded :class:`~oauth2cli.models.TokenRecord`.

    Raises:
        TokenRequestError: If the endpoint cannot be reached or the body
            cannot be read.
        RetrieveError: If the endpoint answers outside 200-299.
        TokenDecodeError: If a 2xx body is not a JSON token object.
    """
    form = urlencode(
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_url,
        }
    )
    headers = {
        "Authorization": basic_auth_header(config.client_id, config.client_secret),
        "Content-Type": "application/x-www-form-urlencoded",
    }

    logger.debug("Token URL is %s", config.token_url)

    owns_client = client is None
    http = client if client is not None else httpx.Client(timeout=timeout)
    try:
        with http.stream(
            "POST", config.token_url, content=form, headers=headers, timeout=timeout
        ) as response:
            body = _read_capped(response, MAX_TOKEN_RESPONSE_BYTES)
    except httpx.HTTPError as exc:
        raise TokenRequestError(f"oauth2: cannot fetch token: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    logger.debug("Token endpoint responded %s", response.status_code)

    if not 200 <= response.status_code <= 299:
        raise RetrieveError(response, body)

    try:
        token = TokenResponse.model_validate_json(body)
    except ValidationError as exc:
        raise TokenDecodeError(f"oauth2: cannot parse token response: {exc}") from exc

    return TokenRecord.from_response(token, datetime.now(timezone.utc))


def _read_capped(response: httpx.Response, limit: int) -> bytes:
    """Read at most *limit* bytes of a streamed response body."""
    chunks: list[bytes] = []
    remaining = limit
    for chunk in response.iter_bytes():
        if len(chunk) >= remaining:
            chunks.append(chunk[:remaining])
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
