"""Shared test fixtures for oauth2cli.

Provides a client configuration, a fake token endpoint backed by
:class:`httpx.MockTransport`, and automatic reset of the global output
manager between tests.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import httpx
import pytest

from oauth2cli.models import OAuth2Config
from oauth2cli.output import reset_output


AUTHORIZATION_URL = "https://auth.example.com/authorize"
TOKEN_URL = "https://auth.example.com/token"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, which go stale once CliRunner restores the streams.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_package_logger() -> None:
    """Drop handlers the CLI attaches to the ``oauth2cli`` logger.

    Those handlers hold the streams CliRunner swapped in, which are closed
    once the invocation returns.
    """
    yield
    logger = logging.getLogger("oauth2cli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def oauth_config() -> OAuth2Config:
    """A client configuration with an empty redirect URL."""
    return OAuth2Config(
        client_id="my-client",
        client_secret="my-secret",
        authorization_url=AUTHORIZATION_URL,
        token_url=TOKEN_URL,
        scopes=["openid", "email"],
    )


# ---------------------------------------------------------------------------
# Fake token endpoint
# ---------------------------------------------------------------------------


class TokenEndpoint:
    """Records token requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: bytes = json.dumps(
            {"access_token": "T", "token_type": "Bearer", "expires_in": 3600}
        ).encode()
        self.handler: Callable[[httpx.Request], httpx.Response] | None = None

    def respond(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        if isinstance(body, bytes):
            self.body = body
        else:
            self.body = json.dumps(body).encode()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is not None:
            return self.handler(request)
        return httpx.Response(
            self.status_code,
            headers={"content-type": "application/json"},
            content=self.body,
        )

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()
