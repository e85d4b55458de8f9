"""Exception hierarchy for oauth2cli.

All exceptions inherit from :class:`OAuth2CLIError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oauth2cli.exit_codes`.
The top-level error handler in :func:`oauth2cli.app.main` catches
``OAuth2CLIError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    OAuth2CLIError (exit 1)
    +-- ConfigError          (exit 2)
    +-- ListenerBindError    (exit 3)
    +-- AuthorizationError   (exit 4)
    +-- StateMismatchError   (exit 4)
    +-- FlowCancelledError   (exit 130)
    +-- CallbackServerError  (exit 1)
    +-- RetrieveError        (exit 5)
    +-- TokenDecodeError     (exit 5)
    +-- TokenRequestError    (exit 6)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from oauth2cli.exit_codes import (
    EXIT_AUTHORIZATION_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LISTEN_FAILURE,
    EXIT_TOKEN_FAILURE,
)

if TYPE_CHECKING:
    import httpx


class OAuth2CLIError(Exception):
    """Base exception for all oauth2cli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oauth2cli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(OAuth2CLIError):
    """Raised for configuration problems (invalid JSON, missing fields, bad credential sources)."""

    exit_code = EXIT_INVALID_USAGE


class ListenerBindError(OAuth2CLIError):
    """Raised when the local callback listener cannot bind its port.

    The underlying :class:`OSError` is chained as ``__cause__`` and its text
    is included in the message.
    """

    exit_code = EXIT_LISTEN_FAILURE

    def __init__(self, port: int, reason: str):
        super().__init__(f"Could not listen to port {port}: {reason}")
        self.port = port


class AuthorizationError(OAuth2CLIError):
    """Raised when the provider redirects back with an ``error`` parameter.

    Attributes:
        error: The provider's error code (e.g. ``"access_denied"``).
        description: The optional ``error_description`` text.
    """

    exit_code = EXIT_AUTHORIZATION_FAILURE

    def __init__(self, error: str, description: str = ""):
        super().__init__(f"OAuth Error: {error} {description}".rstrip())
        self.error = error
        self.description = description


class StateMismatchError(OAuth2CLIError):
    """Raised when the callback's ``state`` differs from the one the flow sent.

    Treated as a forged or replayed redirect: the accompanying code is
    never exchanged.
    """

    exit_code = EXIT_AUTHORIZATION_FAILURE

    def __init__(self, expected: str, received: str):
        super().__init__(f"State does not match, wants {expected} but {received}")
        self.expected = expected
        self.received = received


class FlowCancelledError(OAuth2CLIError):
    """Raised when the caller cancels or times out before authorization completes.

    Attributes:
        cause: Short description of what ended the wait (``"cancelled"`` or
            ``"timed out after N seconds"``).
    """

    exit_code = EXIT_CANCELLED

    def __init__(self, cause: str):
        super().__init__(
            f"Cancelled while waiting for authorization response: {cause}"
        )
        self.cause = cause


class CallbackServerError(OAuth2CLIError):
    """Raised when the local HTTP responder stops with an unexpected error."""


class RetrieveError(OAuth2CLIError):
    """Raised when the token endpoint answers with a non-2xx status.

    The response and its body are preserved verbatim for diagnostics
    instead of being parsed.

    Attributes:
        response: The :class:`httpx.Response` returned by the token endpoint.
        body: The raw response body bytes (capped at 1 MiB).
    """

    exit_code = EXIT_TOKEN_FAILURE

    def __init__(self, response: httpx.Response, body: bytes):
        status = f"{response.status_code} {response.reason_phrase}".strip()
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"oauth2: cannot fetch token: {status}\nResponse: {text}")
        self.response = response
        self.body = body

    @property
    def status_code(self) -> int:
        return self.response.status_code


class TokenDecodeError(OAuth2CLIError):
    """Raised when the token endpoint returns a 2xx body that is not a valid token JSON."""

    exit_code = EXIT_TOKEN_FAILURE


class TokenRequestError(OAuth2CLIError):
    """Raised on network-level failures reaching the token endpoint (timeout, DNS, refused)."""

    exit_code = EXIT_CONNECTION_ERROR
