"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oauth2cli.exceptions.OAuth2CLIError` subclass.
Shell wrappers can inspect the exit code to tell a refused authorization
from an unreachable token endpoint without parsing stderr.

Example::

    $ oauth2cli login client.json
    $ echo $?
    4   # EXIT_AUTHORIZATION_FAILURE -- the provider denied the request
"""

EXIT_SUCCESS = 0
"""The flow completed and a token was printed."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or an unusable client configuration."""

EXIT_LISTEN_FAILURE = 3
"""The local callback listener could not bind its port."""

EXIT_AUTHORIZATION_FAILURE = 4
"""The provider returned an error, or the callback failed state validation."""

EXIT_TOKEN_FAILURE = 5
"""The token endpoint rejected the exchange or returned an unreadable body."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred while contacting the token endpoint."""

EXIT_CANCELLED = 130
"""The flow was cancelled (Ctrl-C or timeout) before authorization completed."""
