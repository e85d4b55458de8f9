"""oauth2cli -- OAuth 2.0 Authorization Code Grant for command-line programs.

A CLI has no web endpoint to receive the provider's redirect, so this
package starts a temporary server on the loopback interface, sends the
user's browser through the provider's consent page, catches the redirect,
checks the ``state`` parameter and exchanges the code for a token.

Library use::

    from oauth2cli import AuthCodeFlow, OAuth2Config

    flow = AuthCodeFlow(config=OAuth2Config(
        client_id="my-client",
        client_secret="s3cret",
        authorization_url="https://auth.example.com/authorize",
        token_url="https://auth.example.com/token",
    ))
    token = flow.get_token(timeout=300)

Modules:
    flow: The authorization code flow coordinator.
    listener: Loopback listener used as the redirect target.
    exchange: Code-for-token request with HTTP Basic client auth.
    models: Pydantic models for client config and tokens.
    config: Client configuration files and credential sources.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from oauth2cli.flow import AuthCodeFlow, FlowState  # noqa: E402
from oauth2cli.models import OAuth2Config, TokenRecord  # noqa: E402

__all__ = ["AuthCodeFlow", "FlowState", "OAuth2Config", "TokenRecord", "__version__"]
