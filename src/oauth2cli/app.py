"""Typer application and CLI entry point for oauth2cli.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

Typical use::

    oauth2cli login client.json              # opens the browser
    oauth2cli --json login client.json --no-browser --timeout 300

See Also:
    :mod:`oauth2cli.flow`: The authorization code flow behind ``login``.
    :mod:`oauth2cli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from oauth2cli import __version__
from oauth2cli.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="oauth2cli",
    help="Obtain OAuth 2.0 tokens with the authorization code grant.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"oauth2cli {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~oauth2cli.output.OutputManager` from
    CLI flags and routes the package's log records to stderr.
    """
    from oauth2cli.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    _configure_logging(output.logging_handler(), verbose)


def _configure_logging(handler: logging.Handler, verbose: bool) -> None:
    """Attach *handler* to the ``oauth2cli`` logger, replacing earlier ones."""
    logger = logging.getLogger("oauth2cli")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command("login")
def login_command(
    config_file: Path = typer.Argument(
        help="Client configuration JSON (endpoints, client id and secret source)."
    ),
    port: int = typer.Option(
        0,
        "--port",
        "-P",
        min=0,
        max=65535,
        envvar="OAUTH2CLI_PORT",
        help="Local server port. 0 picks a free port.",
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL instead of opening a browser."
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        min=0,
        envvar="OAUTH2CLI_TIMEOUT",
        help="Seconds to wait for authorization.",
    ),
    scope: Optional[list[str]] = typer.Option(
        None, "--scope", "-s", help="Scope to request (repeatable). Overrides the file."
    ),
) -> None:
    """Run the authorization code flow and print the resulting token.

    Starts a local server, sends the browser to the provider, waits for
    the redirect, exchanges the code and writes the token record to stdout.

    Example::

        oauth2cli login client.json
        oauth2cli --json login client.json --port 8000 --scope openid
    """
    from oauth2cli.config import load_client_config
    from oauth2cli.exceptions import OAuth2CLIError, StateMismatchError
    from oauth2cli.flow import AuthCodeFlow
    from oauth2cli.output import debug, error, format_response, info, success, suggest

    def _announce(url: str) -> None:
        if no_browser:
            info(f"Open {url} in your browser to authorize.")
        else:
            info(f"Opening {url} for authorization...")

    try:
        config, auth_params = load_client_config(config_file, scopes=scope)
        debug(f"Authorization endpoint: {config.authorization_url}")
        debug(f"Token endpoint: {config.token_url}")

        flow = AuthCodeFlow(
            config=config,
            auth_code_options=auth_params,
            local_server_port=port,
            skip_open_browser=no_browser,
            show_local_server_url=_announce,
        )
        token = flow.get_token(timeout=timeout)
    except StateMismatchError as exc:
        error(str(exc))
        suggest("The redirect did not come from this login attempt. Run the command again.")
        raise typer.Exit(code=exc.exit_code) from None
    except OAuth2CLIError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success("Authorization complete.")
    format_response(token.model_dump(mode="json"))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from oauth2cli.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``oauth2cli`` console script.

    Unhandled :class:`~oauth2cli.exceptions.OAuth2CLIError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from oauth2cli.exceptions import OAuth2CLIError
        from oauth2cli.output import error

        if isinstance(exc, OAuth2CLIError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
