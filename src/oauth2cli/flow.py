"""OAuth 2.0 Authorization Code Grant for command-line programs.

This module provides :class:`AuthCodeFlow`, which obtains a token from a
provider without a pre-registered web redirect endpoint (:rfc:`6749`
section 4.1, :rfc:`8252` loopback redirect):

1. Start a local server on ``http://localhost:<port>``.
2. Open the browser on the local server, which redirects to the provider.
3. Wait for the user to authorize.
4. Receive the code on the local server via the provider's redirect.
5. Exchange the code for a token.

Three things run concurrently while waiting: the HTTP responder thread
serving the listener, a daemon thread that opens the browser after a short
delay, and the calling thread blocked on the outcome. The outcome is a
single-resolution :class:`_FlowResult`; whichever of the error path, the
code path or the caller's cancellation resolves it first wins and later
attempts are ignored.

See Also:
    :mod:`oauth2cli.listener` for the loopback socket.
    :mod:`oauth2cli.exchange` for the token request.
"""

from __future__ import annotations

import logging
import random
import threading
import time
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from oauth2cli.exceptions import (
    AuthorizationError,
    CallbackServerError,
    FlowCancelledError,
    ListenerBindError,
    OAuth2CLIError,
    StateMismatchError,
)
from oauth2cli.exchange import exchange_with_basic_auth
from oauth2cli.listener import LocalhostListener, open_listener
from oauth2cli.models import OAuth2Config, TokenRecord
from oauth2cli.state import new_oauth2_state

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1
_CLOSE_WINDOW_PAGE = b"<html><body>OK<script>window.close()</script></body></html>"


class FlowState(str, Enum):
    """Lifecycle of one :meth:`AuthCodeFlow.get_token` invocation."""

    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_CALLBACK = "awaiting_callback"
    RESOLVED = "resolved"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class _FlowResult:
    """Outcome of the wait phase, resolved at most once.

    Producers call :meth:`set_code` or :meth:`set_error`; only the first
    call takes effect and the method returns ``False`` for every later one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._code: Optional[str] = None
        self._error: Optional[OAuth2CLIError] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def set_code(self, code: str) -> bool:
        return self._resolve(code, None)

    def set_error(self, error: OAuth2CLIError) -> bool:
        return self._resolve(None, error)

    def _resolve(self, code: Optional[str], error: Optional[OAuth2CLIError]) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self._code = code
            self._error = error
            self._done.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def get(self) -> str:
        """Return the code or raise the error. Only valid once :attr:`done`."""
        if self._error is not None:
            raise self._error
        assert self._code is not None
        return self._code


class _CallbackServer(ThreadingHTTPServer):
    """HTTP server that serves an already-bound :class:`LocalhostListener`.

    Each connection gets its own daemon thread, so an idle connection (a
    browser preconnect, say) cannot hold up the redirect or the callback.
    """

    daemon_threads = True

    def __init__(
        self,
        listener: LocalhostListener,
        auth_code_url: str,
        state: str,
        result: _FlowResult,
    ) -> None:
        super().__init__(listener.address, _CallbackHandler, bind_and_activate=False)
        # Replace the unbound socket created by TCPServer with the listener's.
        self.socket.close()
        self.socket = listener.socket
        self.server_name = "localhost"
        self.server_port = listener.port
        self.listener = listener
        self.auth_code_url = auth_code_url
        self.state = state
        self.result = result

    def got_code(self, code: str, state: str) -> None:
        if state == self.state:
            resolved = self.result.set_code(code)
        else:
            resolved = self.result.set_error(StateMismatchError(self.state, state))
        if not resolved:
            logger.debug("Ignoring callback received after the flow was resolved")

    def got_error(self, error: OAuth2CLIError) -> None:
        if not self.result.set_error(error):
            logger.debug("Ignoring callback received after the flow was resolved")

    def server_close(self) -> None:
        self.listener.close()

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.debug("Error handling request from %s", client_address, exc_info=True)


class _CallbackHandler(BaseHTTPRequestHandler):
    """Answers the browser on the loopback listener.

    Requests are matched in this order, so an ``error`` wins over a
    ``code`` when a provider sends both:

    1. anything but ``GET /`` -- 404
    2. ``error`` present -- report :class:`AuthorizationError`, 500
    3. ``code`` present -- check ``state``, report code or mismatch, 200
    4. otherwise -- 302 to the provider authorization URL
    """

    server: _CallbackServer
    timeout = 10

    def do_GET(self) -> None:
        self._dispatch()

    def __getattr__(self, name: str) -> Any:
        # BaseHTTPRequestHandler looks up do_<METHOD>; every method is dispatched.
        if name.startswith("do_"):
            return self._dispatch
        raise AttributeError(name)

    def _dispatch(self) -> None:
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        error = _first(query, "error")
        code = _first(query, "code")

        if self.command != "GET" or parsed.path != "/":
            self._send_text(404, "Not Found")
        elif error:
            self.server.got_error(
                AuthorizationError(error, _first(query, "error_description"))
            )
            self._send_text(500, "OAuth Error")
        elif code:
            self.server.got_code(code, _first(query, "state"))
            self._send_body(200, "text/html", _CLOSE_WINDOW_PAGE)
        else:
            self.send_response(302)
            self.send_header("Location", self.server.auth_code_url)
            self.send_header("Content-Length", "0")
            self.end_headers()

    def _send_text(self, status: int, text: str) -> None:
        self._send_body(status, "text/plain; charset=utf-8", f"{text}\n".encode("utf-8"))

    def _send_body(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("X-Content-Type-Options", "nosniff")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


def _first(query: dict[str, list[str]], name: str) -> str:
    values = query.get(name)
    return values[0] if values else ""


def _show_local_server_url(url: str) -> None:
    logger.info("Open %s for authorization", url)


@dataclass
class AuthCodeFlow:
    """Authorization Code Grant flow driven from the terminal.

    Attributes:
        config: Provider endpoints and client credentials. If
            ``config.redirect_url`` is empty each :meth:`get_token` call
            uses its own local server URL instead.
        auth_code_options: Extra query parameters for the authorization
            URL (e.g. ``{"access_type": "offline"}``).
        local_server_port: Port for the local server. ``0`` picks a free one.
        skip_open_browser: Only announce the URL instead of opening a browser.
        show_local_server_url: Called with the local server URL once it is
            ready. Defaults to logging it at INFO.
        open_browser: Opens a URL in the user's browser.
        browser_delay: Seconds to wait before opening the browser.
        shutdown_timeout: Upper bound in seconds on the graceful stop of
            the local server.
        http_client: Optional client used for the token exchange.
        token_timeout: Timeout in seconds for the token request.
        state: Lifecycle state of the most recent invocation.
        redirect_url: Redirect URL used by the most recent
            :meth:`get_token` call.
    """

    config: OAuth2Config
    auth_code_options: dict[str, str] = field(default_factory=dict)
    local_server_port: int = 0
    skip_open_browser: bool = False
    show_local_server_url: Optional[Callable[[str], None]] = None
    open_browser: Callable[[str], Any] = webbrowser.open
    browser_delay: float = 0.5
    shutdown_timeout: float = 5.0
    http_client: Optional[httpx.Client] = None
    token_timeout: float = 30.0
    state: FlowState = field(default=FlowState.IDLE, init=False)
    redirect_url: str = field(default="", init=False)

    def get_token(
        self,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> TokenRecord:
        """Run the whole flow and return the token from the provider.

        Each call opens a fresh local server. When ``config.redirect_url``
        is empty the redirect URL of this call is the local server URL,
        recorded in :attr:`redirect_url`; ``config`` itself is not changed,
        so the flow can be run again.

        Args:
            cancel: Event that aborts the wait for authorization when set.
            timeout: Seconds to wait for authorization before giving up.

        Returns:
            The :class:`~oauth2cli.models.TokenRecord` from the token endpoint.

        Raises:
            ListenerBindError: If the local server cannot listen.
            AuthorizationError: If the provider redirected with an error.
            StateMismatchError: If the callback carried a foreign state.
            FlowCancelledError: If *cancel* fired or *timeout* elapsed first.
            RetrieveError: If the token endpoint rejected the exchange.
            TokenRequestError: If the token endpoint was unreachable.
            TokenDecodeError: If the token response was malformed.
        """
        self._transition(FlowState.IDLE)
        try:
            listener = open_listener(self.local_server_port)
        except ListenerBindError:
            self._transition(FlowState.FAILED)
            self._transition(FlowState.CLOSED)
            raise
        try:
            self._transition(FlowState.LISTENING)
            config = self.config
            if not config.redirect_url:
                config = config.model_copy(update={"redirect_url": listener.url})
            self.redirect_url = config.redirect_url
            code = self._get_code(config, listener, cancel, timeout)
            try:
                return exchange_with_basic_auth(
                    config,
                    code,
                    config.redirect_url,
                    client=self.http_client,
                    timeout=self.token_timeout,
                )
            except OAuth2CLIError:
                self._transition(FlowState.FAILED)
                raise
        finally:
            listener.close()
            self._transition(FlowState.CLOSED)

    def get_code(
        self,
        listener: LocalhostListener,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Serve *listener* until an authorization code, an error or cancellation arrives.

        The authorization URL is built from :attr:`config` as given. The
        local server is stopped and *listener* closed before this returns,
        whatever the outcome.

        Returns:
            The authorization code.
        """
        return self._get_code(self.config, listener, cancel, timeout)

    def _get_code(
        self,
        config: OAuth2Config,
        listener: LocalhostListener,
        cancel: Optional[threading.Event],
        timeout: Optional[float],
    ) -> str:
        deadline = None if timeout is None else time.monotonic() + timeout
        rng = random.SystemRandom()
        state = new_oauth2_state(rng)
        auth_code_url = config.auth_code_url(state, self.auth_code_options)

        result = _FlowResult()
        stop = threading.Event()
        server = _CallbackServer(listener, auth_code_url, state, result)
        serve_thread = threading.Thread(
            target=self._serve, args=(server, result), name="oauth2cli-server", daemon=True
        )
        browser_thread = threading.Thread(
            target=self._launch_browser,
            args=(listener.url, stop),
            name="oauth2cli-browser",
            daemon=True,
        )

        serve_thread.start()
        browser_thread.start()
        self._transition(FlowState.AWAITING_CALLBACK)
        try:
            self._wait(result, cancel, deadline, timeout)
        finally:
            stop.set()
            self._stop_server(server, cancel, deadline)

        try:
            code = result.get()
        except FlowCancelledError:
            self._transition(FlowState.CANCELLED)
            raise
        except OAuth2CLIError:
            self._transition(FlowState.FAILED)
            raise
        self._transition(FlowState.RESOLVED)
        return code

    def _wait(
        self,
        result: _FlowResult,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
        timeout: Optional[float],
    ) -> None:
        while True:
            if cancel is not None and cancel.is_set():
                result.set_error(FlowCancelledError("cancelled"))
            elif deadline is not None and time.monotonic() >= deadline:
                result.set_error(FlowCancelledError(f"timed out after {timeout:g} seconds"))
            if result.wait(_POLL_INTERVAL):
                return

    @staticmethod
    def _serve(server: _CallbackServer, result: _FlowResult) -> None:
        try:
            server.serve_forever(poll_interval=_POLL_INTERVAL)
        except Exception as exc:
            error = CallbackServerError(f"Local server stopped unexpectedly: {exc}")
            error.__cause__ = exc
            result.set_error(error)

    def _launch_browser(self, url: str, stop: threading.Event) -> None:
        # The flow may finish (or be cancelled) before the delay is up.
        if stop.wait(self.browser_delay):
            return
        show = self.show_local_server_url or _show_local_server_url
        show(url)
        if self.skip_open_browser:
            return
        try:
            opened = self.open_browser(url)
        except Exception as exc:
            logger.warning("Could not open a browser (%s), open %s manually", exc, url)
            return
        if opened is False:
            logger.warning("Could not open a browser, open %s manually", url)

    def _stop_server(
        self,
        server: _CallbackServer,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        stopper = threading.Thread(target=server.shutdown, name="oauth2cli-shutdown", daemon=True)
        stopper.start()
        stop_by = time.monotonic() + self.shutdown_timeout
        if deadline is not None:
            stop_by = min(stop_by, deadline)
        while True:
            stopper.join(_POLL_INTERVAL)
            if not stopper.is_alive():
                break
            if (cancel is not None and cancel.is_set()) or time.monotonic() >= stop_by:
                logger.debug("Local server still busy, closing the listener anyway")
                break
        server.server_close()

    def _transition(self, state: FlowState) -> None:
        logger.debug("Flow state %s -> %s", self.state.value, state.value)
        self.state = state
