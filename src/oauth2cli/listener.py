"""Loopback TCP listener used as the redirect target of a flow.

:func:`open_listener` binds ``127.0.0.1`` on a fixed port, or on a free
port chosen by the OS when the port is ``0``, and returns a
:class:`LocalhostListener` that reports the port actually bound and the
``http://localhost:<port>`` URL registered as the ``redirect_uri``.
"""

from __future__ import annotations

import socket
import sys

from oauth2cli.exceptions import ListenerBindError

_LOOPBACK_HOST = "127.0.0.1"


class LocalhostListener:
    """A listening socket on the loopback interface.

    Owned by exactly one :class:`~oauth2cli.flow.AuthCodeFlow` invocation and
    closed when the flow ends. :meth:`close` is idempotent.

    Attributes:
        socket: The bound, listening socket.
        port: The port the socket is bound to (never ``0``).
        url: ``http://localhost:<port>``.
    """

    def __init__(self, sock: socket.socket) -> None:
        self.socket = sock
        self.port: int = sock.getsockname()[1]
        self.url = f"http://localhost:{self.port}"
        self._closed = False

    @property
    def address(self) -> tuple[str, int]:
        return _LOOPBACK_HOST, self.port

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.socket.close()

    def __enter__(self) -> LocalhostListener:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<LocalhostListener {self.url} ({state})>"


def open_listener(port: int = 0, backlog: int = 5) -> LocalhostListener:
    """Start a TCP listener on localhost.

    Args:
        port: Port to bind. ``0`` lets the OS pick a free port.
        backlog: Listen backlog passed to :meth:`socket.socket.listen`.

    Returns:
        A listening :class:`LocalhostListener`.

    Raises:
        ListenerBindError: If the port is in use or cannot be bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        # Allows re-binding a fixed port left in TIME_WAIT by a previous run.
        # On Windows the option would let two listeners share the port.
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((_LOOPBACK_HOST, port))
        sock.listen(backlog)
    except OSError as exc:
        sock.close()
        raise ListenerBindError(port, str(exc)) from exc
    return LocalhostListener(sock)
