"""SignalR push subscription for generation progress.

The QuickCode API exposes a SignalR hub at ``<api_url>/quickcodeHub``. A
client joins with ``?sessionId=<session>`` and then receives
``UpdateGeneratorStatus(projectId, actionId, allActions, allSteps)`` messages
for that generation run.

:class:`PushChannel` wraps a :mod:`signalrcore` hub connection. The library
runs the websocket on its own thread and reconnects by itself; this class
turns its callbacks into three things the watcher needs:

* :meth:`PushChannel.connect` either returns with an open connection or
  raises :class:`~quickcode.exceptions.PushConnectError`.
* every hub message becomes a :class:`PushUpdate` passed to ``on_update``.
* :meth:`PushChannel.run` blocks until cancelled, or raises
  :class:`~quickcode.exceptions.PushTransportError` once the connection has
  been down for longer than the reconnect grace period.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote

from signalrcore.hub_connection_builder import HubConnectionBuilder

from quickcode.exceptions import PushConnectError, PushTransportError
from quickcode.models import Snapshot
from quickcode.output import get_output
from quickcode.watch.cancel import CancellationToken

HUB_PATH = "quickcodeHub"
UPDATE_METHOD = "UpdateGeneratorStatus"

_RECONNECT_POLICY = {
    "type": "raw",
    "keep_alive_interval": 10,
    "reconnect_interval": 5,
    "max_attempts": 5,
}


def hub_url(api_url: str, session_id: str) -> str:
    """Build the hub URL for *session_id* below *api_url*."""
    return f"{api_url.rstrip('/')}/{HUB_PATH}?sessionId={quote(session_id, safe='')}"


@dataclass(frozen=True)
class PushUpdate:
    """One ``UpdateGeneratorStatus`` message.

    ``project_id`` and ``action_id`` are passed through untouched; only the
    snapshot is interpreted.
    """

    project_id: Any
    action_id: Any
    snapshot: Snapshot

    @classmethod
    def from_arguments(cls, arguments: Any) -> PushUpdate:
        """Decode the hub method's positional arguments.

        Missing trailing arguments are treated as absent collections.
        """
        values = list(arguments) if isinstance(arguments, (list, tuple)) else []
        values.extend([None] * (4 - len(values)))
        project_id, action_id, all_actions, all_steps = values[:4]
        return cls(project_id, action_id, Snapshot.from_payload(all_steps, all_actions))


class PushChannel:
    """A per-session SignalR subscription.

    Args:
        api_url: The QuickCode API root.
        session_id: The generation session to follow.
        on_update: Called on the library's receive thread for every message.
        verify_ssl: Verify the server certificate.
        connect_timeout: Seconds :meth:`connect` waits for the socket to open.
        reconnect_grace: Seconds a dropped connection may stay down before
            :meth:`run` gives up.
        verbose: Let the SignalR library log at debug level.
        builder_factory: Hub connection builder, replaceable in tests.

    Example::

        with PushChannel(url, session, queue.put) as channel:
            channel.connect()
            channel.run(token)
    """

    def __init__(
        self,
        api_url: str,
        session_id: str,
        on_update: Callable[[PushUpdate], None],
        verify_ssl: bool = True,
        connect_timeout: float = 10.0,
        reconnect_grace: float = 30.0,
        verbose: bool = False,
        builder_factory: Callable[[], Any] = HubConnectionBuilder,
    ) -> None:
        self._url = hub_url(api_url, session_id)
        self._on_update = on_update
        self._verify_ssl = verify_ssl
        self._connect_timeout = connect_timeout
        self._reconnect_grace = reconnect_grace
        self._verbose = verbose
        self._builder_factory = builder_factory

        self._lock = threading.Lock()
        self._connection: Any = None
        self._opened = threading.Event()
        self._wake = threading.Event()
        self._is_open = False
        self._ever_opened = False
        self._closing = False
        self._lost = False
        self._grace_timer: Optional[threading.Timer] = None

    @property
    def url(self) -> str:
        """The hub URL including the session query."""
        return self._url

    @property
    def is_open(self) -> bool:
        """Whether the websocket is currently connected."""
        return self._is_open

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def connect(self) -> None:
        """Open the hub connection.

        Raises:
            PushConnectError: If negotiation fails, the socket closes before
                opening, or it does not open within ``connect_timeout``.
        """
        output = get_output()
        output.debug(f"Connecting to {self._url}")

        connection = (
            self._builder_factory()
            .with_url(self._url, options={"verify_ssl": self._verify_ssl})
            .configure_logging(logging.DEBUG if self._verbose else logging.ERROR)
            .with_automatic_reconnect(dict(_RECONNECT_POLICY))
            .build()
        )
        connection.on_open(self._handle_open)
        connection.on_close(self._handle_close)
        connection.on_error(self._handle_error)
        connection.on_reconnect(self._handle_reconnect)
        connection.on(UPDATE_METHOD, self._handle_message)
        self._connection = connection

        try:
            started = connection.start()
        except Exception as exc:
            # signalrcore surfaces negotiation failures as requests,
            # websocket, or its own HubError exceptions
            self.close()
            raise PushConnectError(f"Could not connect to {self._url}: {exc}") from exc
        if started is False:
            self.close()
            raise PushConnectError(f"Could not connect to {self._url}")

        if not self._opened.wait(self._connect_timeout) or not self._is_open:
            self.close()
            raise PushConnectError(
                f"Push channel did not open within {self._connect_timeout:g}s"
            )
        output.debug("Push channel connected")

    def run(self, token: CancellationToken) -> None:
        """Block until *token* is cancelled or the channel is closed.

        Raises:
            PushTransportError: If the connection dropped and did not come
                back within the reconnect grace period.
        """
        if self._connection is None:
            raise PushConnectError("Push channel is not connected")

        unregister = token.register(self._wake.set)
        try:
            self._wake.wait()
        finally:
            unregister()

        if self._lost and not token.is_cancelled:
            raise PushTransportError(
                f"Push channel lost and not re-established within "
                f"{self._reconnect_grace:g}s"
            )

    def close(self) -> None:
        """Stop the connection. Best effort; shutdown errors are only logged."""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            self._cancel_grace_timer()
            connection = self._connection
        self._wake.set()

        if connection is None:
            return
        try:
            connection.stop()
        except Exception as exc:
            get_output().debug(f"Ignoring error while closing push channel: {exc}")

    def __enter__(self) -> PushChannel:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Library callbacks (receive thread)
    # ------------------------------------------------------------------ #

    def _handle_open(self) -> None:
        with self._lock:
            self._is_open = True
            self._ever_opened = True
            self._cancel_grace_timer()
        self._opened.set()

    def _handle_close(self) -> None:
        with self._lock:
            self._is_open = False
            if self._closing:
                return
            if not self._ever_opened:
                # wake connect() so it fails fast
                self._opened.set()
                return
            if self._grace_timer is None:
                timer = threading.Timer(self._reconnect_grace, self._declare_lost)
                timer.daemon = True
                self._grace_timer = timer
                timer.start()
        get_output().debug("Push channel closed, waiting for reconnect")

    def _handle_reconnect(self) -> None:
        # signalrcore reports a restored socket here, not through on_open
        with self._lock:
            self._is_open = True
            self._cancel_grace_timer()
        get_output().debug("Push channel reconnected")

    def _handle_error(self, message: Any) -> None:
        detail = getattr(message, "error", message)
        get_output().debug(f"Push channel error: {detail}")

    def _handle_message(self, arguments: Any) -> None:
        self._on_update(PushUpdate.from_arguments(arguments))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _declare_lost(self) -> None:
        with self._lock:
            self._grace_timer = None
            if self._is_open or self._closing:
                return
            self._lost = True
        self._wake.set()

    def _cancel_grace_timer(self) -> None:
        # caller holds self._lock
        if self._grace_timer is not None:
            self._grace_timer.cancel()
            self._grace_timer = None
