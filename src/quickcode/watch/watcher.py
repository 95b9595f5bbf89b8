"""Coordinator for one live generation watch session.

:class:`GenerationWatcher` ties the push channel, polling fallback, status
client, completion evaluator, and progress renderer together:

1. Render the current step breakdown once so the progress area appears
   immediately.
2. Connect the push channel. If that fails, switch to polling for the rest
   of the session.
3. While streaming, push messages land in a bounded queue drained by the
   calling thread. Each message is rendered and evaluated, and re-arms the
   idle timer. When the timer fires after a quiet period, the run status and
   breakdown are fetched and fed through the same path.
4. If the push transport is lost for good, switch to polling.
5. Stop on a terminal verdict or on cancellation. Teardown (idle timer, push
   connection, progress area) runs on every exit path.

States::

    CONNECTING -> STREAMING -> IDLE_VERIFYING* -> COMPLETED | FAILED | CANCELLED
               \\-> POLLING ----------------------/
"""

from __future__ import annotations

import enum
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from quickcode.exceptions import PushError, QuickCodeError
from quickcode.exit_codes import EXIT_GENERATION_FAILED, EXIT_INTERRUPTED, EXIT_SUCCESS
from quickcode.models import JobStatus, Snapshot, WatchConfig
from quickcode.output import get_output
from quickcode.watch.cancel import CancellationToken
from quickcode.watch.evaluator import Verdict, all_actions_completed, all_steps_completed, evaluate
from quickcode.watch.polling import PollingFallback
from quickcode.watch.push import PushChannel, PushUpdate
from quickcode.watch.renderer import ProgressRenderer
from quickcode.watch.status import StatusClient

INVALID_SESSION_MESSAGE = "❌ Invalid generation session (Run ID: -1). Exiting watcher..."
EXITING_MESSAGE = "Exiting watcher..."
CANCELLED_MESSAGE = "Watcher cancelled."

_FETCH_ERRORS = (QuickCodeError, httpx.HTTPError)


class WatchState(str, enum.Enum):
    """Lifecycle state of a :class:`GenerationWatcher`."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    IDLE_VERIFYING = "idle_verifying"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WatchOutcome(str, enum.Enum):
    """How a watch session ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        return {
            WatchOutcome.COMPLETED: EXIT_SUCCESS,
            WatchOutcome.FAILED: EXIT_GENERATION_FAILED,
            WatchOutcome.CANCELLED: EXIT_INTERRUPTED,
        }[self]


@dataclass(frozen=True)
class _Verification:
    """Result of one idle verification, tagged with the timer token that produced it."""

    token: CancellationToken
    status: Optional[JobStatus] = None
    snapshot: Optional[Snapshot] = None
    error: Optional[Exception] = None


_WAKE = object()


class IdleTimer:
    """Runs an action after a quiet period, restarting on every :meth:`arm`.

    Each arm cancels the previous countdown's token and starts a new
    ``idle-verify`` thread with a fresh child token, so at most one
    verification is ever pending.
    """

    def __init__(
        self,
        delay: float,
        action: Callable[[CancellationToken], None],
        parent: CancellationToken,
    ) -> None:
        self._delay = delay
        self._action = action
        self._parent = parent
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None

    def arm(self) -> CancellationToken:
        """Restart the countdown. Returns the new countdown's token."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            token = self._parent.child()
            self._token = token
        thread = threading.Thread(
            target=self._run, args=(token,), name="idle-verify", daemon=True
        )
        thread.start()
        return token

    def cancel(self) -> None:
        """Stop any pending countdown."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None

    def _run(self, token: CancellationToken) -> None:
        if token.wait(self._delay):
            return
        self._action(token)


class GenerationWatcher:
    """Follow one generation session until it completes, fails, or is cancelled.

    Args:
        api_url: The QuickCode API root (hub URL is derived from it).
        session_id: The session passed to ``GenerateProjectSolution``.
        status_client: Fetches run status and step breakdowns.
        renderer: Progress output. Defaults to a renderer on stderr.
        config: Timing settings.
        verify_ssl: Verify the hub's certificate.
        verbose: Enable SignalR library debug logging.
        push_factory: Builds the push channel from an update callback.
            Defaults to :class:`~quickcode.watch.push.PushChannel`.
        polling: Polling implementation used after a fallback.
        queue_size: Capacity of the push update queue. When full, the oldest
            queued update is dropped.
    """

    def __init__(
        self,
        api_url: str,
        session_id: str,
        status_client: StatusClient,
        renderer: Optional[ProgressRenderer] = None,
        config: Optional[WatchConfig] = None,
        verify_ssl: bool = True,
        verbose: bool = False,
        push_factory: Optional[Callable[[Callable[[PushUpdate], None]], Any]] = None,
        polling: Optional[PollingFallback] = None,
        queue_size: int = 64,
    ) -> None:
        self._api_url = api_url
        self._session_id = session_id
        self._status = status_client
        self._renderer = renderer or ProgressRenderer()
        self._config = config or WatchConfig()
        self._verify_ssl = verify_ssl
        self._verbose = verbose
        self._push_factory = push_factory or self._default_push_factory
        self._polling = polling or PollingFallback(status_client)

        self._queue: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._control_lock = threading.Lock()
        self._transport_error: Optional[Exception] = None
        self._state = WatchState.IDLE
        self._channel: Any = None
        self._idle: Optional[IdleTimer] = None

    @property
    def state(self) -> WatchState:
        """The current lifecycle state."""
        return self._state

    @property
    def session_id(self) -> str:
        return self._session_id

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def run(self, token: Optional[CancellationToken] = None) -> WatchOutcome:
        """Watch until a terminal verdict or cancellation of *token*.

        Never raises: unexpected errors are reported and turn into
        :attr:`WatchOutcome.FAILED`.
        """
        token = token or CancellationToken()
        try:
            return self._run(token)
        except KeyboardInterrupt:
            return self._cancelled()
        except Exception as exc:
            self._renderer.message(f"Watcher error: {exc}")
            self._state = WatchState.FAILED
            return WatchOutcome.FAILED
        finally:
            if self._idle is not None:
                self._idle.cancel()
            if self._channel is not None:
                self._channel.close()
            self._renderer.reset_area()

    def _run(self, token: CancellationToken) -> WatchOutcome:
        self._renderer.reset_area()
        self._render_breakdown()
        if token.is_cancelled:
            return self._cancelled()

        self._state = WatchState.CONNECTING
        channel = self._push_factory(self._offer)
        self._channel = channel
        try:
            channel.connect()
        except PushError as exc:
            channel.close()
            return self._poll(token, exc)

        outcome = self._stream(channel, token)
        if outcome is not None:
            return outcome

        channel.close()
        if self._idle is not None:
            self._idle.cancel()
        return self._poll(token, self._transport_error)

    # ------------------------------------------------------------------ #
    # Push mode
    # ------------------------------------------------------------------ #

    def _stream(self, channel: Any, token: CancellationToken) -> Optional[WatchOutcome]:
        """Drain push updates. Returns ``None`` when the transport was lost."""
        self._state = WatchState.STREAMING
        stream_token = token.child()
        self._idle = IdleTimer(self._config.idle_verify_seconds, self._verify, stream_token)

        runner = threading.Thread(
            target=self._run_push, args=(channel, stream_token), name="push-run", daemon=True
        )
        runner.start()
        unregister = token.register(lambda: self._offer(_WAKE))
        self._idle.arm()
        try:
            while True:
                item = self._queue.get()
                if token.is_cancelled:
                    return self._cancelled()
                if self._transport_error is not None:
                    get_output().debug(f"Push transport lost: {self._transport_error}")
                    return None
                if item is _WAKE:
                    continue

                if isinstance(item, PushUpdate):
                    self._state = WatchState.STREAMING
                    self._idle.arm()
                    snapshot: Optional[Snapshot] = item.snapshot
                    verdict = self._apply(snapshot, None)
                elif isinstance(item, _Verification):
                    if item.token.is_cancelled:
                        # superseded by a newer update
                        continue
                    self._state = WatchState.IDLE_VERIFYING
                    if item.error is not None:
                        self._renderer.message(f"⚠️ Status check failed: {item.error}")
                        self._idle.arm()
                        continue
                    snapshot = item.snapshot
                    verdict = self._apply(snapshot, item.status)
                    if not verdict.is_terminal:
                        self._idle.arm()
                else:
                    continue

                if verdict.is_terminal:
                    return self._finish(verdict, snapshot)
        finally:
            unregister()
            self._idle.cancel()
            stream_token.cancel()
            runner.join(timeout=5.0)

    def _run_push(self, channel: Any, stream_token: CancellationToken) -> None:
        try:
            channel.run(stream_token)
        except Exception as exc:
            with self._control_lock:
                self._transport_error = exc
            self._offer(_WAKE)

    def _verify(self, token: CancellationToken) -> None:
        """Idle-timer action, runs on the ``idle-verify`` thread."""
        try:
            status = self._status.get_job_status(self._session_id)
        except _FETCH_ERRORS as exc:
            if not token.is_cancelled:
                self._offer(_Verification(token, error=exc))
            return

        snapshot = None
        if status is not None and not status.is_invalid:
            try:
                snapshot = self._status.get_step_breakdown()
            except _FETCH_ERRORS as exc:
                get_output().debug(f"Could not fetch generation steps: {exc}")
        if not token.is_cancelled:
            self._offer(_Verification(token, status, snapshot))

    def _offer(self, item: Any) -> None:
        """Enqueue *item*, dropping the oldest entry when the queue is full."""
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    # ------------------------------------------------------------------ #
    # Polling mode
    # ------------------------------------------------------------------ #

    def _poll(self, token: CancellationToken, reason: Optional[Exception]) -> WatchOutcome:
        self._state = WatchState.POLLING
        self._renderer.message(f"Push channel unavailable: {reason}")
        self._renderer.message("Falling back to HTTP polling...")
        self._render_breakdown()

        poll_token = token.child()
        outcome: list[WatchOutcome] = []

        def on_update(status: JobStatus) -> None:
            snapshot = None
            if not status.is_invalid:
                try:
                    snapshot = self._status.get_step_breakdown()
                except _FETCH_ERRORS as exc:
                    get_output().debug(f"Could not fetch generation steps: {exc}")
            verdict = self._apply(snapshot, status)
            if verdict.is_terminal:
                outcome.append(self._finish(verdict, snapshot))
                poll_token.cancel()

        def on_error(exc: Exception) -> None:
            self._renderer.message(f"⚠️ Status check failed: {exc}")

        self._polling.run(
            self._session_id,
            self._config.poll_interval_seconds,
            on_update,
            poll_token,
            on_error=on_error,
        )
        if outcome:
            return outcome[0]
        return self._cancelled()

    # ------------------------------------------------------------------ #
    # Shared render/evaluate path
    # ------------------------------------------------------------------ #

    def _apply(self, snapshot: Optional[Snapshot], status: Optional[JobStatus]) -> Verdict:
        if snapshot is not None:
            self._renderer.render(snapshot)
        return evaluate(snapshot, status)

    def _finish(self, verdict: Verdict, snapshot: Optional[Snapshot]) -> WatchOutcome:
        self._renderer.reset_area()
        if verdict is Verdict.INVALID_SESSION:
            self._renderer.message(INVALID_SESSION_MESSAGE)
            self._state = WatchState.FAILED
            return WatchOutcome.FAILED

        if not (all_actions_completed(snapshot) or all_steps_completed(snapshot)):
            # finished per the run record; the summary needs the final breakdown
            try:
                snapshot = self._status.get_step_breakdown()
            except _FETCH_ERRORS as exc:
                get_output().debug(f"Could not fetch generation steps: {exc}")
        self._renderer.show_completion_summary(snapshot)
        self._renderer.message(EXITING_MESSAGE)
        self._state = WatchState.COMPLETED
        return WatchOutcome.COMPLETED

    def _cancelled(self) -> WatchOutcome:
        self._renderer.message(CANCELLED_MESSAGE)
        self._state = WatchState.CANCELLED
        return WatchOutcome.CANCELLED

    def _render_breakdown(self) -> None:
        try:
            snapshot: Optional[Snapshot] = self._status.get_step_breakdown()
        except _FETCH_ERRORS as exc:
            get_output().debug(f"Could not get initial steps: {exc}")
            snapshot = None
        self._renderer.render(snapshot)

    def _default_push_factory(self, on_update: Callable[[PushUpdate], None]) -> PushChannel:
        return PushChannel(
            self._api_url,
            self._session_id,
            on_update,
            verify_ssl=self._verify_ssl,
            connect_timeout=self._config.connect_timeout_seconds,
            reconnect_grace=self._config.reconnect_grace_seconds,
            verbose=self._verbose,
        )
