"""Tests for the generation watch coordinator."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest

from quickcode.exceptions import PushConnectError, PushTransportError, ServerError
from quickcode.models import JobStatus, Snapshot, WatchConfig
from quickcode.watch.cancel import CancellationToken
from quickcode.watch.push import UPDATE_METHOD, PushChannel, PushUpdate
from quickcode.watch.watcher import (
    CANCELLED_MESSAGE,
    EXITING_MESSAGE,
    INVALID_SESSION_MESSAGE,
    GenerationWatcher,
    IdleTimer,
    WatchOutcome,
    WatchState,
)


FAST = WatchConfig(idle_verify_seconds=60, poll_interval_seconds=0)


class RecordingRenderer:
    def __init__(self) -> None:
        self.rendered: list[Optional[Snapshot]] = []
        self.messages: list[str] = []
        self.summaries: list[Optional[Snapshot]] = []
        self.resets = 0

    def render(self, snapshot: Optional[Snapshot], now: Any = None) -> None:
        self.rendered.append(snapshot)

    def reset_area(self) -> None:
        self.resets += 1

    def message(self, text: str) -> None:
        self.messages.append(text)

    def show_completion_summary(self, snapshot: Optional[Snapshot]) -> None:
        self.summaries.append(snapshot)


class PushStub:
    """Delivers scripted updates from ``run`` and then waits for cancellation."""

    def __init__(
        self,
        on_update: Callable[[PushUpdate], None],
        updates: tuple[PushUpdate, ...] = (),
        connect_error: Optional[Exception] = None,
        run_error: Optional[Exception] = None,
    ) -> None:
        self.on_update = on_update
        self.updates = updates
        self.connect_error = connect_error
        self.run_error = run_error
        self.closed = 0

    def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    def run(self, token: CancellationToken) -> None:
        for update in self.updates:
            self.on_update(update)
        if self.run_error is not None:
            raise self.run_error
        token.wait()

    def close(self) -> None:
        self.closed += 1


class ScriptedHub:
    """Hub connection whose lifecycle callbacks the test fires by hand."""

    def __init__(self) -> None:
        self.handlers: dict[str, Callable[..., Any]] = {}

    def with_url(self, url: str, options: Any = None) -> ScriptedHub:
        return self

    def configure_logging(self, level: int) -> ScriptedHub:
        return self

    def with_automatic_reconnect(self, policy: Any) -> ScriptedHub:
        return self

    def build(self) -> ScriptedHub:
        return self

    def on_open(self, callback: Callable[[], None]) -> None:
        self.handlers["open"] = callback

    def on_close(self, callback: Callable[[], None]) -> None:
        self.handlers["close"] = callback

    def on_error(self, callback: Callable[[Any], None]) -> None:
        self.handlers["error"] = callback

    def on_reconnect(self, callback: Callable[[], None]) -> None:
        self.handlers["reconnect"] = callback

    def on(self, method: str, callback: Callable[[Any], None]) -> None:
        self.handlers[method] = callback

    def start(self) -> bool:
        self.handlers["open"]()
        return True

    def stop(self) -> None:
        pass


def _status(run_id: int = 9, finished: bool = False) -> JobStatus:
    return JobStatus.model_validate({"activeRunId": run_id, "isFinished": finished})


def _update(payload: dict[str, Any]) -> PushUpdate:
    return PushUpdate("p1", 1, Snapshot.from_breakdown(payload))


@pytest.fixture
def status_client(breakdown_payload) -> MagicMock:
    client = MagicMock()
    client.get_step_breakdown.return_value = Snapshot.from_breakdown(breakdown_payload)
    client.get_job_status.return_value = _status()
    return client


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


def _watcher(
    status_client: MagicMock,
    renderer: RecordingRenderer,
    stubs: list[PushStub],
    config: WatchConfig = FAST,
    **stub_kwargs: Any,
) -> GenerationWatcher:
    def factory(on_update: Callable[[PushUpdate], None]) -> PushStub:
        stub = PushStub(on_update, **stub_kwargs)
        stubs.append(stub)
        return stub

    return GenerationWatcher(
        "https://api.example.com/",
        "s1",
        status_client,
        renderer=renderer,
        config=config,
        push_factory=factory,
    )


class TestWatchOutcome:
    def test_exit_codes(self) -> None:
        assert WatchOutcome.COMPLETED.exit_code == 0
        assert WatchOutcome.FAILED.exit_code == 7
        assert WatchOutcome.CANCELLED.exit_code == 130


class TestIdleTimer:
    def test_rearm_supersedes_pending_countdown(self) -> None:
        fired: list[CancellationToken] = []
        done = threading.Event()

        def action(token: CancellationToken) -> None:
            fired.append(token)
            done.set()

        timer = IdleTimer(0.05, action, CancellationToken())
        first = timer.arm()
        second = timer.arm()

        assert done.wait(5)
        assert first.is_cancelled
        assert fired == [second]

    def test_cancel(self) -> None:
        fired = []
        timer = IdleTimer(0.01, fired.append, CancellationToken())
        token = timer.arm()
        timer.cancel()
        assert token.is_cancelled
        threading.Event().wait(0.05)
        assert fired == []

    def test_parent_cancel_stops_countdown(self) -> None:
        parent = CancellationToken()
        timer = IdleTimer(60, lambda token: None, parent)
        token = timer.arm()
        parent.cancel()
        assert token.is_cancelled


class TestStreaming:
    def test_completes_from_push_updates(
        self, status_client, renderer, breakdown_payload, finished_payload, quiet_output
    ) -> None:
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client,
            renderer,
            stubs,
            updates=(_update(breakdown_payload), _update(finished_payload)),
        )

        outcome = watcher.run(CancellationToken())

        assert outcome is WatchOutcome.COMPLETED
        assert watcher.state is WatchState.COMPLETED
        # initial breakdown plus one render per update
        assert len(renderer.rendered) == 3
        assert len(renderer.summaries) == 1
        assert renderer.messages[-1] == EXITING_MESSAGE
        assert stubs[0].closed >= 1

    def test_idle_verification_completes(self, status_client, renderer, quiet_output) -> None:
        status_client.get_job_status.return_value = _status(finished=True)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, config=WatchConfig(idle_verify_seconds=0.01)
        )

        assert watcher.run(CancellationToken()) is WatchOutcome.COMPLETED
        status_client.get_job_status.assert_called_with("s1")
        assert renderer.messages[-1] == EXITING_MESSAGE

    def test_idle_verification_failure_is_reported(self, status_client, renderer, quiet_output) -> None:
        status_client.get_job_status.side_effect = [
            ServerError("HTTP 503 Service Unavailable"),
            _status(finished=True),
        ]
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, config=WatchConfig(idle_verify_seconds=0.01)
        )

        assert watcher.run(CancellationToken()) is WatchOutcome.COMPLETED
        assert any("Status check failed" in message for message in renderer.messages)

    def test_invalid_session_from_idle_check(self, status_client, renderer, quiet_output) -> None:
        status_client.get_job_status.return_value = _status(run_id=-1)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, config=WatchConfig(idle_verify_seconds=0.01)
        )

        outcome = watcher.run(CancellationToken())

        assert outcome is WatchOutcome.FAILED
        assert outcome.exit_code == 7
        assert INVALID_SESSION_MESSAGE in renderer.messages

    def test_reconnect_keeps_streaming(
        self, status_client, renderer, finished_payload, quiet_output
    ) -> None:
        hub = ScriptedHub()
        watcher = GenerationWatcher(
            "https://api.example.com/",
            "s1",
            status_client,
            renderer=renderer,
            config=WatchConfig(idle_verify_seconds=60, poll_interval_seconds=0.01),
            push_factory=lambda on_update: PushChannel(
                "https://api.example.com/",
                "s1",
                on_update,
                connect_timeout=1.0,
                reconnect_grace=0.05,
                builder_factory=lambda: hub,
            ),
        )

        def drop_and_restore() -> None:
            hub.handlers["close"]()
            hub.handlers["reconnect"]()

        def push_finished() -> None:
            hub.handlers[UPDATE_METHOD](
                ["p1", 2, finished_payload["allActions"], finished_payload["allSteps"]]
            )

        token = CancellationToken()
        threading.Timer(0.05, drop_and_restore).start()
        # well past the reconnect grace
        threading.Timer(0.3, push_finished).start()
        guard = threading.Timer(5.0, token.cancel)
        guard.start()
        try:
            outcome = watcher.run(token)
        finally:
            guard.cancel()

        assert outcome is WatchOutcome.COMPLETED
        assert not any("Push channel unavailable" in message for message in renderer.messages)
        status_client.get_job_status.assert_not_called()

    def test_cancel_while_streaming(self, status_client, renderer, quiet_output) -> None:
        stubs: list[PushStub] = []
        watcher = _watcher(status_client, renderer, stubs)
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()

        outcome = watcher.run(token)

        assert outcome is WatchOutcome.CANCELLED
        assert renderer.messages[-1] == CANCELLED_MESSAGE
        assert stubs[0].closed >= 1


class TestFallback:
    def test_connect_failure_falls_back_to_polling(
        self, status_client, renderer, finished_payload, quiet_output
    ) -> None:
        status_client.get_step_breakdown.return_value = Snapshot.from_breakdown(finished_payload)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, connect_error=PushConnectError("hub unreachable")
        )

        outcome = watcher.run(CancellationToken())

        assert outcome is WatchOutcome.COMPLETED
        assert "Push channel unavailable: hub unreachable" in renderer.messages
        assert "Falling back to HTTP polling..." in renderer.messages
        assert renderer.summaries[0].steps[1].description == "Build"

    def test_polls_until_status_finishes(self, status_client, renderer, quiet_output) -> None:
        status_client.get_job_status.side_effect = [
            _status(),
            _status(),
            _status(finished=True),
        ]
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, connect_error=PushConnectError("hub unreachable")
        )

        outcome = watcher.run(CancellationToken())

        assert outcome is WatchOutcome.COMPLETED
        assert status_client.get_job_status.call_count == 3
        # one push attempt only, polling is never abandoned for push again
        assert len(stubs) == 1
        # initial and post-fallback breakdowns, then one per poll
        assert len(renderer.rendered) == 5
        assert len(renderer.summaries) == 1
        assert renderer.messages[-1] == EXITING_MESSAGE

    def test_transport_loss_falls_back_to_polling(
        self, status_client, renderer, breakdown_payload, finished_payload, quiet_output
    ) -> None:
        status_client.get_job_status.return_value = _status(finished=True)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client,
            renderer,
            stubs,
            updates=(_update(breakdown_payload),),
            run_error=PushTransportError("connection lost"),
        )

        outcome = watcher.run(CancellationToken())

        assert outcome is WatchOutcome.COMPLETED
        assert "Push channel unavailable: connection lost" in renderer.messages
        assert stubs[0].closed >= 1

    def test_finished_status_fetches_final_breakdown(
        self, status_client, renderer, breakdown_payload, quiet_output
    ) -> None:
        status_client.get_job_status.return_value = _status(finished=True)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, connect_error=PushConnectError("no hub")
        )

        assert watcher.run(CancellationToken()) is WatchOutcome.COMPLETED
        assert renderer.summaries == [Snapshot.from_breakdown(breakdown_payload)]

    def test_invalid_session_while_polling(self, status_client, renderer, quiet_output) -> None:
        status_client.get_job_status.return_value = _status(run_id=-1)
        stubs: list[PushStub] = []
        watcher = _watcher(
            status_client, renderer, stubs, connect_error=PushConnectError("no hub")
        )

        assert watcher.run(CancellationToken()) is WatchOutcome.FAILED
        assert watcher.state is WatchState.FAILED
        assert renderer.messages[-1] == INVALID_SESSION_MESSAGE

    def test_cancel_while_polling(self, status_client, renderer, quiet_output) -> None:
        stubs: list[PushStub] = []
        watcher = GenerationWatcher(
            "https://api.example.com/",
            "s1",
            status_client,
            renderer=renderer,
            config=WatchConfig(poll_interval_seconds=60),
            push_factory=lambda on_update: PushStub(on_update, connect_error=PushConnectError("x")),
        )
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()

        assert watcher.run(token) is WatchOutcome.CANCELLED
        assert renderer.messages[-1] == CANCELLED_MESSAGE


class TestCancellation:
    def test_cancelled_before_start(self, status_client, renderer, quiet_output) -> None:
        token = CancellationToken()
        token.cancel()
        stubs: list[PushStub] = []

        outcome = _watcher(status_client, renderer, stubs).run(token)

        assert outcome is WatchOutcome.CANCELLED
        assert outcome.exit_code == 130
        assert stubs == []

    def test_unexpected_error_fails(self, status_client, renderer, quiet_output) -> None:
        def factory(on_update: Callable[[PushUpdate], None]) -> PushStub:
            raise RuntimeError("kaboom")

        watcher = GenerationWatcher(
            "https://api.example.com/", "s1", status_client, renderer=renderer, push_factory=factory
        )

        assert watcher.run(CancellationToken()) is WatchOutcome.FAILED
        assert "Watcher error: kaboom" in renderer.messages
