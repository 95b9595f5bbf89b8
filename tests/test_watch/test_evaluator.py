"""Tests for the completion decision."""

from __future__ import annotations

from quickcode.models import JobStatus, Snapshot
from quickcode.watch.evaluator import Verdict, all_actions_completed, all_steps_completed, evaluate


def _status(**fields) -> JobStatus:
    return JobStatus.model_validate(fields)


STEPS = [{"actionId": 1, "description": "a"}, {"actionId": 2, "description": "b"}]


class TestCompletionChecks:
    def test_empty_collections_are_never_complete(self) -> None:
        empty = Snapshot.from_payload([], [])
        assert all_actions_completed(empty) is False
        assert all_steps_completed(empty) is False
        assert all_actions_completed(None) is False
        assert all_steps_completed(Snapshot.empty()) is False

    def test_all_actions_completed(self) -> None:
        snapshot = Snapshot.from_payload([], [{"id": 1, "isCompleted": True}])
        assert all_actions_completed(snapshot) is True

    def test_step_without_action_blocks_completion(self) -> None:
        snapshot = Snapshot.from_payload(STEPS, [{"id": 1, "isCompleted": True}])
        assert all_steps_completed(snapshot) is False

    def test_all_steps_completed(self) -> None:
        snapshot = Snapshot.from_payload(
            STEPS,
            [{"id": 1, "isCompleted": True}, {"id": 2, "isCompleted": True}, {"id": 3}],
        )
        assert all_actions_completed(snapshot) is False
        assert all_steps_completed(snapshot) is True


class TestEvaluate:
    def test_nothing_known_is_running(self) -> None:
        assert evaluate() is Verdict.RUNNING
        assert evaluate(Snapshot.empty(), None) is Verdict.RUNNING

    def test_invalid_session_wins(self) -> None:
        done = Snapshot.from_payload([], [{"id": 1, "isCompleted": True}])
        assert evaluate(done, _status(activeRunId=-1, isFinished=True)) is Verdict.INVALID_SESSION

    def test_actions_complete(self) -> None:
        done = Snapshot.from_payload([], [{"id": 1, "isCompleted": True}])
        assert evaluate(done, None) is Verdict.COMPLETED

    def test_steps_complete(self) -> None:
        snapshot = Snapshot.from_payload(
            STEPS,
            [{"id": 1, "isCompleted": True}, {"id": 2, "isCompleted": True}, {"id": 3}],
        )
        assert evaluate(snapshot) is Verdict.COMPLETED

    def test_finished_flag(self) -> None:
        running = Snapshot.from_payload(STEPS, [{"id": 1, "isCompleted": False}])
        assert evaluate(running, _status(activeRunId=4, isFinished=True)) is Verdict.COMPLETED

    def test_still_running(self) -> None:
        running = Snapshot.from_payload(STEPS, [{"id": 1, "isCompleted": True}])
        assert evaluate(running, _status(activeRunId=4, isFinished=False)) is Verdict.RUNNING

    def test_terminal_flags(self) -> None:
        assert Verdict.RUNNING.is_terminal is False
        assert Verdict.COMPLETED.is_terminal is True
        assert Verdict.INVALID_SESSION.is_terminal is True
