"""Completion decision for a generation run.

The server exposes three completion signals that can disagree while a run
winds down: every action flagged complete, every step derived complete, and
the run record's ``isFinished`` flag. :func:`evaluate` checks them in a fixed
order, after the invalid-session sentinel. Empty collections never count as
complete; they mean no data has arrived yet.
"""

from __future__ import annotations

import enum
from typing import Optional

from quickcode.models import JobStatus, Snapshot
from quickcode.watch.state import StepStatus, derive_step_state


class Verdict(str, enum.Enum):
    """Outcome of evaluating one snapshot/status pair."""

    RUNNING = "running"
    COMPLETED = "completed"
    INVALID_SESSION = "invalid_session"

    @property
    def is_terminal(self) -> bool:
        """Whether watching should stop."""
        return self is not Verdict.RUNNING


def all_actions_completed(snapshot: Optional[Snapshot]) -> bool:
    """True only for a non-empty action list whose actions are all completed."""
    if snapshot is None or not snapshot.actions:
        return False
    return all(action.is_completed for action in snapshot.actions)


def all_steps_completed(snapshot: Optional[Snapshot]) -> bool:
    """True only for a non-empty step list whose derived states are all completed.

    A step whose action is missing from the snapshot is waiting, so it keeps
    this check false.
    """
    if snapshot is None or not snapshot.steps:
        return False
    return all(
        derive_step_state(step, snapshot).status is StepStatus.COMPLETED
        for step in snapshot.steps
    )


def evaluate(
    snapshot: Optional[Snapshot] = None,
    status: Optional[JobStatus] = None,
) -> Verdict:
    """Decide whether a run is still going.

    Rules, first match wins:

    1. ``status.run_id == -1`` -> :attr:`Verdict.INVALID_SESSION`
    2. all actions completed -> :attr:`Verdict.COMPLETED`
    3. all steps completed -> :attr:`Verdict.COMPLETED`
    4. ``status.is_finished`` -> :attr:`Verdict.COMPLETED`
    5. otherwise -> :attr:`Verdict.RUNNING`
    """
    if status is not None and status.is_invalid:
        return Verdict.INVALID_SESSION
    if all_actions_completed(snapshot):
        return Verdict.COMPLETED
    if all_steps_completed(snapshot):
        return Verdict.COMPLETED
    if status is not None and status.is_finished:
        return Verdict.COMPLETED
    return Verdict.RUNNING
