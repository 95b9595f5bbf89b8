"""Per-step status derivation.

A step's status is never sent by the server directly. It is derived from the
action the step points at:

* no matching action -> waiting
* matching action with ``isCompleted`` -> completed, elapsed from
  ``elapsedTime``
* matching action with a non-null ``startDate`` -> in progress, elapsed
  measured from ``startDate`` to *now*
* anything else -> waiting

:func:`derive_step_state` is pure: it reads a :class:`~quickcode.models.Step`
and the actions of the same :class:`~quickcode.models.Snapshot` and returns a
value, so the renderer and the completion evaluator agree by construction.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from quickcode.models import Action, Snapshot, Step


class StepStatus(str, enum.Enum):
    """Derived display status of a step."""

    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StepState:
    """Status and elapsed seconds of one step at one point in time.

    ``elapsed_seconds`` is ``None`` while waiting, or when the server did not
    report a usable timing.
    """

    status: StepStatus
    elapsed_seconds: Optional[float] = None


def derive_step_state(
    step: Step,
    actions: Union[Snapshot, Optional[Iterable[Action]]],
    now: Optional[datetime] = None,
) -> StepState:
    """Derive the state of *step* from the actions it references.

    Args:
        step: The step to classify.
        actions: The snapshot (or its action list) the step belongs to.
        now: Reference time for in-progress durations. Defaults to the
            current UTC time.
    """
    snapshot = actions if isinstance(actions, Snapshot) else Snapshot(
        actions=list(actions) if actions is not None else None
    )
    action = snapshot.find_action(step.action_id)
    if action is None:
        return StepState(StepStatus.WAITING)

    if action.is_completed:
        elapsed = None
        if action.elapsed_time_ms is not None:
            elapsed = action.elapsed_time_ms / 1000.0
        return StepState(StepStatus.COMPLETED, elapsed)

    if action.has_started:
        elapsed = None
        if action.start_date is not None:
            now = now or datetime.now(timezone.utc)
            elapsed = max(0.0, (now - action.start_date).total_seconds())
        return StepState(StepStatus.IN_PROGRESS, elapsed)

    return StepState(StepStatus.WAITING)


def derive_states(snapshot: Snapshot, now: Optional[datetime] = None) -> list[StepState]:
    """Derive the state of every step in *snapshot*, in step order."""
    now = now or datetime.now(timezone.utc)
    return [derive_step_state(step, snapshot, now) for step in snapshot.steps or ()]
