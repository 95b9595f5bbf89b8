"""Live generation-progress watching.

The pieces, leaf to root:

- :class:`StatusClient` -- run status and step breakdown over HTTP.
- :class:`PushChannel` -- SignalR subscription delivering :class:`PushUpdate` messages.
- :class:`PollingFallback` -- fixed-interval status polling used when push fails.
- :func:`evaluate` -- completion decision from a snapshot and/or run status.
- :class:`ProgressRenderer` -- in-place terminal progress area.
- :class:`GenerationWatcher` -- coordinates all of the above for one session.
"""

from quickcode.watch.cancel import CancellationToken, cancel_on_interrupt
from quickcode.watch.evaluator import Verdict, evaluate
from quickcode.watch.polling import PollingFallback
from quickcode.watch.push import PushChannel, PushUpdate
from quickcode.watch.renderer import ProgressArea, ProgressRenderer, Terminal, format_duration
from quickcode.watch.state import StepState, StepStatus, derive_step_state
from quickcode.watch.status import StatusClient
from quickcode.watch.watcher import GenerationWatcher, WatchOutcome, WatchState

__all__ = [
    "CancellationToken",
    "GenerationWatcher",
    "PollingFallback",
    "ProgressArea",
    "ProgressRenderer",
    "PushChannel",
    "PushUpdate",
    "StatusClient",
    "StepState",
    "StepStatus",
    "Terminal",
    "Verdict",
    "WatchOutcome",
    "WatchState",
    "cancel_on_interrupt",
    "derive_step_state",
    "evaluate",
    "format_duration",
]
