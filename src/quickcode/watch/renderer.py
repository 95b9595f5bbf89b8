"""In-place terminal rendering of generation progress.

Each step of a :class:`~quickcode.models.Snapshot` becomes one line::

    ✅ Completed - Generate entities [12.5s]
    🔄 In Progress - Build solution [↘]
    ⏳ Waiting - Push repository [--]

On an interactive terminal the block is repainted in place: the first render
anchors it at the current cursor row, later renders move back up over the
previous block, rewrite every line, and blank any lines left over from a
longer previous render. The cursor always ends just below the block, so a
message printed after :meth:`ProgressRenderer.reset_area` appends cleanly.

When output is redirected, or once painting has failed, every render is
printed as a separate block bracketed by ``=`` separators instead.

Cursor control goes through :class:`Terminal`, a thin layer over a Rich
:class:`~rich.console.Console` and its :class:`~rich.control.Control` codes.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

from quickcode.models import Snapshot
from quickcode.output import get_output
from quickcode.watch.state import StepStatus, derive_states

STATUS_LABELS = {
    StepStatus.WAITING: "⏳ Waiting",
    StepStatus.IN_PROGRESS: "🔄 In Progress",
    StepStatus.COMPLETED: "✅ Completed",
}
SPINNER_FRAMES = ("→", "↘", "↓", "↙", "←", "↖", "↑", "↗")
DURATION_PLACEHOLDER = "--"
WAITING_FOR_STEPS = "⏳ Waiting for generation steps..."
SEPARATOR = "=" * 60
DEFAULT_WIDTH = 120


def format_duration(seconds: Optional[float]) -> str:
    """Format elapsed seconds as ``1h 2m 5s``, ``2m 5s``, or ``45.0s``.

    Unknown, negative, or non-finite values give the ``--`` placeholder.
    """
    if seconds is None or math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return DURATION_PLACEHOLDER
    if seconds >= 3600:
        total = int(seconds)
        return f"{total // 3600}h {total % 3600 // 60}m {total % 60}s"
    if seconds >= 60:
        total = int(seconds)
        return f"{total // 60}m {total % 60}s"
    return f"{seconds:.1f}s"


def format_lines(
    snapshot: Optional[Snapshot],
    spinner: str = SPINNER_FRAMES[0],
    now: Optional[datetime] = None,
) -> list[str]:
    """Build the display lines for *snapshot*.

    Never returns an empty list: a snapshot without steps yields the
    ``Waiting for generation steps...`` placeholder line.
    """
    if snapshot is None or not snapshot.steps:
        return [WAITING_FOR_STEPS]

    lines = []
    for step, state in zip(snapshot.steps, derive_states(snapshot, now)):
        if state.status is StepStatus.IN_PROGRESS:
            duration = spinner
        else:
            duration = format_duration(state.elapsed_seconds)
        lines.append(f"{STATUS_LABELS[state.status]} - {step.description} [{duration}]")
    return lines


@dataclass(frozen=True)
class ProgressArea:
    """Where the progress block currently sits.

    ``anchored`` is False until the first paint of a cycle. ``height`` is the
    number of lines the last paint wrote.
    """

    anchored: bool = False
    height: int = 0


class Terminal:
    """Cursor primitives over a Rich console.

    Every query degrades to a fixed fallback when the host terminal cannot
    answer it.
    """

    def __init__(self, console: Console) -> None:
        self._console = console

    @property
    def is_interactive(self) -> bool:
        """Whether cursor movement is supported (a real, non-dumb terminal)."""
        return self._console.is_terminal and not self._console.is_dumb_terminal

    @property
    def width(self) -> int:
        """Terminal width in cells, ``120`` if unknown."""
        try:
            width = self._console.size.width
        except (OSError, ValueError):
            return DEFAULT_WIDTH
        return width if width > 0 else DEFAULT_WIDTH

    def move_up(self, lines: int) -> None:
        if lines > 0:
            self._console.control(Control.move(0, -lines))

    def clear_line(self) -> None:
        self._console.control(
            Control.move_to_column(0),
            Control((ControlType.ERASE_IN_LINE, 2)),
        )

    def write(self, text: str) -> None:
        self._console.out(text, end="", highlight=False)

    def newline(self) -> None:
        self._console.out("", highlight=False)

    def write_line(self, text: str) -> None:
        self._console.out(text, highlight=False)

    def flush(self) -> None:
        self._console.file.flush()


def _fit(line: str, width: int) -> str:
    text = Text(line)
    text.truncate(width, overflow="crop")
    return text.plain


class ProgressRenderer:
    """Paints snapshots into a single, repeatedly rewritten progress area.

    All painting, area resets, and messages go through one lock, so the push
    receive thread and the coordinator never interleave output.

    Args:
        terminal: Output target. Defaults to the diagnostics console of the
            global :class:`~quickcode.output.OutputManager`.
    """

    def __init__(self, terminal: Optional[Terminal] = None) -> None:
        self._terminal = terminal or Terminal(get_output().stderr_console)
        self._lock = threading.RLock()
        self._area = ProgressArea()
        self._plain = not self._terminal.is_interactive
        self._spinner_index = 0

    @property
    def area(self) -> ProgressArea:
        """The current progress area."""
        return self._area

    @property
    def is_plain(self) -> bool:
        """Whether output is append-only (redirected, or after a paint failure)."""
        return self._plain

    def render(self, snapshot: Optional[Snapshot], now: Optional[datetime] = None) -> None:
        """Show *snapshot*, repainting the progress area in place when possible."""
        with self._lock:
            spinner = SPINNER_FRAMES[self._spinner_index]
            self._spinner_index = (self._spinner_index + 1) % len(SPINNER_FRAMES)
            lines = format_lines(snapshot, spinner, now)

            if self._plain:
                self._print_block(lines)
                return
            try:
                self._area = self._paint(lines, self._area)
            except Exception as exc:
                # Terminal refused cursor control; stay append-only from now on
                get_output().debug(f"Progress repaint failed, switching to plain output: {exc}")
                self._plain = True
                self._area = ProgressArea()
                self._print_block(lines)

    def reset_area(self) -> None:
        """Forget the anchor so the next render starts a new block below the cursor."""
        with self._lock:
            self._area = ProgressArea()

    def message(self, text: str) -> None:
        """Print an unrelated line below the progress area, ending the current block."""
        with self._lock:
            self._area = ProgressArea()
            self._terminal.write_line(text)
            self._terminal.flush()

    def show_completion_summary(self, snapshot: Optional[Snapshot]) -> None:
        """Print the completed-step count and total duration.

        Does nothing when the snapshot carries no step list or no step is
        completed.
        """
        if snapshot is None or snapshot.steps is None:
            return
        completed = [
            state for state in derive_states(snapshot) if state.status is StepStatus.COMPLETED
        ]
        if not completed:
            return
        total = sum(state.elapsed_seconds or 0.0 for state in completed)

        with self._lock:
            self._area = ProgressArea()
            for line in (
                "",
                SEPARATOR,
                "✅ Generation completed successfully!",
                f"   Total steps: {len(completed)}",
                f"   Total duration: {format_duration(total)}",
                SEPARATOR,
            ):
                self._terminal.write_line(line)
            self._terminal.flush()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _paint(self, lines: list[str], area: ProgressArea) -> ProgressArea:
        terminal = self._terminal
        width = terminal.width

        if area.anchored:
            terminal.move_up(area.height)
        for line in lines:
            terminal.clear_line()
            terminal.write(_fit(line, width))
            terminal.newline()

        surplus = area.height - len(lines) if area.anchored else 0
        if surplus > 0:
            for _ in range(surplus):
                terminal.clear_line()
                terminal.newline()
            terminal.move_up(surplus)

        terminal.flush()
        return ProgressArea(anchored=True, height=len(lines))

    def _print_block(self, lines: list[str]) -> None:
        terminal = self._terminal
        for line in (SEPARATOR, "Generation Progress", SEPARATOR, *lines, SEPARATOR):
            terminal.write_line(line)
        terminal.flush()
