"""Progress sinks: where retry and wait messages go.

The retry engine and the conversation loop never touch the terminal
directly; they report to whatever sink the caller hands them.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.status import Status


class ProgressSink(Protocol):
    """Best-effort progress channel."""

    def report(self, text: str) -> None: ...

    def clear(self) -> None: ...


class NullProgress:
    """Sink for non-interactive use; drops everything."""

    def report(self, text: str) -> None:
        pass

    def clear(self) -> None:
        pass


class RecordingProgress:
    """Keeps every report in memory.  Handy for tests and ``--verbose`` dumps."""

    def __init__(self) -> None:
        self.reports: list[str] = []
        self.clears = 0

    def report(self, text: str) -> None:
        self.reports.append(text)

    def clear(self) -> None:
        self.clears += 1


class RichProgress:
    """Spinner on a ``rich`` console.

    The spinner only starts on the first report and is torn down on
    ``clear()``.  Nothing is drawn when the console is not a terminal.
    """

    def __init__(self, console: Console | None = None, spinner: str = "dots") -> None:
        self._console = console or Console(stderr=True)
        self._spinner = spinner
        self._status: Status | None = None

    def report(self, text: str) -> None:
        if not self._console.is_terminal:
            return
        if self._status is None:
            self._status = self._console.status(
                f"[cyan]{text}[/cyan]", spinner=self._spinner,
            )
            self._status.start()
        else:
            self._status.update(f"[cyan]{text}[/cyan]")

    def clear(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
