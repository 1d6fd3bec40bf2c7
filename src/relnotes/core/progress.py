"""User-facing progress feedback for CLI operations.

Design principles:
- Single line updates, no spam
- Graceful degradation in non-TTY (CI, pipes)
- Suppress structlog console output during live displays

Usage::

    from relnotes.core.progress import status, spinner, sync_progress

    status("Index synced", style="success")  # ✓ Index synced

    with spinner("Loading embedding model"):
        await facade.start()

    with sync_progress() as bar:
        await facade.sync_vault_to_index(on_progress=bar.update)
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TaskProgressColumn, TextColumn

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from relnotes.index.models import SyncProgress

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_suppress_console_logs = threading.local()


def is_console_suppressed() -> bool:
    """Check if console logging is currently suppressed."""
    return getattr(_suppress_console_logs, "active", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Suppress structlog console output while a live display is on screen."""
    _suppress_console_logs.active = True
    try:
        yield
    finally:
        _suppress_console_logs.active = False


def _get_logger() -> BoundLogger:
    from relnotes.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 note" / "3 notes" style phrases."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Spinner with log suppression; plain line when not a TTY."""
    padding = " " * indent
    if _is_tty():
        with (
            suppress_console_logs(),
            _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"),
        ):
            yield
    else:
        _console.print(f"{padding}{message}...")
        yield


class SyncProgressBar:
    """Renders sync progress callbacks as a single progress bar.

    ``update`` is a plain synchronous callback so it can be handed directly
    to ``sync_vault`` as ``on_progress``; it only mutates Rich state and
    never blocks the indexing loop.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or _console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._phase: str | None = None

    def update(self, event: SyncProgress) -> None:
        if self._progress is None:
            return
        if event.phase != self._phase:
            self._phase = event.phase
            if self._task_id is not None:
                self._progress.remove_task(self._task_id)
            self._task_id = self._progress.add_task(
                event.phase.capitalize(), total=max(event.total, 1)
            )
        assert self._task_id is not None
        self._progress.update(self._task_id, completed=event.processed, total=max(event.total, 1))

    def __enter__(self) -> SyncProgressBar:
        if _is_tty():
            _suppress_console_logs.active = True
            self._progress = Progress(
                TextColumn("    {task.description}:"),
                BarColumn(bar_width=25, style="cyan", complete_style="cyan"),
                TaskProgressColumn(),
                TextColumn("{task.completed}/{task.total} notes"),
                console=self._console,
                transient=True,
            )
            self._progress.__enter__()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
        _suppress_console_logs.active = False


def sync_progress(console: Console | None = None) -> SyncProgressBar:
    """Create a progress bar for a vault sweep."""
    return SyncProgressBar(console=console)
