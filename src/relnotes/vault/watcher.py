"""Vault watcher using watchfiles for async filesystem monitoring.

Created and modified notes are handed to ``on_upsert`` (normally the
facade's debounced ``schedule_upsert``); deleted notes go to ``on_delete``.
Debouncing lives downstream, so every event is forwarded as it arrives.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from watchfiles import Change, awatch

from relnotes.core.logging import request_scope
from relnotes.vault.source import FileSystemVault

logger = structlog.get_logger()


@dataclass
class VaultWatcher:
    """Watches a vault directory and forwards note changes."""

    vault: FileSystemVault
    on_upsert: Callable[[str], None]
    on_delete: Callable[[str], Awaitable[object]]

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def _accept(self, _change: Change, path: str) -> bool:
        return self.vault.is_note_path(Path(path))

    async def start(self) -> None:
        """Start watching for note changes."""
        if self._watch_task is not None:
            return
        self._stop_event.clear()
        self._watch_task = asyncio.create_task(self._watch_loop())
        logger.info("vault_watcher_started", root=str(self.vault.root))

    async def stop(self) -> None:
        """Stop watching."""
        self._stop_event.set()
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._watch_task, timeout=2.0)
            self._watch_task = None
        logger.info("vault_watcher_stopped")

    async def wait(self) -> None:
        """Block until the watcher stops."""
        if self._watch_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task

    async def handle_changes(self, changes: set[tuple[Change, str]]) -> None:
        """Dispatch one batch of raw watchfiles changes under its own request id."""
        with request_scope("watch"):
            for change, raw_path in sorted(changes, key=lambda c: c[1]):
                path = Path(raw_path)
                if not self.vault.is_note_path(path):
                    continue
                note_id = self.vault.note_id(path)
                if change == Change.deleted:
                    logger.debug("vault_note_deleted", id=note_id)
                    await self.on_delete(note_id)
                else:
                    logger.debug("vault_note_changed", id=note_id, change=change.name)
                    self.on_upsert(note_id)

    async def _watch_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    async for changes in awatch(
                        self.vault.root,
                        watch_filter=self._accept,
                        stop_event=self._stop_event,
                        ignore_permission_denied=True,
                    ):
                        await self.handle_changes(changes)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if self._stop_event.is_set():
                        return
                    logger.error("watcher_error", error=str(e))
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass
