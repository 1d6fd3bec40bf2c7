"""Debounced per-key work scheduling.

Each key (a note id) has at most one pending timer. Scheduling a key again
cancels its timer and starts a new one, so a burst of edits runs the work
once, for the latest state. Expired keys go to a queue drained by a single
worker; keys that expire while the worker is busy join the same drain loop
instead of starting a second one.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

DEFAULT_DEBOUNCE_SEC = 5.0


class DebouncedScheduler:
    """Runs ``handler(key)`` once per burst of ``schedule(key)`` calls."""

    def __init__(
        self,
        handler: Callable[[str], Awaitable[object]],
        delay: float = DEFAULT_DEBOUNCE_SEC,
    ) -> None:
        self._handler = handler
        self.delay = delay
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._queue: dict[str, None] = {}  # ordered set of ready keys
        self._draining = False
        self._drain_task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopped = False

    @property
    def draining(self) -> bool:
        return self._draining

    def pending_keys(self) -> list[str]:
        """Keys waiting on a timer or in the ready queue."""
        return list(dict.fromkeys([*self._timers, *self._queue]))

    def schedule(self, key: str) -> None:
        """(Re)start the debounce timer for ``key``."""
        if self._stopped:
            return
        existing = self._timers.pop(key, None)
        if existing is not None and not existing.done():
            existing.cancel()
        self._idle.clear()
        self._timers[key] = asyncio.get_running_loop().create_task(self._expire(key))
        logger.debug("debounce_scheduled", key=key, delay=self.delay)

    def cancel(self, key: str) -> bool:
        """Drop a pending request for ``key``. Returns True if one was pending."""
        was_queued = key in self._queue
        self._queue.pop(key, None)
        timer = self._timers.pop(key, None)
        was_timed = timer is not None and not timer.done()
        if timer is not None:
            timer.cancel()
        self._update_idle()
        return was_queued or was_timed

    async def _expire(self, key: str) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        self._enqueue(key)

    def _enqueue(self, key: str) -> None:
        self._queue[key] = None
        if self._draining:
            logger.debug("debounce_deferred", key=key)
            return
        self._draining = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                key = next(iter(self._queue))
                del self._queue[key]
                try:
                    await self._handler(key)
                except Exception as e:
                    logger.error("debounced_run_failed", key=key, error=str(e))
        finally:
            self._draining = False
            self._update_idle()

    def _update_idle(self) -> None:
        if not self._timers and not self._queue and not self._draining:
            self._idle.set()

    async def flush(self) -> None:
        """Wait until no timers are pending and the queue is drained."""
        await self._idle.wait()

    async def run_pending_now(self) -> None:
        """Skip the remaining debounce delay for every pending key."""
        for key, timer in list(self._timers.items()):
            timer.cancel()
            del self._timers[key]
            self._enqueue(key)
        await self.flush()

    async def stop(self) -> None:
        """Cancel timers and wait for an in-flight drain to finish its current item."""
        self._stopped = True
        timers = list(self._timers.values())
        self._timers.clear()
        self._queue.clear()
        for timer in timers:
            timer.cancel()
        for timer in timers:
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if self._drain_task is not None and not self._drain_task.done():
            await self._drain_task
        self._update_idle()
        logger.debug("debounce_stopped", cancelled=len(timers))
