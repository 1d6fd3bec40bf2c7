"""Vault sweeps: reconcile the index with the full set of notes.

A sweep has three phases, each reported through ``on_progress``:

  scan     list the authoritative note ids          {scan, 0, N}
  index    run every note through the pipeline      {index, k, N} after each note
  cleanup  drop entries for notes that are gone     {cleanup, removed, removed}

Per-note failures are counted and logged; they never abort the sweep. A
missing or unreadable index and failed persistence do abort it, because every
later note would fail the same way.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from relnotes.core.errors import ErrorCode, StoreError
from relnotes.index.models import SyncProgress, SyncResult
from relnotes.notes.pipeline import IndexOutcome, NoteIndexer, resolve

log = structlog.get_logger()

ProgressCallback = Callable[[SyncProgress], None]
BatchHook = Callable[[], Awaitable[None]]

DEFAULT_BATCH_SIZE = 25
DEFAULT_CONCURRENCY = 5

# Store failures that hit every note alike. Anything else a single note
# triggers (a bad vector length, say) is counted against that note.
_FATAL_STORE_CODES = frozenset(
    {ErrorCode.INDEX_NOT_FOUND, ErrorCode.INDEX_CORRUPT, ErrorCode.PERSIST_FAILED}
)


async def yield_to_loop() -> None:
    """Default batch hook: let other tasks run."""
    await asyncio.sleep(0)


def _report(on_progress: ProgressCallback | None, event: SyncProgress) -> None:
    if on_progress is None:
        return
    try:
        on_progress(event)
    except Exception:
        log.warning("sync.progress_callback_failed", phase=event.phase, exc_info=True)


async def _index_one(
    indexer: NoteIndexer,
    sem: asyncio.Semaphore,
    note_id: str,
) -> tuple[str, IndexOutcome | None, Exception | None]:
    async with sem:
        try:
            return note_id, await indexer.upsert_note(note_id), None
        except StoreError as e:
            if e.code in _FATAL_STORE_CODES:
                raise
            return note_id, None, e
        except Exception as e:
            return note_id, None, e


async def index_notes(
    indexer: NoteIndexer,
    note_ids: Sequence[str],
    result: SyncResult,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
    on_batch_complete: BatchHook | None = None,
) -> None:
    """Index phase: run each note through the pipeline with bounded concurrency.

    ``processed`` in progress events counts completions, so it rises by one
    per event regardless of which note finished.
    """
    total = len(note_ids)
    hook = on_batch_complete or yield_to_loop
    sem = asyncio.Semaphore(max(1, concurrency))
    tasks = [asyncio.create_task(_index_one(indexer, sem, note_id)) for note_id in note_ids]
    processed = 0
    try:
        for next_done in asyncio.as_completed(tasks):
            note_id, outcome, error = await next_done
            processed += 1
            if error is not None:
                result.failed += 1
                result.errors.append(f"{note_id}: {error}")
                log.warning("sync.document_failed", id=note_id, error=str(error))
            elif outcome is IndexOutcome.UPSERTED:
                result.indexed += 1
            elif outcome is IndexOutcome.REMOVED:
                result.unembeddable += 1
            else:
                # skipped or superseded: nothing written for this note
                result.unchanged += 1

            _report(on_progress, SyncProgress(phase="index", processed=processed, total=total))
            if processed % max(1, batch_size) == 0:
                await hook()
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def sync_vault(
    indexer: NoteIndexer,
    *,
    delete_missing: bool = True,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
    on_batch_complete: BatchHook | None = None,
) -> SyncResult:
    """Incrementally reconcile the index with every note in the source.

    Unchanged notes are skipped by fingerprint. With ``delete_missing``,
    entries for ids the source no longer lists are removed, and the index is
    persisted only if at least one was removed.
    """
    start = time.monotonic()
    note_ids = list(await resolve(indexer.source.list_document_ids()))
    total = len(note_ids)
    result = SyncResult(scanned=total)
    _report(on_progress, SyncProgress(phase="scan", processed=0, total=total))
    log.info("sync.started", notes=total)

    await index_notes(
        indexer,
        note_ids,
        result,
        concurrency=concurrency,
        batch_size=batch_size,
        on_progress=on_progress,
        on_batch_complete=on_batch_complete,
    )

    if delete_missing:
        removed = await indexer.remove_missing(note_ids)
        result.removed = len(removed)
        _report(
            on_progress,
            SyncProgress(phase="cleanup", processed=result.removed, total=result.removed),
        )

    log.info(
        "sync.completed",
        scanned=result.scanned,
        indexed=result.indexed,
        unchanged=result.unchanged,
        removed=result.removed,
        failed=result.failed,
        elapsed_ms=round((time.monotonic() - start) * 1000, 1),
    )
    return result


async def rebuild_index(
    indexer: NoteIndexer,
    *,
    version: int = 1,
    metadata_config: dict[str, Any] | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
    on_batch_complete: BatchHook | None = None,
) -> SyncResult:
    """Drop the whole index, then embed every note from scratch."""
    note_ids = list(await resolve(indexer.source.list_document_ids()))
    result = SyncResult(scanned=len(note_ids))
    _report(on_progress, SyncProgress(phase="scan", processed=0, total=len(note_ids)))

    await indexer.reset_index(version=version, metadata_config=metadata_config)
    log.info("rebuild.started", notes=len(note_ids))

    await index_notes(
        indexer,
        note_ids,
        result,
        concurrency=concurrency,
        batch_size=batch_size,
        on_progress=on_progress,
        on_batch_complete=on_batch_complete,
    )
    log.info("rebuild.completed", indexed=result.indexed, failed=result.failed)
    return result
