"""RelatedNotes: the operations a host application calls.

Wires together the index store, the document source, the embedding
provider, the per-note pipeline and the debounced scheduler.

Usage::

    notes = RelatedNotes.for_vault(Path("~/vault").expanduser())
    await notes.start()
    related = await notes.get_similar_notes(note_id="projects/plan.md")
    await notes.stop()
"""

from __future__ import annotations

from pathlib import Path

import structlog

from relnotes.config.loader import get_index_path, load_config
from relnotes.config.models import RelNotesConfig
from relnotes.core.errors import RelNotesError
from relnotes.embedding.provider import EmbeddingProvider, build_provider
from relnotes.index.backend import JsonFileBackend
from relnotes.index.models import IndexStats, SimilarityResult, SyncResult
from relnotes.index.store import LocalIndex
from relnotes.notes.pipeline import DocumentSource, IndexOutcome, NoteIndexer, resolve
from relnotes.notes.scheduler import DebouncedScheduler
from relnotes.notes.sync import BatchHook, ProgressCallback, rebuild_index, sync_vault
from relnotes.vault.source import FileSystemVault

log = structlog.get_logger()


class RelatedNotes:
    """Facade over indexing, syncing and related-note queries."""

    def __init__(
        self,
        index: LocalIndex,
        source: DocumentSource,
        provider: EmbeddingProvider,
        config: RelNotesConfig | None = None,
    ) -> None:
        self.config = config or RelNotesConfig()
        self.index = index
        self.source = source
        self.provider = provider
        self.indexer = NoteIndexer(index, source, provider)
        self.scheduler = DebouncedScheduler(
            self._run_scheduled, delay=self.config.indexer.debounce_sec
        )

    @classmethod
    def for_vault(cls, vault_root: Path, config: RelNotesConfig | None = None) -> RelatedNotes:
        """Build a facade over a vault directory with a JSON index file."""
        config = config or load_config(vault_root)
        vault = FileSystemVault(
            vault_root,
            extensions=config.vault.extensions,
            ignored_dirs=config.vault.ignored_dirs,
        )
        index = LocalIndex(JsonFileBackend(get_index_path(vault_root, config)))
        return cls(index, vault, build_provider(config.embedding), config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_index(self) -> None:
        """Create the index if it does not exist yet."""
        if not await self.index.is_index_created():
            await self.index.create_index(
                version=self.config.index.version,
                metadata_config=self._metadata_config(),
            )
        else:
            await self.index.load()

    async def start(self) -> SyncResult | None:
        """Prepare the index and provider; sync when the index starts out empty.

        Returns the sync summary when an initial sync ran.
        """
        await self.ensure_index()
        ready = getattr(self.provider, "ready", None)
        if ready is not None:
            await ready()
        log.info("related_notes_started")
        if self.config.indexer.sync_on_start and await self.is_index_empty():
            return await self.sync_vault_to_index()
        return None

    async def stop(self) -> None:
        """Cancel pending re-index timers and release the provider."""
        await self.scheduler.stop()
        unload = getattr(self.provider, "unload", None)
        if unload is not None:
            unload()
        log.info("related_notes_stopped")

    def _metadata_config(self) -> dict[str, list[str]]:
        indexed = self.config.index.indexed_metadata
        return {"indexed": list(indexed)} if indexed else {}

    # ------------------------------------------------------------------
    # Single-note operations
    # ------------------------------------------------------------------

    async def upsert_note_to_index(self, note_id: str) -> IndexOutcome:
        """Index one note now. Failures propagate to the caller."""
        return await self.indexer.upsert_note(note_id)

    def schedule_upsert(self, note_id: str) -> None:
        """Re-index a note after the debounce window; repeated calls coalesce."""
        self.scheduler.schedule(note_id)

    async def _run_scheduled(self, note_id: str) -> None:
        try:
            await self.indexer.upsert_note(note_id)
        except RelNotesError as e:
            log.warning("scheduled_upsert_failed", id=note_id, error=str(e))

    async def delete_note(self, note_id: str) -> bool:
        """Forget a note. Returns False if it was not indexed."""
        self.scheduler.cancel(note_id)
        return await self.indexer.delete_note(note_id)

    async def rename_note(self, old_id: str, new_id: str) -> bool:
        """Move a note's entry to its new id, keeping its vector.

        A pending re-index of the old id moves with it. Returns False if
        nothing was stored under ``old_id``.
        """
        moved_pending = old_id in self.scheduler.pending_keys()
        self.scheduler.cancel(old_id)
        renamed = await self.indexer.rename_note(old_id, new_id)
        if moved_pending:
            self.schedule_upsert(new_id)
        return renamed

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def sync_vault_to_index(
        self,
        *,
        delete_missing: bool | None = None,
        batch_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        on_batch_complete: BatchHook | None = None,
    ) -> SyncResult:
        cfg = self.config.indexer
        return await sync_vault(
            self.indexer,
            delete_missing=cfg.delete_missing if delete_missing is None else delete_missing,
            batch_size=batch_size or cfg.batch_size,
            concurrency=cfg.concurrency,
            on_progress=on_progress,
            on_batch_complete=on_batch_complete,
        )

    async def rebuild_vault_index(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        on_batch_complete: BatchHook | None = None,
    ) -> SyncResult:
        cfg = self.config.indexer
        return await rebuild_index(
            self.indexer,
            version=self.config.index.version,
            metadata_config=self._metadata_config(),
            batch_size=cfg.batch_size,
            concurrency=cfg.concurrency,
            on_progress=on_progress,
            on_batch_complete=on_batch_complete,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_similar_notes(
        self,
        note_id: str | None = None,
        text: str | None = None,
        limit: int | None = None,
        min_score: float | None = None,
    ) -> list[SimilarityResult]:
        """Related notes for a note or a text. Never raises; [] on any failure."""
        query = self.config.query
        try:
            return await self.indexer.get_similar_notes(
                note_id=note_id,
                text=text,
                limit=query.limit if limit is None else limit,
                min_score=query.min_score if min_score is None else min_score,
            )
        except RelNotesError as e:
            log.warning("related_query_failed", id=note_id, error=str(e))
            return []

    async def is_index_empty(self) -> bool:
        if not await self.index.is_index_created():
            return True
        return (await self.index.get_index_stats()).items == 0

    async def get_index_stats(self) -> IndexStats:
        return await self.index.get_index_stats()

    async def get_clean_note_text(self, note_id: str) -> str:
        """A note's cleaned text, or "" if it does not exist."""
        text = await resolve(self.source.get_document_text(note_id))
        return (text or "").strip()

    async def is_note_empty(self, note_id: str) -> bool:
        return not await self.get_clean_note_text(note_id)
