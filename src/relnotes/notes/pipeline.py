"""Per-note indexing pipeline.

``upsert_note`` runs one note through:

    FETCH_TEXT -> HASH -> (stored hash matches) SKIP
                       -> EMBED -> (None) DELETE stale entry
                                -> (error) propagate, store untouched
                                -> NORMALIZE -> UPSERT

Fetching, hashing and embedding run concurrently across notes. Store writes
are serialized through one asyncio lock. Two things are checked again under
the lock, since either may have changed while this run was embedding: the
stored fingerprint (another run committed the same text), and the note's
generation, which deletes and renames bump so a late write cannot bring a
forgotten id back.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Collection, Sequence
from enum import Enum
from typing import Any, Protocol, TypeVar

import structlog

from relnotes.core.errors import DocumentError, EmbeddingError
from relnotes.embedding.provider import EmbeddingProvider
from relnotes.index.fingerprint import hash_text
from relnotes.index.models import IndexedEntry, SimilarityResult
from relnotes.index.store import LocalIndex
from relnotes.index.vector import Vector, normalize

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_LIMIT = 10
DEFAULT_MIN_SCORE = 0.25


class DocumentSource(Protocol):
    """Where note ids and text come from. Methods may be sync or async."""

    def list_document_ids(self) -> Sequence[str] | Awaitable[Sequence[str]]: ...

    def get_document_text(self, note_id: str) -> str | None | Awaitable[str | None]: ...


async def resolve(value: T | Awaitable[T]) -> T:
    """Await ``value`` if it is awaitable, else return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


class IndexOutcome(Enum):
    """Terminal state of one pipeline run."""

    SKIPPED = "skipped"  # stored fingerprint matched
    UPSERTED = "upserted"
    REMOVED = "removed"  # provider returned no embedding
    SUPERSEDED = "superseded"  # deleted or renamed while embedding


class NoteIndexer:
    """Keeps a LocalIndex in step with a document source."""

    def __init__(
        self,
        index: LocalIndex,
        source: DocumentSource,
        provider: EmbeddingProvider,
    ) -> None:
        self.index = index
        self.source = source
        self.provider = provider
        self.write_lock = asyncio.Lock()
        self._generations: dict[str, int] = {}

    def _forget(self, note_id: str) -> None:
        self._generations[note_id] = self._generations.get(note_id, 0) + 1

    async def _embed(self, text: str) -> list[float] | None:
        try:
            return await self.provider.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError.provider_failure(str(e)) from e

    async def upsert_note(self, note_id: str) -> IndexOutcome:
        """Index one note if its text changed since it was last embedded.

        Raises:
            DocumentError: NO_SUCH_DOCUMENT if the source has no text for the id.
            EmbeddingError: If the provider fails; the store is not modified.
            StoreError: If the index is missing or persisting fails.
        """
        generation = self._generations.get(note_id, 0)
        text = await resolve(self.source.get_document_text(note_id))
        if text is None:
            raise DocumentError.not_found(note_id)

        content_hash = hash_text(text)
        existing = await self.index.get_item(note_id)
        if existing is not None and existing.content_hash == content_hash:
            log.debug("note.unchanged", id=note_id, hash=content_hash)
            return IndexOutcome.SKIPPED

        start = time.monotonic()
        embedding = await self._embed(text)

        async with self.write_lock:
            if self._generations.get(note_id, 0) != generation:
                log.debug("note.superseded", id=note_id)
                return IndexOutcome.SUPERSEDED

            if embedding is None:
                removed = await self.index.delete_item(note_id)
                log.info("note.unembeddable", id=note_id, removed=removed)
                return IndexOutcome.REMOVED

            current = await self.index.get_item(note_id)
            if current is not None and current.content_hash == content_hash:
                log.debug("note.committed_concurrently", id=note_id)
                return IndexOutcome.SKIPPED

            entry = IndexedEntry(
                id=note_id,
                vector=normalize(embedding),
                metadata={"id": note_id},
                content_hash=content_hash,
            )
            await self.index.upsert_item(entry)

        log.debug(
            "note.indexed",
            id=note_id,
            hash=content_hash,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return IndexOutcome.UPSERTED

    async def delete_note(self, note_id: str) -> bool:
        """Remove a note's entry. Returns False if it was not indexed."""
        async with self.write_lock:
            self._forget(note_id)
            removed = await self.index.delete_item(note_id)
        log.debug("note.deleted", id=note_id, removed=removed)
        return removed

    async def rename_note(self, old_id: str, new_id: str) -> bool:
        """Re-key a note's entry without re-embedding. False if nothing was stored."""
        async with self.write_lock:
            if old_id != new_id:
                self._forget(old_id)
            renamed = await self.index.rename_item(old_id, new_id)
        log.debug("note.renamed", old_id=old_id, new_id=new_id, renamed=renamed)
        return renamed

    async def remove_missing(self, live_ids: Collection[str]) -> list[str]:
        """Delete entries whose id is not in ``live_ids`` in one update.

        The index is persisted only when something was removed.
        """
        keep = set(live_ids)
        async with self.write_lock:
            stale = [entry.id for entry in await self.index.list_items() if entry.id not in keep]
            if not stale:
                return []
            await self.index.begin_update()
            try:
                for note_id in stale:
                    await self.index.delete_item(note_id)
            except BaseException:
                self.index.cancel_update()
                raise
            await self.index.end_update()
        log.info("index.pruned", removed=len(stale))
        return stale

    async def reset_index(
        self,
        version: int = 1,
        metadata_config: dict[str, Any] | None = None,
    ) -> None:
        """Drop every entry and recreate an empty index."""
        async with self.write_lock:
            await self.index.create_index(
                version=version, metadata_config=metadata_config, delete_if_exists=True
            )

    async def get_similar_notes(
        self,
        note_id: str | None = None,
        text: str | None = None,
        limit: int = DEFAULT_LIMIT,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> list[SimilarityResult]:
        """Notes most similar to ``note_id`` (preferred) or to ``text``.

        The stored vector is used when ``note_id`` is indexed; otherwise
        ``text`` is embedded. Returns an empty list when no query vector can
        be produced. The queried note never appears in its own results.
        """
        if limit <= 0:
            return []

        query: Vector | None = None
        if note_id is not None:
            entry = await self.index.get_item(note_id)
            if entry is not None:
                query = entry.vector

        if query is None:
            if not text:
                log.debug("related.no_query_vector", id=note_id)
                return []
            try:
                embedding = await self._embed(text)
            except EmbeddingError as e:
                log.warning("related.embed_failed", id=note_id, error=str(e))
                return []
            if embedding is None:
                return []
            query = normalize(embedding)

        top_k = limit + 1 if note_id is not None else limit
        results = await self.index.query_items(query, top_k)
        return [r for r in results if r.id != note_id and r.score >= min_score][:limit]
