"""LocalIndex: in-memory embedding store with begin/end update protocol.

Readers always see the last committed snapshot. Writers open one update at
a time with ``begin_update``, mutate a private working copy, and publish it
with ``end_update``, which persists the whole index to the backend before
swapping the snapshot. Single-item writes open and close an update
themselves when none is in flight.

Lifecycle:
  - create_index()   -> initialize backend storage and load it
  - begin_update()   -> open a working copy
  - insert/upsert/delete/rename_item() -> mutate the working copy
  - end_update()     -> persist and publish
  - cancel_update()  -> discard the working copy
  - drop_index()     -> delete everything, including backend storage
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

import structlog

from relnotes.core.errors import StoreError
from relnotes.index.backend import IndexBackend
from relnotes.index.filters import MetadataFilter, matches
from relnotes.index.models import IndexData, IndexedEntry, IndexStats, SimilarityResult, utc_now
from relnotes.index.query import query_similar
from relnotes.index.vector import Vector

log = structlog.get_logger()


class LocalIndex:
    """Embedding index backed by a whole-document persistence backend."""

    def __init__(self, backend: IndexBackend) -> None:
        self._backend = backend
        self._data: IndexData | None = None
        self._update: IndexData | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_index(
        self,
        version: int = 1,
        metadata_config: dict[str, Any] | None = None,
        delete_if_exists: bool = False,
    ) -> None:
        """Create an empty index.

        Raises:
            StoreError: INDEX_ALREADY_EXISTS unless ``delete_if_exists``, which
                drops whatever storage is there first, readable or not.
        """
        if delete_if_exists:
            await self.drop_index()
        elif await self.is_index_created():
            raise StoreError.already_exists()

        data = IndexData(version=version, metadata_config=dict(metadata_config or {}))
        try:
            await self._backend.initialize_index(data)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError.persist_failed(str(e)) from e
        await self._load()
        log.info("index.created", version=version)

    async def is_index_created(self) -> bool:
        if self._data is not None:
            return True
        return await self._backend.index_initialized()

    async def drop_index(self) -> None:
        """Discard all entries and the backing storage."""
        self._data = None
        self._update = None
        await self._backend.drop_index()
        log.info("index.dropped")

    async def _load(self) -> IndexData:
        if self._data is None:
            if not await self._backend.index_initialized():
                raise StoreError.not_found()
            self._data = await self._backend.retrieve_index()
            log.debug("index.loaded", items=len(self._data.items))
        return self._data

    async def load(self) -> None:
        """Load the committed snapshot from the backend.

        Raises:
            StoreError: INDEX_NOT_FOUND if the index was never created.
        """
        await self._load()

    # ------------------------------------------------------------------
    # Update protocol
    # ------------------------------------------------------------------

    @property
    def update_in_progress(self) -> bool:
        return self._update is not None

    async def begin_update(self) -> None:
        """Open a working copy of the committed snapshot.

        Raises:
            StoreError: UPDATE_IN_PROGRESS if another update is open,
                INDEX_NOT_FOUND if the index does not exist.
        """
        if self._update is not None:
            raise StoreError.update_in_progress()
        data = await self._load()
        # Re-check: another writer may have begun while we were loading.
        if self._update is not None:
            raise StoreError.update_in_progress()
        self._update = data.clone()

    async def end_update(self) -> None:
        """Persist the working copy and publish it as the committed snapshot.

        On a persistence failure the working copy is discarded and the
        committed snapshot is left as it was.

        Raises:
            StoreError: NO_UPDATE_IN_PROGRESS without a prior begin_update,
                PERSIST_FAILED if the backend write fails.
        """
        if self._update is None:
            raise StoreError.no_update_in_progress()
        working = self._update
        start = time.monotonic()
        try:
            await self._backend.update_index(working)
        except Exception as e:
            self._update = None
            log.error("index.persist_failed", error=str(e))
            raise StoreError.persist_failed(str(e)) from e
        self._data = working
        self._update = None
        log.debug(
            "index.commit",
            items=len(working.items),
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )

    def cancel_update(self) -> None:
        """Discard the working copy without persisting."""
        self._update = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _check_dimension(data: IndexData, entry: IndexedEntry) -> None:
        # All stored vectors share one length, so any other entry is representative.
        other = next((e for e in data.items.values() if e.id != entry.id), None)
        if other is not None and other.dimension != entry.dimension:
            raise StoreError.dimension_mismatch(other.dimension, entry.dimension)

    async def _apply(self, mutate: Any) -> Any:
        """Run ``mutate`` on the working copy, auto-wrapping begin/end if needed."""
        if self._update is not None:
            return mutate(self._update)
        await self.begin_update()
        working = self._update
        if working is None:
            raise StoreError.no_update_in_progress()
        try:
            result = mutate(working)
        except BaseException:
            self.cancel_update()
            raise
        await self.end_update()
        return result

    async def insert_item(self, entry: IndexedEntry) -> IndexedEntry:
        """Insert a new entry.

        Raises:
            StoreError: DUPLICATE_ID if the id is already present,
                DIMENSION_MISMATCH if the vector length differs from the store's.
        """

        def mutate(data: IndexData) -> IndexedEntry:
            if entry.id in data.items:
                raise StoreError.duplicate_id(entry.id)
            self._check_dimension(data, entry)
            stored = entry.copy()
            data.items[entry.id] = stored
            return stored.copy()

        result: IndexedEntry = await self._apply(mutate)
        return result

    async def upsert_item(self, entry: IndexedEntry) -> IndexedEntry:
        """Insert or overwrite the entry with ``entry.id``."""

        def mutate(data: IndexData) -> IndexedEntry:
            self._check_dimension(data, entry)
            stored = entry.copy()
            data.items[entry.id] = stored
            return stored.copy()

        result: IndexedEntry = await self._apply(mutate)
        return result

    async def delete_item(self, item_id: str) -> bool:
        """Remove an entry. Returns False when the id was not present."""

        def mutate(data: IndexData) -> bool:
            return data.items.pop(item_id, None) is not None

        removed: bool = await self._apply(mutate)
        return removed

    async def rename_item(self, old_id: str, new_id: str) -> bool:
        """Re-key an entry without touching its vector.

        The entry keeps its scan position and its ``metadata["id"]`` is
        rewritten. An existing entry under ``new_id`` is replaced. Returns
        False when nothing is stored under ``old_id``.
        """
        if old_id == new_id:
            return (await self._load()).items.get(old_id) is not None

        def mutate(data: IndexData) -> bool:
            entry = data.items.get(old_id)
            if entry is None:
                return False
            metadata = dict(entry.metadata)
            if "id" in metadata:
                metadata["id"] = new_id
            renamed = replace(entry, id=new_id, metadata=metadata, updated_at=utc_now())
            data.items.pop(new_id, None)
            data.items = {
                (new_id if key == old_id else key): (renamed if key == old_id else value)
                for key, value in data.items.items()
            }
            return True

        renamed_ok: bool = await self._apply(mutate)
        return renamed_ok

    # ------------------------------------------------------------------
    # Reads (committed snapshot only)
    # ------------------------------------------------------------------

    async def get_item(self, item_id: str) -> IndexedEntry | None:
        entry = (await self._load()).items.get(item_id)
        return entry.copy() if entry is not None else None

    async def list_items(self) -> list[IndexedEntry]:
        return [entry.copy() for entry in (await self._load()).items.values()]

    async def list_items_by_metadata(self, flt: MetadataFilter) -> list[IndexedEntry]:
        return [
            entry.copy()
            for entry in (await self._load()).items.values()
            if matches(entry.metadata, flt)
        ]

    async def query_items(
        self,
        vector: Sequence[float] | Vector,
        top_k: int,
        flt: MetadataFilter | None = None,
    ) -> list[SimilarityResult]:
        """Top-K cosine search over the committed snapshot."""
        data = await self._load()
        return query_similar(data.items.values(), vector, top_k, flt)

    async def get_index_stats(self) -> IndexStats:
        data = await self._load()
        return IndexStats(
            version=data.version,
            metadata_config=dict(data.metadata_config),
            items=len(data.items),
        )
