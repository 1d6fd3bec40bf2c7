"""Tests for the per-note indexing pipeline."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from fakes import AsyncFakeSource, FakeProvider, FakeSource

from relnotes.core.errors import DocumentError, EmbeddingError, ErrorCode
from relnotes.index.backend import MemoryBackend
from relnotes.index.fingerprint import hash_text
from relnotes.index.models import IndexedEntry
from relnotes.index.store import LocalIndex
from relnotes.notes.pipeline import IndexOutcome, NoteIndexer


class ExplodingProvider:
    async def embed(self, text: str) -> list[float] | None:
        raise RuntimeError("model crashed")


class GatedProvider(FakeProvider):
    """Holds every embed call until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def embed(self, text: str) -> list[float] | None:
        self.started.set()
        await self.release.wait()
        return await super().embed(text)


@pytest.fixture
def indexer(index: LocalIndex, source: FakeSource, provider: FakeProvider) -> NoteIndexer:
    return NoteIndexer(index, source, provider)


class TestUpsertNote:
    """FETCH -> HASH -> EMBED -> UPSERT."""

    @pytest.mark.asyncio
    async def test_given_new_note_when_upserted_then_stored_normalized_with_hash(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        # Given
        source.notes["a.md"] = "alpha"
        provider.vectors["alpha"] = [3.0, 4.0]

        # When
        outcome = await indexer.upsert_note("a.md")

        # Then
        item = await indexer.index.get_item("a.md")
        assert outcome is IndexOutcome.UPSERTED
        assert item is not None
        assert item.vector.tolist() == pytest.approx([0.6, 0.8])
        assert item.norm == pytest.approx(1.0, abs=1e-6)
        assert item.content_hash == hash_text("alpha")
        assert item.metadata == {"id": "a.md"}

    @pytest.mark.asyncio
    async def test_given_unchanged_note_when_upserted_again_then_skipped(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        """Re-indexing identical text never calls the provider again."""
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")
        first = await indexer.index.get_item("a.md")
        assert first is not None

        # When
        outcome = await indexer.upsert_note("a.md")

        # Then
        second = await indexer.index.get_item("a.md")
        assert outcome is IndexOutcome.SKIPPED
        assert provider.calls == ["alpha"]
        assert second is not None
        assert second.updated_at == first.updated_at

    @pytest.mark.asyncio
    async def test_given_changed_text_when_upserted_then_reembedded(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")

        # When
        source.notes["a.md"] = "alpha, revised"
        outcome = await indexer.upsert_note("a.md")

        # Then
        item = await indexer.index.get_item("a.md")
        assert outcome is IndexOutcome.UPSERTED
        assert provider.calls == ["alpha", "alpha, revised"]
        assert item is not None
        assert item.content_hash == hash_text("alpha, revised")

    @pytest.mark.asyncio
    async def test_given_missing_note_when_upserted_then_no_such_document(
        self, indexer: NoteIndexer
    ) -> None:
        with pytest.raises(DocumentError) as exc_info:
            await indexer.upsert_note("ghost.md")
        assert exc_info.value.code == ErrorCode.NO_SUCH_DOCUMENT
        assert exc_info.value.details == {"id": "ghost.md"}

    @pytest.mark.asyncio
    async def test_given_null_embedding_when_upserted_then_stale_entry_removed(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        """A note that no longer embeds loses its old vector."""
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")
        source.notes["a.md"] = "   "

        # When
        outcome = await indexer.upsert_note("a.md")

        # Then
        assert outcome is IndexOutcome.REMOVED
        assert await indexer.index.get_item("a.md") is None

    @pytest.mark.asyncio
    async def test_given_provider_failure_when_upserted_then_store_untouched(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")
        source.notes["a.md"] = "beta"
        provider.fail_for.add("beta")

        # When
        with pytest.raises(EmbeddingError) as exc_info:
            await indexer.upsert_note("a.md")

        # Then
        item = await indexer.index.get_item("a.md")
        assert exc_info.value.code == ErrorCode.PROVIDER_FAILURE
        assert item is not None
        assert item.content_hash == hash_text("alpha")

    @pytest.mark.asyncio
    async def test_given_provider_raising_plain_error_when_upserted_then_wrapped(
        self, index: LocalIndex, source: FakeSource
    ) -> None:
        source.notes["a.md"] = "alpha"
        indexer = NoteIndexer(index, source, ExplodingProvider())

        with pytest.raises(EmbeddingError) as exc_info:
            await indexer.upsert_note("a.md")

        assert exc_info.value.code == ErrorCode.PROVIDER_FAILURE
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert await index.list_items() == []

    @pytest.mark.asyncio
    async def test_given_concurrent_upserts_of_same_text_when_run_then_one_write(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        """The fingerprint is re-checked under the write lock."""
        # Given
        source.notes["a.md"] = "alpha"
        provider.delay = 0.01

        # When
        outcomes = await asyncio.gather(indexer.upsert_note("a.md"), indexer.upsert_note("a.md"))

        # Then
        assert sorted(o.value for o in outcomes) == ["skipped", "upserted"]
        assert (await indexer.index.get_index_stats()).items == 1

    @pytest.mark.asyncio
    async def test_given_async_source_when_upserted_then_awaited(
        self, index: LocalIndex, provider: FakeProvider
    ) -> None:
        source = AsyncFakeSource({"a.md": "alpha"})
        indexer = NoteIndexer(index, source, provider)

        assert await indexer.upsert_note("a.md") is IndexOutcome.UPSERTED


class TestDeleteAndRename:
    @pytest.mark.asyncio
    async def test_given_indexed_note_when_deleted_then_gone(
        self, indexer: NoteIndexer, source: FakeSource
    ) -> None:
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")

        assert await indexer.delete_note("a.md") is True
        assert await indexer.delete_note("a.md") is False
        assert await indexer.index.get_item("a.md") is None

    @pytest.mark.asyncio
    async def test_given_indexed_note_when_renamed_then_not_reembedded(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> None:
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")
        source.notes = {"b.md": "alpha"}

        # When
        renamed = await indexer.rename_note("a.md", "b.md")
        outcome = await indexer.upsert_note("b.md")

        # Then
        assert renamed is True
        assert outcome is IndexOutcome.SKIPPED
        assert provider.calls == ["alpha"]

    @pytest.mark.asyncio
    async def test_given_unindexed_note_when_renamed_then_false(
        self, indexer: NoteIndexer
    ) -> None:
        assert await indexer.rename_note("a.md", "b.md") is False


class TestWritesRacingForget:
    """Deletes and renames that land while a note is being embedded win."""

    @pytest.mark.asyncio
    async def test_given_delete_during_embed_when_upsert_finishes_then_not_resurrected(
        self, index: LocalIndex, source: FakeSource
    ) -> None:
        # Given
        provider = GatedProvider()
        indexer = NoteIndexer(index, source, provider)
        source.notes["a.md"] = "alpha"
        upsert = asyncio.create_task(indexer.upsert_note("a.md"))
        await provider.started.wait()

        # When
        del source.notes["a.md"]
        removed = await indexer.delete_note("a.md")
        provider.release.set()
        outcome = await upsert

        # Then
        assert removed is False
        assert outcome is IndexOutcome.SUPERSEDED
        assert await index.get_item("a.md") is None
        assert await index.list_items() == []

    @pytest.mark.asyncio
    async def test_given_rename_during_embed_when_upsert_finishes_then_old_id_not_written(
        self, index: LocalIndex, source: FakeSource
    ) -> None:
        # Given
        provider = GatedProvider()
        indexer = NoteIndexer(index, source, provider)
        await index.upsert_item(
            IndexedEntry(id="old.md", vector=[1.0, 0.0], metadata={"id": "old.md"})
        )
        source.notes["old.md"] = "edited"
        upsert = asyncio.create_task(indexer.upsert_note("old.md"))
        await provider.started.wait()

        # When
        source.notes["new.md"] = source.notes.pop("old.md")
        await indexer.rename_note("old.md", "new.md")
        provider.release.set()
        outcome = await upsert

        # Then
        assert outcome is IndexOutcome.SUPERSEDED
        assert [e.id for e in await index.list_items()] == ["new.md"]

    @pytest.mark.asyncio
    async def test_given_deleted_note_when_recreated_and_upserted_then_indexed(
        self, indexer: NoteIndexer, source: FakeSource
    ) -> None:
        """Only runs that began before the delete are discarded."""
        # Given
        source.notes["a.md"] = "alpha"
        await indexer.upsert_note("a.md")
        await indexer.delete_note("a.md")

        # When
        outcome = await indexer.upsert_note("a.md")

        # Then
        assert outcome is IndexOutcome.UPSERTED
        assert await indexer.index.get_item("a.md") is not None


class TestRemoveMissing:
    @pytest.mark.asyncio
    async def test_given_stale_entries_when_pruned_then_removed_in_one_commit(
        self, indexer: NoteIndexer, source: FakeSource, backend: MemoryBackend
    ) -> None:
        # Given
        source.notes = {"a.md": "alpha", "b.md": "beta", "c.md": "gamma"}
        for note_id in source.notes:
            await indexer.upsert_note(note_id)
        writes_before = backend.writes

        # When
        stale = await indexer.remove_missing(["b.md"])

        # Then
        assert stale == ["a.md", "c.md"]
        assert backend.writes == writes_before + 1
        assert [e.id for e in await indexer.index.list_items()] == ["b.md"]

    @pytest.mark.asyncio
    async def test_given_nothing_stale_when_pruned_then_not_persisted(
        self, indexer: NoteIndexer, source: FakeSource, backend: MemoryBackend
    ) -> None:
        source.notes = {"a.md": "alpha"}
        await indexer.upsert_note("a.md")
        writes_before = backend.writes

        assert await indexer.remove_missing({"a.md", "extra.md"}) == []
        assert backend.writes == writes_before


class TestGetSimilarNotes:
    """Related-notes lookup over stored vectors."""

    @pytest_asyncio.fixture
    async def populated(
        self, indexer: NoteIndexer, source: FakeSource, provider: FakeProvider
    ) -> NoteIndexer:
        source.notes = {"a.md": "apple", "b.md": "apricot", "c.md": "carrot"}
        provider.vectors = {
            "apple": [1.0, 0.0],
            "apricot": [0.9, 0.1],
            "carrot": [0.0, 1.0],
            "fruit": [1.0, 0.05],
        }
        for note_id in source.notes:
            await indexer.upsert_note(note_id)
        provider.calls.clear()
        return indexer

    @pytest.mark.asyncio
    async def test_given_indexed_note_when_related_then_self_and_weak_excluded(
        self, populated: NoteIndexer, provider: FakeProvider
    ) -> None:
        # When
        results = await populated.get_similar_notes("a.md")

        # Then
        assert [r.id for r in results] == ["b.md"]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_given_low_min_score_when_related_then_all_others_ranked(
        self, populated: NoteIndexer
    ) -> None:
        results = await populated.get_similar_notes("a.md", min_score=-1.0)
        assert [r.id for r in results] == ["b.md", "c.md"]

    @pytest.mark.asyncio
    async def test_given_limit_when_related_then_capped(self, populated: NoteIndexer) -> None:
        results = await populated.get_similar_notes("a.md", limit=1, min_score=-1.0)
        assert [r.id for r in results] == ["b.md"]

    @pytest.mark.asyncio
    async def test_given_text_only_when_related_then_text_embedded(
        self, populated: NoteIndexer, provider: FakeProvider
    ) -> None:
        results = await populated.get_similar_notes(text="fruit")

        assert [r.id for r in results] == ["a.md", "b.md"]
        assert provider.calls == ["fruit"]

    @pytest.mark.asyncio
    async def test_given_unindexed_note_with_text_when_related_then_text_used(
        self, populated: NoteIndexer
    ) -> None:
        results = await populated.get_similar_notes("new.md", text="fruit")
        assert [r.id for r in results] == ["a.md", "b.md"]

    @pytest.mark.asyncio
    async def test_given_no_query_input_when_related_then_empty(
        self, populated: NoteIndexer
    ) -> None:
        assert await populated.get_similar_notes() == []
        assert await populated.get_similar_notes("new.md") == []

    @pytest.mark.asyncio
    async def test_given_embedding_failure_when_related_then_empty(
        self, populated: NoteIndexer, provider: FakeProvider
    ) -> None:
        provider.fail_for.add("fruit")
        assert await populated.get_similar_notes(text="fruit") == []

    @pytest.mark.asyncio
    async def test_given_zero_limit_when_related_then_empty(self, populated: NoteIndexer) -> None:
        assert await populated.get_similar_notes("a.md", limit=0) == []

    @pytest.mark.asyncio
    async def test_given_manual_entry_when_related_then_scored_by_cosine(
        self, populated: NoteIndexer
    ) -> None:
        await populated.index.upsert_item(IndexedEntry(id="d.md", vector=[0.5, 0.5]))
        results = await populated.get_similar_notes("c.md", min_score=0.5)
        assert [r.id for r in results] == ["d.md"]
