"""Note indexing: pipeline, sweeps, debounced scheduling and the facade."""

from relnotes.notes.facade import RelatedNotes
from relnotes.notes.pipeline import DocumentSource, IndexOutcome, NoteIndexer
from relnotes.notes.scheduler import DebouncedScheduler
from relnotes.notes.sync import rebuild_index, sync_vault

__all__ = [
    "DebouncedScheduler",
    "DocumentSource",
    "IndexOutcome",
    "NoteIndexer",
    "RelatedNotes",
    "rebuild_index",
    "sync_vault",
]
