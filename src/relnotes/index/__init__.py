"""Embedding index: vector math, fingerprints, the store and its queries."""

from relnotes.index.backend import IndexBackend, JsonFileBackend, MemoryBackend
from relnotes.index.fingerprint import hash_text
from relnotes.index.models import (
    IndexData,
    IndexedEntry,
    IndexStats,
    SimilarityResult,
    SyncProgress,
    SyncResult,
)
from relnotes.index.query import query_similar
from relnotes.index.store import LocalIndex
from relnotes.index.vector import (
    cosine_similarity,
    normalize,
    normalized_cosine_similarity,
    vector_norm,
)

__all__ = [
    "IndexBackend",
    "IndexData",
    "IndexStats",
    "IndexedEntry",
    "JsonFileBackend",
    "LocalIndex",
    "MemoryBackend",
    "SimilarityResult",
    "SyncProgress",
    "SyncResult",
    "cosine_similarity",
    "hash_text",
    "normalize",
    "normalized_cosine_similarity",
    "query_similar",
    "vector_norm",
]
