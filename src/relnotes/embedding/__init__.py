"""Embedding providers."""

from relnotes.embedding.provider import (
    EmbeddingProvider,
    FastEmbedProvider,
    HashEmbeddingProvider,
    build_provider,
)

__all__ = [
    "EmbeddingProvider",
    "FastEmbedProvider",
    "HashEmbeddingProvider",
    "build_provider",
]
