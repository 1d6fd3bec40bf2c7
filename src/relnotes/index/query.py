"""Exact top-K similarity search over index entries.

Linear scan with cosine scores from precomputed norms. Corpus sizes are in
the thousands, so no ANN structure is maintained.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from relnotes.index.filters import MetadataFilter, matches
from relnotes.index.models import IndexedEntry, SimilarityResult
from relnotes.index.vector import Vector, as_vector, batch_cosine_similarity


def query_similar(
    entries: Iterable[IndexedEntry],
    query_vector: Sequence[float] | Vector,
    top_k: int,
    flt: MetadataFilter | None = None,
) -> list[SimilarityResult]:
    """Return up to ``top_k`` entries ordered by descending cosine score.

    Ties keep scan order. An empty candidate set or ``top_k <= 0`` yields
    an empty list.

    Raises:
        StoreError: DIMENSION_MISMATCH if the query and stored vectors differ
            in length.
        ValueError: If the filter uses an unknown operator.
    """
    if top_k <= 0:
        return []
    candidates = [e for e in entries if matches(e.metadata, flt)]
    if not candidates:
        return []

    query = as_vector(query_vector)
    query_norm = float(np.linalg.norm(query))

    matrix = np.stack([e.vector for e in candidates])
    norms = np.fromiter((e.norm for e in candidates), dtype=np.float32, count=len(candidates))
    scores = batch_cosine_similarity(matrix, norms, query, query_norm)

    order = np.argsort(-scores, kind="stable")[:top_k]
    return [SimilarityResult(id=candidates[i].id, score=float(scores[i])) for i in order]
