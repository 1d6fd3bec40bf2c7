"""Vector math primitives: norm, normalize, cosine similarity.

Vectors are accepted as any float sequence and handled as float32 numpy
arrays. The zero vector has no direction: ``normalize`` returns it
unchanged and every similarity involving it is exactly ``0.0``.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

from relnotes.core.errors import StoreError

Vector = npt.NDArray[np.float32]


def as_vector(values: Sequence[float] | Vector) -> Vector:
    """Coerce a float sequence to a 1-D float32 array."""
    arr = np.asarray(values, dtype=np.float32)
    if arr.ndim != 1:
        raise ValueError(f"expected a 1-D vector, got shape {arr.shape}")
    return arr


def vector_norm(values: Sequence[float] | Vector) -> float:
    """L2 norm of a vector."""
    return float(np.linalg.norm(as_vector(values)))


def normalize(values: Sequence[float] | Vector) -> Vector:
    """Scale a vector to unit length; the zero vector is returned unchanged."""
    vec = as_vector(values)
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        return vec.copy()
    return (vec / norm).astype(np.float32)


def _check_dims(a: Vector, b: Vector) -> None:
    if a.shape[0] != b.shape[0]:
        raise StoreError.dimension_mismatch(int(a.shape[0]), int(b.shape[0]))


def cosine_similarity(a: Sequence[float] | Vector, b: Sequence[float] | Vector) -> float:
    """Cosine similarity of two equal-length vectors.

    Raises:
        StoreError: DIMENSION_MISMATCH when the lengths differ.
    """
    va = as_vector(a)
    vb = as_vector(b)
    _check_dims(va, vb)
    return normalized_cosine_similarity(
        va, float(np.linalg.norm(va)), vb, float(np.linalg.norm(vb))
    )


def normalized_cosine_similarity(
    a: Sequence[float] | Vector,
    norm_a: float,
    b: Sequence[float] | Vector,
    norm_b: float,
) -> float:
    """Cosine similarity using precomputed norms."""
    va = as_vector(a)
    vb = as_vector(b)
    _check_dims(va, vb)
    denom = norm_a * norm_b
    if denom == 0.0:
        return 0.0
    return float(np.dot(va.astype(np.float64), vb.astype(np.float64)) / denom)


def batch_cosine_similarity(
    matrix: npt.NDArray[np.float32],
    norms: npt.NDArray[np.float32],
    query: Vector,
    query_norm: float,
) -> npt.NDArray[np.float64]:
    """Score every row of ``matrix`` against ``query`` with precomputed norms.

    Rows whose norm is zero (or a zero query) score ``0.0``.
    """
    if matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.shape[1] != query.shape[0]:
        raise StoreError.dimension_mismatch(int(matrix.shape[1]), int(query.shape[0]))
    dots = matrix.astype(np.float64) @ query.astype(np.float64)
    denom = norms.astype(np.float64) * float(query_norm)
    scores = np.zeros_like(dots)
    np.divide(dots, denom, out=scores, where=denom != 0.0)
    return scores
