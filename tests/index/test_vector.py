"""Tests for vector math primitives."""

from __future__ import annotations

import math

import numpy as np
import pytest

from relnotes.core.errors import ErrorCode, StoreError
from relnotes.index.vector import (
    batch_cosine_similarity,
    cosine_similarity,
    normalize,
    normalized_cosine_similarity,
    vector_norm,
)


class TestNormalize:
    """normalize() scales to unit length."""

    @pytest.mark.parametrize(
        "vec",
        [
            [3.0, 4.0],
            [1.0, 0.0, 0.0],
            [-2.5, 0.1, 7.0, 3.3],
            [1e-3, 2e-3],
        ],
    )
    def test_given_nonzero_vector_when_normalized_then_unit_norm(self, vec: list[float]) -> None:
        """Nonzero vectors come out with L2 norm 1.0."""
        # When
        result = normalize(vec)

        # Then
        assert float(np.linalg.norm(result)) == pytest.approx(1.0, abs=1e-6)

    def test_given_zero_vector_when_normalized_then_unchanged(self) -> None:
        """The zero vector has no direction and is returned as is."""
        # Given
        zero = [0.0, 0.0, 0.0]

        # When
        result = normalize(zero)

        # Then
        assert result.tolist() == [0.0, 0.0, 0.0]

    def test_given_vector_when_normalized_then_direction_kept(self) -> None:
        """Components keep their ratio."""
        result = normalize([3.0, 4.0])
        assert result.tolist() == pytest.approx([0.6, 0.8])

    def test_given_vector_when_normalized_then_input_not_mutated(self) -> None:
        """normalize returns a new array."""
        original = np.array([3.0, 4.0], dtype=np.float32)
        normalize(original)
        assert original.tolist() == [3.0, 4.0]


class TestCosineSimilarity:
    """cosine_similarity() and its precomputed-norm variant."""

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ([1.0, 2.0, 3.0], [4.0, -5.0, 6.0]),
            ([0.3, 0.3], [-1.0, 2.0]),
            ([1.0, 0.0], [0.0, 1.0]),
        ],
    )
    def test_given_two_vectors_when_compared_then_symmetric(
        self, a: list[float], b: list[float]
    ) -> None:
        """Order of arguments does not matter."""
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    @pytest.mark.parametrize("vec", [[1.0, 2.0], [-3.0, 0.5, 9.0], [1e-4, 1e-4]])
    def test_given_nonzero_vector_when_compared_to_itself_then_one(self, vec: list[float]) -> None:
        """Self-similarity is 1.0."""
        assert cosine_similarity(vec, vec) == pytest.approx(1.0, abs=1e-6)

    def test_given_different_lengths_when_compared_then_dimension_mismatch(self) -> None:
        """Mismatched lengths raise DIMENSION_MISMATCH."""
        with pytest.raises(StoreError) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH
        assert exc_info.value.details == {"expected": 2, "got": 3}

    def test_given_zero_vector_when_compared_then_zero_not_nan(self) -> None:
        """Similarity with a zero vector is defined as 0.0."""
        result = cosine_similarity([0.0, 0.0], [1.0, 1.0])
        assert result == 0.0
        assert not math.isnan(result)

    def test_given_orthogonal_vectors_when_compared_then_zero(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_given_opposite_vectors_when_compared_then_minus_one(self) -> None:
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_given_precomputed_norms_when_compared_then_matches_plain(self) -> None:
        """The precomputed-norm variant agrees with the plain form."""
        a = [1.0, 2.0, 2.0]
        b = [2.0, 0.0, 1.0]
        result = normalized_cosine_similarity(a, vector_norm(a), b, vector_norm(b))
        assert result == pytest.approx(cosine_similarity(a, b))

    def test_given_zero_precomputed_norm_when_compared_then_zero(self) -> None:
        assert normalized_cosine_similarity([1.0, 1.0], 0.0, [1.0, 1.0], 1.4) == 0.0


class TestBatchCosineSimilarity:
    """Vectorised scoring used by the query engine."""

    def test_given_matrix_when_scored_then_matches_pairwise(self) -> None:
        """Each row scores the same as a pairwise comparison."""
        # Given
        rows = [[1.0, 0.0], [0.0, 2.0], [3.0, 3.0]]
        matrix = np.array(rows, dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1).astype(np.float32)
        query = np.array([1.0, 1.0], dtype=np.float32)

        # When
        scores = batch_cosine_similarity(matrix, norms, query, vector_norm(query))

        # Then
        expected = [cosine_similarity(row, query) for row in rows]
        assert scores.tolist() == pytest.approx(expected)

    def test_given_zero_row_when_scored_then_zero(self) -> None:
        matrix = np.array([[0.0, 0.0], [1.0, 0.0]], dtype=np.float32)
        norms = np.array([0.0, 1.0], dtype=np.float32)
        scores = batch_cosine_similarity(matrix, norms, np.array([1.0, 0.0], np.float32), 1.0)
        assert scores.tolist() == pytest.approx([0.0, 1.0])

    def test_given_wrong_query_length_when_scored_then_dimension_mismatch(self) -> None:
        matrix = np.ones((2, 3), dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1).astype(np.float32)
        with pytest.raises(StoreError):
            batch_cosine_similarity(matrix, norms, np.ones(2, dtype=np.float32), 1.0)
