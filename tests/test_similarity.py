"""
Unit Tests for cosine similarity and ranking.
"""

import numpy as np
import pytest

from tripstreamer.embeddings import text_to_vector
from tripstreamer.retrieval.similarity import cosine_similarity, rank


class TestCosineSimilarity:
    """Test the similarity function."""

    def test_self_similarity_is_one(self):
        for v in [np.array([1.0, 2.0, 3.0]), text_to_vector("cheap Tokyo flight")]:
            assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_symmetric(self):
        a = text_to_vector("Tokyo flights")
        b = text_to_vector("cheap Tokyo flight")
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_zero_vector_scores_zero(self):
        zero = np.zeros(4)
        v = np.array([1.0, 0.0, 0.0, 0.0])
        assert cosine_similarity(zero, v) == 0.0
        assert cosine_similarity(v, zero) == 0.0
        assert cosine_similarity(zero, zero) == 0.0

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_dimension_mismatch_uses_shared_prefix(self):
        # Only the first two components are compared
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 5.0]) == pytest.approx(1.0)

    def test_empty_vectors(self):
        assert cosine_similarity([], [1.0]) == 0.0

    def test_accepts_plain_lists(self):
        assert cosine_similarity([3.0, 4.0], [3.0, 4.0]) == pytest.approx(1.0)


class TestRank:
    """Test ranking of candidates."""

    @pytest.fixture
    def candidates(self):
        return [
            ("far", np.array([0.0, 1.0])),
            ("close", np.array([1.0, 0.1])),
            ("exact", np.array([1.0, 0.0])),
        ]

    def test_sorted_by_descending_score(self, candidates):
        ranked = rank(np.array([1.0, 0.0]), candidates, top_k=3)
        assert [item for item, _ in ranked] == ["exact", "close", "far"]
        scores = [score for _, score in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_truncates_to_top_k(self, candidates):
        assert len(rank(np.array([1.0, 0.0]), candidates, top_k=1)) == 1

    def test_returns_at_most_n(self, candidates):
        assert len(rank(np.array([1.0, 0.0]), candidates, top_k=10)) == 3

    def test_ties_keep_input_order(self):
        same = np.array([1.0, 0.0])
        candidates = [("newest", same), ("middle", same), ("oldest", same)]
        ranked = rank(same, candidates, top_k=3)
        assert [item for item, _ in ranked] == ["newest", "middle", "oldest"]

    def test_no_candidates(self):
        assert rank(np.array([1.0]), [], top_k=3) == []

    def test_non_positive_top_k(self, candidates):
        assert rank(np.array([1.0, 0.0]), candidates, top_k=0) == []
