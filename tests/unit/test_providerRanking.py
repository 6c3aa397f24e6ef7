"""
Unit tests for the provider ranking algorithm.
"""

import uuid
from decimal import Decimal

import pytest

from homeserve.algorithms.providerRanking import (
    RankingCandidate,
    SortStrategy,
    compute_relevance,
    rank_candidates,
)


def _candidate(n, distance, match=0, price=None):
    provider_id = uuid.UUID(int=n)
    return RankingCandidate(
        candidate={"id": n},
        provider_id=provider_id,
        distance_km=distance,
        match_score=match,
        total_price=Decimal(price) if price is not None else None,
    )


@pytest.fixture
def candidates():
    return [
        _candidate(1, 4.0, match=100, price="9000"),
        _candidate(2, 1.0, match=0, price="12000"),
        _candidate(3, 2.5, match=50, price="9000"),
    ]


class TestComputeRelevance:
    """Composite relevance score."""

    def test_zero_distance_full_match_is_100(self):
        assert compute_relevance(0.0, 100)[2] == pytest.approx(100.0)

    def test_far_and_unmatched_is_zero(self):
        assert compute_relevance(50.0, 0)[2] == pytest.approx(0.0)

    def test_unknown_distance_scores_zero_distance_component(self):
        score_distance, _, _ = compute_relevance(None, 100)
        assert score_distance == 0.0

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            compute_relevance(1.0, 50, {"distance": 0.7, "match_score": 0.7})


class TestRankCandidates:
    """Orderings under each strategy."""

    def test_distance_is_default(self, candidates):
        ranked = rank_candidates(candidates)
        assert [r.provider_id.int for r in ranked] == [2, 3, 1]

    def test_ranks_are_one_based_and_contiguous(self, candidates):
        ranked = rank_candidates(candidates, SortStrategy.RELEVANCE)
        assert [r.search_rank for r in ranked] == [1, 2, 3]

    def test_price_ties_break_on_distance(self, candidates):
        ranked = rank_candidates(candidates, "price")
        assert [r.provider_id.int for r in ranked] == [3, 1, 2]

    def test_rating_orders_by_match_score(self, candidates):
        ranked = rank_candidates(candidates, SortStrategy.RATING)
        assert [r.provider_id.int for r in ranked] == [1, 3, 2]

    def test_relevance_orders_by_composite(self, candidates):
        ranked = rank_candidates(candidates, SortStrategy.RELEVANCE)
        scores = [r.relevance_score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_missing_distance_sorts_last(self):
        ranked = rank_candidates([_candidate(1, None), _candidate(2, 30.0)])
        assert [r.provider_id.int for r in ranked] == [2, 1]

    def test_missing_price_sorts_last(self):
        ranked = rank_candidates([_candidate(1, 1.0), _candidate(2, 9.0, price="100")], "price")
        assert [r.provider_id.int for r in ranked] == [2, 1]

    def test_identical_inputs_tie_break_on_id(self):
        ranked = rank_candidates([_candidate(9, 2.0), _candidate(4, 2.0)])
        assert [r.provider_id.int for r in ranked] == [4, 9]

    def test_unknown_strategy_raises(self, candidates):
        with pytest.raises(ValueError):
            rank_candidates(candidates, "popularity")

    def test_empty_input(self):
        assert rank_candidates([]) == []
