"""
Provider Ranking Algorithm
==========================

Orders priced, matched provider candidates under one of four strategies:

  distance   -- closest first (default)
  price      -- cheapest total first, ties by distance
  rating     -- highest filter match score first, ties by distance
  relevance  -- highest composite relevance first, ties by distance

Composite relevance is the weighted sum of two components normalised to a
0-100 scale:

  1. Distance     (weight: 0.5) -- 0 km = 100, MAX_DISTANCE_KM or more = 0
  2. Match score  (weight: 0.5) -- the filter match percentage

Every strategy falls back to provider id as the last tie-break so the
ordering is fully deterministic.  Candidates with no distance (searches
without a centre point) or no price sort after those that have one.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


# ---------------------------------------------------------------------------
# Default weights (must sum to 1.0)
# ---------------------------------------------------------------------------

DEFAULT_WEIGHTS: dict[str, float] = {
    "distance": 0.5,
    "match_score": 0.5,
}

# Normalisation constants
MAX_DISTANCE_KM: float = 50.0   # Matches the largest allowed search radius
MAX_MATCH_SCORE: float = 100.0

_INF = float("inf")


class SortStrategy(str, enum.Enum):
    DISTANCE = "distance"
    PRICE = "price"
    RATING = "rating"
    RELEVANCE = "relevance"


# ---------------------------------------------------------------------------
# Candidate data classes
# ---------------------------------------------------------------------------

@dataclass
class RankingCandidate:
    """Input data for a single provider to be ranked."""

    candidate: Any                  # NearbyCandidate or dict
    provider_id: Any
    distance_km: float | None
    match_score: float = 0.0        # Filter match percentage (0-100)
    total_price: Decimal | None = None


@dataclass
class RankedProvider:
    """A ranked provider with its relevance breakdown and 1-based rank."""

    candidate: Any
    provider_id: Any
    distance_km: float | None
    match_score: float
    total_price: Decimal | None

    score_distance: float = 0.0
    score_match: float = 0.0
    relevance_score: float = 0.0

    search_rank: int = 0


# ---------------------------------------------------------------------------
# Normalisation functions
# ---------------------------------------------------------------------------

def _normalise_distance(distance_km: float | None) -> float:
    """Closer is better: 0 km = 100, MAX_DISTANCE_KM+ = 0, unknown = 0."""
    if distance_km is None:
        return 0.0
    if distance_km <= 0:
        return 100.0
    if distance_km >= MAX_DISTANCE_KM:
        return 0.0
    return ((MAX_DISTANCE_KM - distance_km) / MAX_DISTANCE_KM) * 100.0


def _normalise_match_score(score: float) -> float:
    clamped = max(0.0, min(float(score), MAX_MATCH_SCORE))
    return (clamped / MAX_MATCH_SCORE) * 100.0


def compute_relevance(
    distance_km: float | None,
    match_score: float,
    weights: dict[str, float] | None = None,
) -> tuple[float, float, float]:
    """Return ``(score_distance, score_match, relevance)``, each 0-100."""
    w = weights or DEFAULT_WEIGHTS

    weight_sum = sum(w.values())
    if abs(weight_sum - 1.0) > 0.01:
        raise ValueError(
            f"Ranking weights must sum to 1.0, got {weight_sum:.4f}. "
            f"Weights: {w}"
        )

    score_distance = _normalise_distance(distance_km)
    score_match = _normalise_match_score(match_score)
    relevance = (
        score_distance * w.get("distance", 0.5)
        + score_match * w.get("match_score", 0.5)
    )
    return score_distance, score_match, relevance


# ---------------------------------------------------------------------------
# Ranking function
# ---------------------------------------------------------------------------

def _distance_key(r: RankedProvider) -> float:
    return r.distance_km if r.distance_km is not None else _INF


def _price_key(r: RankedProvider) -> tuple[int, Decimal]:
    if r.total_price is None:
        return (1, Decimal("0"))
    return (0, r.total_price)


def rank_candidates(
    candidates: list[RankingCandidate],
    sort_by: SortStrategy | str = SortStrategy.DISTANCE,
    weights: dict[str, float] | None = None,
) -> list[RankedProvider]:
    """Rank candidates under ``sort_by`` and assign 1-based ``search_rank``.

    Raises:
        ValueError: On an unknown strategy or weights not summing to 1.0.
    """
    strategy = SortStrategy(sort_by)

    ranked: list[RankedProvider] = []
    for candidate in candidates:
        score_distance, score_match, relevance = compute_relevance(
            candidate.distance_km, candidate.match_score, weights
        )
        ranked.append(
            RankedProvider(
                candidate=candidate.candidate,
                provider_id=candidate.provider_id,
                distance_km=candidate.distance_km,
                match_score=candidate.match_score,
                total_price=candidate.total_price,
                score_distance=round(score_distance, 2),
                score_match=round(score_match, 2),
                relevance_score=round(relevance, 2),
            )
        )

    if strategy is SortStrategy.PRICE:
        ranked.sort(key=lambda r: (_price_key(r), _distance_key(r), str(r.provider_id)))
    elif strategy is SortStrategy.RATING:
        ranked.sort(key=lambda r: (-r.match_score, _distance_key(r), str(r.provider_id)))
    elif strategy is SortStrategy.RELEVANCE:
        ranked.sort(key=lambda r: (-r.relevance_score, _distance_key(r), str(r.provider_id)))
    else:
        ranked.sort(key=lambda r: (_distance_key(r), str(r.provider_id)))

    for position, provider in enumerate(ranked, start=1):
        provider.search_rank = position

    return ranked
