"""
Unit tests for the filter matching algorithm.

Covers exact / partial / none classification, the one-of-two boundary,
percentage bounds and order independence.
"""

import pytest

from homeserve.algorithms.filterMatcher import (
    MatchType,
    classify_match,
    match_filters,
    percentage_of,
)


def _sel(name, *values):
    return {"filter_name": name, "selected_values": list(values)}


PROVIDER = [
    _sel("cuisine", "north_indian", "south_indian"),
    _sel("meals_per_day", "2"),
    _sel("diet", "veg"),
]


class TestClassifyMatch:
    """Boundary behaviour of the match type."""

    def test_all_matched_is_exact(self):
        assert classify_match(3, 3) is MatchType.EXACT

    def test_more_than_half_is_partial(self):
        assert classify_match(2, 3) is MatchType.PARTIAL

    def test_exactly_half_is_none(self):
        assert classify_match(1, 2) is MatchType.NONE

    def test_no_filters_is_none(self):
        assert classify_match(0, 0) is MatchType.NONE


class TestMatchFilters:
    """Matching a customer selection against a provider's filters."""

    def test_exact_match(self):
        customer = [_sel("cuisine", "north_indian"), _sel("meals_per_day", "2")]
        result = match_filters(customer, PROVIDER)
        assert result.match_type is MatchType.EXACT
        assert result.match_percentage == 100
        assert result.matched_filters == 2
        assert result.total_filters == 2

    def test_partial_match(self):
        customer = [
            _sel("cuisine", "continental", "south_indian"),
            _sel("meals_per_day", "2"),
            _sel("diet", "non_veg"),
        ]
        result = match_filters(customer, PROVIDER)
        assert result.match_type is MatchType.PARTIAL
        assert result.match_percentage == 67

    def test_one_of_two_is_none(self):
        customer = [_sel("cuisine", "north_indian"), _sel("diet", "vegan")]
        result = match_filters(customer, PROVIDER)
        assert result.match_type is MatchType.NONE
        assert result.match_percentage == 50

    def test_filter_missing_on_provider_does_not_match(self):
        result = match_filters([_sel("pets", "dog")], PROVIDER)
        assert result.matched_filters == 0
        assert result.match_type is MatchType.NONE

    def test_empty_customer_filters(self):
        result = match_filters([], PROVIDER)
        assert result.total_filters == 0
        assert result.match_percentage == 0

    @pytest.mark.parametrize("provider_filters", [None, {}, "cuisine", 42])
    def test_non_list_provider_filters_match_nothing(self, provider_filters):
        result = match_filters([_sel("cuisine", "north_indian")], provider_filters)
        assert result.matched_filters == 0
        assert result.total_filters == 1

    def test_values_compared_as_strings(self):
        customer = [{"filter_name": "meals_per_day", "selected_values": [2]}]
        assert match_filters(customer, PROVIDER).match_type is MatchType.EXACT

    def test_order_independent(self):
        customer = [_sel("diet", "veg"), _sel("cuisine", "north_indian"), _sel("pets", "cat")]
        forward = match_filters(customer, PROVIDER)
        backward = match_filters(list(reversed(customer)), list(reversed(PROVIDER)))
        assert forward == backward

    def test_percentage_bounds(self):
        cases = [
            [],
            [_sel("cuisine", "x")],
            [_sel("cuisine", "north_indian")],
            [_sel("cuisine", "north_indian"), _sel("diet", "x"), _sel("pets", "y")],
        ]
        for customer in cases:
            result = match_filters(customer, PROVIDER)
            assert 0 <= result.match_percentage <= 100
            assert result.matched_filters <= result.total_filters

    def test_to_dict_shape(self):
        data = match_filters([_sel("cuisine", "north_indian")], PROVIDER).to_dict()
        assert data == {"type": "exact", "score": 100, "total_matches": 1, "total_filters": 1}


class TestPercentageRounding:
    """Half percentages round up."""

    @pytest.mark.parametrize(
        "matched,total,expected",
        [(1, 8, 13), (5, 8, 63), (3, 8, 38), (1, 3, 33), (2, 3, 67), (0, 4, 0), (0, 0, 0)],
    )
    def test_percentage_of(self, matched, total, expected):
        assert percentage_of(matched, total) == expected

    def test_one_of_eight_filters_scores_thirteen(self):
        customer = [_sel("cuisine", "north_indian")] + [
            _sel(f"extra_{i}", "x") for i in range(7)
        ]
        result = match_filters(customer, PROVIDER)
        assert result.matched_filters == 1
        assert result.total_filters == 8
        assert result.match_percentage == 13
