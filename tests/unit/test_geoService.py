"""
Unit tests for the geo service: great-circle distance, input validation and
the pure radius filter.
"""

import math
import uuid

import pytest

from homeserve.core.exceptions import ValidationError
from homeserve.services.geoService import (
    EARTH_RADIUS_KM,
    filter_by_radius,
    great_circle_distance,
    validate_coordinates,
    validate_radius,
    validate_service_id,
)


# ---------------------------------------------------------------------------
# great_circle_distance
# ---------------------------------------------------------------------------


class TestGreatCircleDistance:
    """Distance between two points on the sphere."""

    def test_identical_points_are_zero(self):
        assert great_circle_distance(12.9716, 77.5946, 12.9716, 77.5946) == 0.0

    def test_symmetric(self):
        a = great_circle_distance(12.9716, 77.5946, 13.0827, 80.2707)
        b = great_circle_distance(13.0827, 80.2707, 12.9716, 77.5946)
        assert a == pytest.approx(b, abs=1e-9)

    def test_one_degree_of_latitude(self):
        expected = math.pi * EARTH_RADIUS_KM / 180.0
        assert great_circle_distance(0, 0, 1, 0) == pytest.approx(expected, rel=1e-9)

    def test_antipodal_points_do_not_produce_nan(self):
        distance = great_circle_distance(0, 0, 0, 180)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM, rel=1e-9)

    def test_non_negative(self):
        assert great_circle_distance(-33.86, 151.2, 51.5, -0.12) > 0

    def test_latitude_out_of_range_raises(self):
        with pytest.raises(ValidationError):
            great_circle_distance(91, 0, 0, 0)

    def test_longitude_out_of_range_raises(self):
        with pytest.raises(ValidationError):
            great_circle_distance(0, 0, 0, -181)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    """Coordinates, radius and service id checks."""

    def test_coordinates_accept_numeric_strings(self):
        assert validate_coordinates("12.5", "77.25") == (12.5, 77.25)

    def test_coordinates_reject_missing_values(self):
        with pytest.raises(ValidationError):
            validate_coordinates(None, 77.0)

    def test_coordinates_reject_nan(self):
        with pytest.raises(ValidationError):
            validate_coordinates(float("nan"), 77.0)

    @pytest.mark.parametrize("radius", [1, 5, 50])
    def test_radius_bounds_are_inclusive(self, radius):
        assert validate_radius(radius) == float(radius)

    @pytest.mark.parametrize("radius", [0, 0.5, 50.01, "wide"])
    def test_radius_out_of_range_raises(self, radius):
        with pytest.raises(ValidationError):
            validate_radius(radius)

    @pytest.mark.parametrize("service_id", [1, 3, 5])
    def test_supported_service_ids(self, service_id):
        assert validate_service_id(service_id) == service_id

    @pytest.mark.parametrize("service_id", [0, 6, True, "1", None])
    def test_unsupported_service_ids(self, service_id):
        with pytest.raises(ValidationError):
            validate_service_id(service_id)


# ---------------------------------------------------------------------------
# filter_by_radius
# ---------------------------------------------------------------------------


class TestFilterByRadius:
    """Pure radius filtering over loaded candidates."""

    def test_five_km_keeps_two_and_four_point_nine(self, sample_candidates, center):
        result = filter_by_radius(sample_candidates, *center, 5)
        assert [c.name for c in result] == ["Near", "Edge"]
        assert result[0].distance_km == pytest.approx(2.0, abs=0.01)
        assert result[1].distance_km == pytest.approx(4.9, abs=0.01)

    def test_every_result_is_within_radius(self, sample_candidates, center):
        for radius in (1, 3, 5, 10):
            for candidate in filter_by_radius(sample_candidates, *center, radius):
                assert candidate.distance_km <= radius

    def test_wider_radius_orders_closest_first(self, sample_candidates, center):
        result = filter_by_radius(sample_candidates, *center, 10)
        assert [c.name for c in result] == ["Near", "Edge", "Far"]

    def test_empty_result_is_not_an_error(self, sample_candidates, center):
        assert filter_by_radius(sample_candidates, *center, 1) == []

    def test_unlocated_candidates_are_skipped(self, candidate_factory, center):
        candidates = [candidate_factory(None, name="Nowhere"), candidate_factory(1.0, name="Here")]
        result = filter_by_radius(candidates, *center, 5)
        assert [c.name for c in result] == ["Here"]

    def test_equal_distances_tie_break_on_provider_id(self, candidate_factory, center):
        second = candidate_factory(3.0, provider_id=uuid.UUID(int=20))
        first = candidate_factory(3.0, provider_id=uuid.UUID(int=10))
        result = filter_by_radius([second, first], *center, 5)
        assert [c.provider_id for c in result] == [first.provider_id, second.provider_id]


class TestCandidateSerialisation:
    """``NearbyCandidate.to_dict`` output."""

    def test_distance_rounded_to_two_places(self, candidate_factory):
        candidate = candidate_factory(2.0)
        candidate.distance_km = 2.34567
        assert candidate.to_dict()["distance_km"] == 2.35

    def test_active_status_reads_available(self, candidate_factory):
        data = candidate_factory(2.0).to_dict()
        assert data["availability"] == "Available"
        assert isinstance(data["provider_id"], str)
