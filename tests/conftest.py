"""
Shared pytest fixtures for HomeServe backend tests.

Provides mock database sessions, an in-memory stand-in for the Redis
counter calls made by the OTP rate limiter, and sample search candidates
that mirror what the geo search loads from the database.
"""

import math
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from homeserve.services.geoService import EARTH_RADIUS_KM, NearbyCandidate

# Search centre used across tests (Bengaluru)
CENTER_LAT = 12.9716
CENTER_LON = 77.5946

KM_PER_DEGREE_LAT = math.pi * EARTH_RADIUS_KM / 180.0


def lat_north_of_center(km: float) -> float:
    """Latitude ``km`` kilometres due north of the test centre."""
    return CENTER_LAT + km / KM_PER_DEGREE_LAT


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Individual tests configure ``mock_db.execute`` (usually with
    ``side_effect``) and ``mock_db.get`` to control query results.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def scalar_result(value: Any) -> MagicMock:
    """A mocked ``Result`` whose ``scalar_one_or_none()`` returns ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


# ---------------------------------------------------------------------------
# Redis stand-in
# ---------------------------------------------------------------------------


class FakeRedis:
    """Implements the ``incr`` / ``expire`` pair used for rate limiting."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ---------------------------------------------------------------------------
# Activity logger
# ---------------------------------------------------------------------------


class RecordingActivityLogger:
    """Keeps every audit event in memory."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def log_activity(self, action, *, actor_id=None, entity_type=None, entity_id=None, details=None):
        event = {
            "action": action,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
        }
        self.events.append(event)
        return event

    def actions(self) -> list[str]:
        return [e["action"] for e in self.events]


@pytest.fixture
def activity_log() -> RecordingActivityLogger:
    return RecordingActivityLogger()


# ---------------------------------------------------------------------------
# Candidate fixtures
# ---------------------------------------------------------------------------


def make_candidate(
    km_north: float | None,
    *,
    name: str = "Provider",
    provider_id: uuid.UUID | None = None,
    base_rate: Any = Decimal("500"),
    rate_type: str | None = "per_day",
    tax_percentage: Decimal = Decimal("0"),
    selected_filters: list[dict[str, Any]] | None = None,
) -> NearbyCandidate:
    located = km_north is not None
    return NearbyCandidate(
        provider_id=provider_id or uuid.uuid4(),
        name=name,
        latitude=lat_north_of_center(km_north) if located else None,
        longitude=CENTER_LON if located else None,
        distance_km=None,
        status="active",
        service_id=1,
        service_name="Cook",
        base_rate=base_rate,
        rate_type=rate_type,
        tax_percentage=tax_percentage,
        selected_filters=selected_filters or [],
    )


@pytest.fixture
def sample_candidates() -> list[NearbyCandidate]:
    """Providers 2 km, 4.9 km and 5.1 km north of the centre."""
    return [
        make_candidate(5.1, name="Far", provider_id=uuid.UUID(int=3)),
        make_candidate(2.0, name="Near", provider_id=uuid.UUID(int=1)),
        make_candidate(4.9, name="Edge", provider_id=uuid.UUID(int=2)),
    ]


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def candidate_factory():
    return make_candidate


@pytest.fixture
def result_of():
    """Build mocked ``Result`` objects for ``mock_db.execute``."""
    return scalar_result


@pytest.fixture
def north_of_center():
    return lat_north_of_center


@pytest.fixture
def center() -> tuple[float, float]:
    return CENTER_LAT, CENTER_LON
