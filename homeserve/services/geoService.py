"""
Geo Service
===========

Geographic distance and the radius-bounded provider search.

Distances use the spherical law of cosines on a sphere of radius 6371 km.
The cosine term is clamped to [-1, 1] before ``acos`` so floating-point
error never produces NaN for coincident or antipodal points.

``search_nearby_providers`` is a full scan over the active configurations of
one service type: every located provider offering the service is loaded and
its distance computed in Python.  There is no spatial index; the cost grows
linearly with the number of providers configured for the service.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.config import settings
from homeserve.core.exceptions import ValidationError
from homeserve.models.provider import (
    ConfigurationStatus,
    Provider,
    ProviderServiceConfiguration,
)
from homeserve.models.taxonomy import ServiceType

logger = logging.getLogger(__name__)

# Earth's mean radius in kilometres
EARTH_RADIUS_KM: float = 6371.0

SUPPORTED_SERVICE_IDS: frozenset[int] = frozenset({1, 2, 3, 4, 5})


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def validate_coordinates(latitude: Any, longitude: Any) -> tuple[float, float]:
    """Return ``(lat, lon)`` as floats or raise ``ValidationError``."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("Latitude and longitude must be numeric")

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValidationError("Latitude and longitude must be finite numbers")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(f"Latitude {lat} is out of range [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise ValidationError(f"Longitude {lon} is out of range [-180, 180]")
    return lat, lon


def validate_radius(radius_km: Any) -> float:
    try:
        radius = float(radius_km)
    except (TypeError, ValueError):
        raise ValidationError("Radius must be numeric")

    low = settings.min_search_radius_km
    high = settings.max_search_radius_km
    if not math.isfinite(radius) or not low <= radius <= high:
        raise ValidationError(f"Radius must be between {low:g} and {high:g} km")
    return radius


def validate_service_id(service_id: Any) -> int:
    if isinstance(service_id, bool) or not isinstance(service_id, int):
        raise ValidationError("Service id must be an integer")
    if service_id not in SUPPORTED_SERVICE_IDS:
        raise ValidationError(
            f"Invalid service id {service_id}. Must be one of: "
            f"{', '.join(str(s) for s in sorted(SUPPORTED_SERVICE_IDS))}"
        )
    return service_id


# ---------------------------------------------------------------------------
# Distance
# ---------------------------------------------------------------------------

def great_circle_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lon1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lon2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in kilometres.  Symmetric in its two points and exactly
        0 for identical points.

    Raises:
        ValidationError: If any coordinate is out of range.
    """
    lat1, lon1 = validate_coordinates(lat1, lon1)
    lat2, lon2 = validate_coordinates(lat2, lon2)

    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    cosine = (
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon)
        + math.sin(lat1_rad) * math.sin(lat2_rad)
    )
    cosine = max(-1.0, min(1.0, cosine))

    return EARTH_RADIUS_KM * math.acos(cosine)


# ---------------------------------------------------------------------------
# Candidate data class
# ---------------------------------------------------------------------------

@dataclass
class NearbyCandidate:
    """A provider offering the searched service, with its distance.

    ``distance_km`` is ``None`` only for searches run without a centre point
    (the filter search without a location).
    """

    provider_id: uuid.UUID
    name: str
    latitude: float | None
    longitude: float | None
    distance_km: float | None
    status: str
    service_id: int
    service_name: str
    base_rate: Decimal | None = None
    rate_type: str | None = None
    tax_percentage: Decimal = Decimal("0")
    selected_filters: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": str(self.provider_id),
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distance_km": (
                round(self.distance_km, 2) if self.distance_km is not None else None
            ),
            "status": self.status,
            "availability": "Available" if self.status == ConfigurationStatus.ACTIVE.value else "Unavailable",
            "service_id": self.service_id,
            "service_name": self.service_name,
            "base_rate": float(self.base_rate) if self.base_rate is not None else None,
            "rate_type": self.rate_type,
        }


def _to_candidate(
    config: ProviderServiceConfiguration,
    provider: Provider,
    service_name: str,
    distance_km: float | None,
) -> NearbyCandidate:
    raw_filters = config.selected_filters
    return NearbyCandidate(
        provider_id=provider.id,
        name=provider.full_name,
        latitude=float(provider.latitude) if provider.latitude is not None else None,
        longitude=float(provider.longitude) if provider.longitude is not None else None,
        distance_km=distance_km,
        status=ConfigurationStatus(config.status).value,
        service_id=config.service_id,
        service_name=service_name,
        base_rate=config.base_rate,
        rate_type=config.base_rate_type.value if config.base_rate_type is not None else None,
        tax_percentage=config.tax_percentage if config.tax_percentage is not None else Decimal("0"),
        selected_filters=list(raw_filters) if isinstance(raw_filters, list) else [],
    )


# ---------------------------------------------------------------------------
# Pure radius filter
# ---------------------------------------------------------------------------

def filter_by_radius(
    candidates: Sequence[NearbyCandidate],
    center_lat: float,
    center_lon: float,
    radius_km: float,
) -> list[NearbyCandidate]:
    """Keep the candidates within ``radius_km`` of the centre point.

    Candidates without a location are skipped.  The returned candidates have
    ``distance_km`` set and are sorted closest first; ties keep a stable
    order by provider id.
    """
    results: list[NearbyCandidate] = []

    for candidate in candidates:
        if candidate.latitude is None or candidate.longitude is None:
            continue

        distance = great_circle_distance(
            center_lat, center_lon, candidate.latitude, candidate.longitude
        )
        if distance <= radius_km:
            candidate.distance_km = distance
            results.append(candidate)

    results.sort(key=lambda c: (c.distance_km, str(c.provider_id)))
    return results


# ---------------------------------------------------------------------------
# Database-backed search
# ---------------------------------------------------------------------------

async def load_service_candidates(
    db: AsyncSession,
    service_id: int,
    *,
    require_location: bool = True,
) -> list[NearbyCandidate]:
    """Load every active, enabled configuration for a service type."""
    stmt = (
        select(ProviderServiceConfiguration, Provider, ServiceType.name)
        .join(Provider, Provider.id == ProviderServiceConfiguration.provider_id)
        .join(ServiceType, ServiceType.id == ProviderServiceConfiguration.service_id)
        .where(
            ProviderServiceConfiguration.service_id == service_id,
            ProviderServiceConfiguration.status == ConfigurationStatus.ACTIVE,
            ProviderServiceConfiguration.is_active.is_(True),
        )
    )
    if require_location:
        stmt = stmt.where(
            Provider.latitude.is_not(None),
            Provider.longitude.is_not(None),
        )

    result = await db.execute(stmt)
    return [
        _to_candidate(config, provider, service_name, None)
        for config, provider, service_name in result.all()
    ]


async def search_nearby_providers(
    db: AsyncSession,
    latitude: float,
    longitude: float,
    radius_km: float,
    service_id: int,
) -> list[NearbyCandidate]:
    """Return the providers of ``service_id`` within ``radius_km``.

    Validates the centre point, the radius (1-50 km inclusive) and the
    service id before touching the database.  An empty list is a valid
    result.
    """
    lat, lon = validate_coordinates(latitude, longitude)
    radius = validate_radius(radius_km)
    validate_service_id(service_id)

    candidates = await load_service_candidates(db, service_id)
    nearby = filter_by_radius(candidates, lat, lon, radius)

    logger.info(
        "Geo search for service %s at (%.5f, %.5f) r=%.1fkm: %d of %d providers in range",
        service_id,
        lat,
        lon,
        radius,
        len(nearby),
        len(candidates),
    )
    return nearby
