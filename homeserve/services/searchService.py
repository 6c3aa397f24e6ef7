"""
Provider Search Service
=======================

Orchestrates a provider search end to end:

  1. Validate the request (coordinates, radius, service, schedule, sort).
  2. GeoSearchEngine      -- active providers of the service within radius.
  3. FilterMatcher        -- score each provider against the customer's
                             filters, when any were supplied.
  4. PriceEstimator       -- recurring cost per provider, falling back to a
                             flagged default when a rate cannot be priced.
  5. RankingAssembler     -- order under the requested strategy and assign
                             ``search_rank``.
  6. SearchHistoryStore   -- append the query and a snapshot of the result.

Also hosts the filter search (``search_providers_by_filters``), which runs
the same steps with an optional centre point and no history write.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.algorithms.filterMatcher import match_filters
from homeserve.algorithms.providerRanking import (
    RankingCandidate,
    SortStrategy,
    rank_candidates,
)
from homeserve.core.audit import ActivityLogger, default_activity_logger
from homeserve.core.config import settings
from homeserve.core.exceptions import NotFoundError, ValidationError
from homeserve.models.customer import Customer
from homeserve.models.taxonomy import ServiceType
from homeserve.services import searchHistoryService
from homeserve.services.geoService import (
    NearbyCandidate,
    load_service_candidates,
    search_nearby_providers,
    validate_coordinates,
    validate_radius,
    validate_service_id,
)
from homeserve.services.pricingEngine import recurring_cost_or_fallback, validate_schedule

logger = logging.getLogger(__name__)

NOT_FOUND_IN_RADIUS = "not_found_in_radius"


@dataclass
class SearchOutcome:
    """Result of ``search_providers``; zero providers is a valid outcome."""

    message: str
    providers: list[dict[str, Any]]
    search_details: dict[str, Any]
    error: str | None = None
    search_saved: bool = False


@dataclass
class FilterSearchOutcome:
    message: str
    providers: list[dict[str, Any]]
    search_criteria: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def parse_sort_strategy(sort_by: str | SortStrategy | None, default: SortStrategy) -> SortStrategy:
    if sort_by is None:
        return default
    try:
        return SortStrategy(sort_by)
    except ValueError:
        raise ValidationError(
            f"Invalid sort_by '{sort_by}'. Must be one of: "
            f"{', '.join(s.value for s in SortStrategy)}"
        )


async def get_service_or_404(db: AsyncSession, service_id: int) -> ServiceType:
    validate_service_id(service_id)
    service = await db.get(ServiceType, service_id)
    if service is None or not service.is_active:
        raise NotFoundError(f"Service {service_id} not found")
    return service


async def get_customer_or_404(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


# ---------------------------------------------------------------------------
# Match -> price -> rank
# ---------------------------------------------------------------------------

def assemble_results(
    candidates: Sequence[NearbyCandidate],
    *,
    customer_filters: Sequence[Any] | None = None,
    sort_by: SortStrategy = SortStrategy.DISTANCE,
    days_per_week: int = 7,
    weeks_duration: int = 4,
) -> list[dict[str, Any]]:
    """Score, price and rank candidates into serialisable provider rows.

    ``match_quality`` is only included when the customer supplied filters.
    """
    ranking_input: list[RankingCandidate] = []
    extras: dict[Any, dict[str, Any]] = {}

    for candidate in candidates:
        match = match_filters(customer_filters, candidate.selected_filters)
        cost = recurring_cost_or_fallback(
            candidate.provider_id,
            candidate.base_rate,
            candidate.rate_type,
            candidate.tax_percentage,
            days_per_week=days_per_week,
            weeks_duration=weeks_duration,
        )
        extras[candidate.provider_id] = {"match": match, "cost": cost}
        ranking_input.append(
            RankingCandidate(
                candidate=candidate,
                provider_id=candidate.provider_id,
                distance_km=candidate.distance_km,
                match_score=match.match_percentage,
                total_price=cost.total,
            )
        )

    rows: list[dict[str, Any]] = []
    for ranked in rank_candidates(ranking_input, sort_by):
        extra = extras[ranked.provider_id]
        row = ranked.candidate.to_dict()
        row["search_rank"] = ranked.search_rank
        row["relevance_score"] = ranked.relevance_score
        row["cost"] = extra["cost"].to_cost_dict()
        row["price_breakdown"] = extra["cost"].as_price_breakdown().to_dict()
        if customer_filters:
            row["match_quality"] = extra["match"].to_dict()
        rows.append(row)
    return rows


# ---------------------------------------------------------------------------
# Location search
# ---------------------------------------------------------------------------

async def search_providers(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID,
    latitude: float,
    longitude: float,
    service_id: int,
    radius_km: float | None = None,
    filters: Sequence[Any] | None = None,
    sort_by: str | SortStrategy | None = None,
    days_per_week: int = 7,
    weeks_duration: int = 4,
    audit: ActivityLogger | None = None,
) -> SearchOutcome:
    """Search providers around a point and record the search.

    A failed history write does not fail the search; it is logged and
    reported through ``search_saved``.

    Raises:
        ValidationError: On missing or out-of-range input.
        NotFoundError: On an unknown customer or service.
    """
    audit = audit or default_activity_logger

    lat, lon = validate_coordinates(latitude, longitude)
    radius = validate_radius(settings.default_search_radius_km if radius_km is None else radius_km)
    strategy = parse_sort_strategy(sort_by, SortStrategy.DISTANCE)
    validate_schedule(days_per_week, weeks_duration)

    service = await get_service_or_404(db, service_id)
    await get_customer_or_404(db, customer_id)
    # Read before the history write; a rollback expires loaded rows
    service_name = service.name

    candidates = await search_nearby_providers(db, lat, lon, radius, service_id)
    providers = assemble_results(
        candidates,
        customer_filters=filters,
        sort_by=strategy,
        days_per_week=days_per_week,
        weeks_duration=weeks_duration,
    )

    search_saved = True
    try:
        await searchHistoryService.record_search(
            db,
            customer_id=customer_id,
            latitude=lat,
            longitude=lon,
            radius_km=radius,
            service_id=service_id,
            service_name=service_name,
            providers=providers,
        )
    except SQLAlchemyError:
        logger.error(
            "Failed to record search history for customer %s", customer_id, exc_info=True
        )
        await db.rollback()
        search_saved = False

    audit.log_activity(
        "search.performed",
        actor_id=customer_id,
        entity_type="service",
        entity_id=service_id,
        details={
            "latitude": lat,
            "longitude": lon,
            "radius_km": radius,
            "results": len(providers),
            "sort_by": strategy.value,
        },
    )

    search_details = {
        "latitude": lat,
        "longitude": lon,
        "radius": radius,
        "service_id": service_id,
        "service_name": service_name,
        "customer_id": str(customer_id),
        "sort_by": strategy.value,
        "search_saved": search_saved,
    }

    if not providers:
        return SearchOutcome(
            message=f"No service providers found for this service in {radius:g}km radius",
            providers=[],
            search_details=search_details,
            error=NOT_FOUND_IN_RADIUS,
            search_saved=search_saved,
        )

    return SearchOutcome(
        message=f"Found {len(providers)} service providers",
        providers=providers,
        search_details=search_details,
        search_saved=search_saved,
    )


# ---------------------------------------------------------------------------
# Filter search
# ---------------------------------------------------------------------------

async def search_providers_by_filters(
    db: AsyncSession,
    *,
    service_id: int,
    customer_filters: Sequence[Any],
    latitude: float | None = None,
    longitude: float | None = None,
    radius_km: float | None = None,
    days_per_week: int = 7,
    weeks_duration: int = 4,
    sort_by: str | SortStrategy | None = None,
) -> FilterSearchOutcome:
    """Rank a service's providers by how well they match ``customer_filters``.

    With a centre point only providers within the radius (default 10 km) are
    considered; without one every active provider of the service is.
    """
    if not customer_filters:
        raise ValidationError("At least one customer filter is required")

    strategy = parse_sort_strategy(sort_by, SortStrategy.RATING)
    validate_schedule(days_per_week, weeks_duration)
    service = await get_service_or_404(db, service_id)

    location: dict[str, float] | None = None
    radius: float | None = None
    if latitude is not None or longitude is not None:
        lat, lon = validate_coordinates(latitude, longitude)
        radius = validate_radius(
            settings.filter_search_radius_km if radius_km is None else radius_km
        )
        candidates = await search_nearby_providers(db, lat, lon, radius, service_id)
        location = {"latitude": lat, "longitude": lon}
    else:
        candidates = await load_service_candidates(db, service_id, require_location=False)

    providers = assemble_results(
        candidates,
        customer_filters=customer_filters,
        sort_by=strategy,
        days_per_week=days_per_week,
        weeks_duration=weeks_duration,
    )

    logger.info(
        "Filter search for service %s with %d filters: %d providers",
        service_id,
        len(customer_filters),
        len(providers),
    )

    criteria = {
        "service_id": service_id,
        "service_name": service.name,
        "filters_applied": len(customer_filters),
        "location": location,
        "radius_km": radius,
        "duration": {"days_per_week": days_per_week, "weeks": weeks_duration},
        "sort_by": strategy.value,
        "total_matches": len(providers),
    }
    message = (
        f"Found {len(providers)} service providers"
        if providers
        else "No service providers match the selected filters"
    )
    return FilterSearchOutcome(message=message, providers=providers, search_criteria=criteria)
