"""
Search API Routes
=================

REST endpoints for provider discovery.

Routes:
  POST /api/v1/search/providers             -- Location search (recorded in history)
  POST /api/v1/search/providers/by-filters  -- Filter search, optional location
  GET  /api/v1/search/history/{customer_id} -- Latest searches of a customer
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from homeserve.api.deps import Audit, CurrentIdentity, DBSession
from homeserve.api.schemas.filters import selections_to_dicts
from homeserve.api.schemas.search import (
    FilterSearchRequest,
    FilterSearchResponse,
    ProviderResult,
    SearchDetails,
    SearchHistoryEntry,
    SearchHistoryResponse,
    SearchProvidersRequest,
    SearchProvidersResponse,
)
from homeserve.core.exceptions import PermissionDeniedError
from homeserve.services import searchHistoryService, searchService

router = APIRouter(prefix="/search", tags=["Search"])


# ---------------------------------------------------------------------------
# POST /api/v1/search/providers -- Location search
# ---------------------------------------------------------------------------

@router.post(
    "/providers",
    response_model=SearchProvidersResponse,
    summary="Search providers near a location",
    description=(
        "Finds active providers of a service within the radius (1-50 km, "
        "default 5), scores them against optional filters, prices each over "
        "the requested schedule and ranks them by the chosen strategy. "
        "Every search is appended to the customer's history. No providers in "
        "range is a successful, empty result."
    ),
)
async def search_providers(
    db: DBSession,
    audit: Audit,
    body: SearchProvidersRequest,
) -> SearchProvidersResponse:
    outcome = await searchService.search_providers(
        db,
        customer_id=body.customer_id,
        latitude=body.latitude,
        longitude=body.longitude,
        radius_km=body.radius,
        service_id=body.service_id,
        filters=selections_to_dicts(body.filters),
        sort_by=body.sort_by,
        days_per_week=body.days_per_week,
        weeks_duration=body.weeks_duration,
        audit=audit,
    )
    return SearchProvidersResponse(
        message=outcome.message,
        data=[ProviderResult(**row) for row in outcome.providers],
        search_details=SearchDetails(**outcome.search_details),
        error=outcome.error,
    )


# ---------------------------------------------------------------------------
# POST /api/v1/search/providers/by-filters -- Filter search
# ---------------------------------------------------------------------------

@router.post(
    "/providers/by-filters",
    response_model=FilterSearchResponse,
    summary="Rank providers by filter match",
    description=(
        "Scores every active provider of the service (or those within "
        "radius_km of the optional location) against the customer's filters "
        "and returns them with match quality and recurring cost. Default "
        "ordering is by match score, ties by distance."
    ),
)
async def search_providers_by_filters(
    db: DBSession,
    body: FilterSearchRequest,
) -> FilterSearchResponse:
    outcome = await searchService.search_providers_by_filters(
        db,
        service_id=body.service_id,
        customer_filters=selections_to_dicts(body.customer_filters),
        latitude=body.location.latitude if body.location else None,
        longitude=body.location.longitude if body.location else None,
        radius_km=body.radius_km,
        days_per_week=body.days_per_week,
        weeks_duration=body.weeks_duration,
        sort_by=body.sort_by,
    )
    return FilterSearchResponse(
        message=outcome.message,
        data=[ProviderResult(**row) for row in outcome.providers],
        search_criteria=outcome.search_criteria,
    )


# ---------------------------------------------------------------------------
# GET /api/v1/search/history/{customer_id} -- Search history
# ---------------------------------------------------------------------------

@router.get(
    "/history/{customer_id}",
    response_model=SearchHistoryResponse,
    summary="List a customer's recent searches",
    description=(
        "Returns the most recent searches (10 by default), newest first, "
        "each with the provider snapshot taken at search time. Customers "
        "may only read their own history."
    ),
)
async def get_search_history(
    db: DBSession,
    identity: CurrentIdentity,
    customer_id: uuid.UUID,
) -> SearchHistoryResponse:
    if not identity.is_admin and identity.subject_id != customer_id:
        raise PermissionDeniedError("You can only view your own search history.")

    await searchService.get_customer_or_404(db, customer_id)
    entries = await searchHistoryService.list_search_history(db, customer_id)
    return SearchHistoryResponse(
        message=f"Found {len(entries)} searches",
        data=[
            SearchHistoryEntry(**searchHistoryService.serialize_history_entry(entry))
            for entry in entries
        ],
    )
