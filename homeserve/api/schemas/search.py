"""
Pydantic v2 schemas for the provider search API.

Schemas for the location search, the filter search and the search history
listing.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field

from homeserve.algorithms.providerRanking import SortStrategy
from homeserve.api.schemas.filters import FilterSelection
from homeserve.core.config import settings


# ---------------------------------------------------------------------------
# Provider rows
# ---------------------------------------------------------------------------

class CostCalculation(BaseModel):
    subtotal: int
    tax: int
    total_cost: int


class CostSummary(BaseModel):
    """Recurring cost over the requested schedule."""

    base_rate: str = Field(description="Rate with unit, e.g. '₹200/hour'")
    duration: str
    calculation: CostCalculation
    display: str
    per_day_cost: int
    is_fallback: bool = Field(
        default=False, description="True when the provider's rate could not be priced"
    )


class PriceBreakdownOut(BaseModel):
    base_amount: float
    filter_surcharges: list[dict[str, Any]] = Field(default_factory=list)
    tax_amount: float
    total: float
    advance_amount: float


class MatchQuality(BaseModel):
    type: str = Field(description="exact, partial or none")
    score: int = Field(ge=0, le=100, description="Match percentage")
    total_matches: int
    total_filters: int


class ProviderResult(BaseModel):
    """A single ranked provider."""

    provider_id: uuid.UUID
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = Field(
        default=None, description="Great-circle distance from the search centre in km"
    )
    status: str
    availability: str
    service_id: int
    service_name: str
    base_rate: Optional[float] = None
    rate_type: Optional[str] = None
    search_rank: int = Field(ge=1)
    relevance_score: float
    cost: CostSummary
    price_breakdown: PriceBreakdownOut
    match_quality: Optional[MatchQuality] = None


# ---------------------------------------------------------------------------
# Location search
# ---------------------------------------------------------------------------

class SearchProvidersRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: float = Field(
        default=settings.default_search_radius_km,
        ge=settings.min_search_radius_km,
        le=settings.max_search_radius_km,
        description="Search radius in km",
    )
    service_id: int = Field(..., description="Service type id (1-5)")
    customer_id: uuid.UUID
    filters: list[FilterSelection] = Field(default_factory=list)
    sort_by: SortStrategy = SortStrategy.DISTANCE
    days_per_week: int = Field(default=7, ge=1, le=7)
    weeks_duration: int = Field(default=4, ge=1, le=52)


class SearchDetails(BaseModel):
    latitude: float
    longitude: float
    radius: float
    service_id: int
    service_name: str
    customer_id: uuid.UUID
    sort_by: str
    search_saved: bool


class SearchProvidersResponse(BaseModel):
    success: bool = True
    message: str
    data: list[ProviderResult]
    search_details: SearchDetails = Field(serialization_alias="searchDetails")
    error: Optional[str] = Field(
        default=None, description="'not_found_in_radius' when nothing is in range"
    )


# ---------------------------------------------------------------------------
# Filter search
# ---------------------------------------------------------------------------

class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class FilterSearchRequest(BaseModel):
    service_id: int
    customer_filters: list[FilterSelection] = Field(..., min_length=1)
    location: Optional[Location] = None
    radius_km: float = Field(
        default=settings.filter_search_radius_km,
        ge=settings.min_search_radius_km,
        le=settings.max_search_radius_km,
    )
    days_per_week: int = Field(default=7, ge=1, le=7)
    weeks_duration: int = Field(default=4, ge=1, le=52)
    sort_by: SortStrategy = SortStrategy.RATING


class FilterSearchResponse(BaseModel):
    success: bool = True
    message: str
    data: list[ProviderResult]
    search_criteria: dict[str, Any]


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class HistoryLocation(BaseModel):
    latitude: float
    longitude: float
    radius: float


class HistoryService(BaseModel):
    id: int
    name: str


class SearchHistoryEntry(BaseModel):
    id: int
    location: HistoryLocation
    service: HistoryService
    providers_count: int
    providers: list[dict[str, Any]]
    searched_at: Optional[str] = None


class SearchHistoryResponse(BaseModel):
    success: bool = True
    message: str
    data: list[SearchHistoryEntry]
