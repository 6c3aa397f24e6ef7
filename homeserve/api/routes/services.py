"""
Service Catalog API Routes
==========================

Routes:
  GET /api/v1/services                      -- Active services
  GET /api/v1/services/provider-counts      -- Active providers per service
  GET /api/v1/services/{service_id}         -- Service detail
  GET /api/v1/services/{service_id}/filters -- Filter form grouped into sections
"""

from __future__ import annotations

from fastapi import APIRouter

from homeserve.api.deps import DBSession
from homeserve.api.schemas.catalog import (
    FilterSection,
    ProviderCount,
    ProviderCountsResponse,
    ServiceDetailResponse,
    ServiceFiltersResponse,
    ServiceListResponse,
    ServiceOut,
)
from homeserve.services import catalogService

router = APIRouter(prefix="/services", tags=["Services"])


@router.get("", response_model=ServiceListResponse, summary="List active services")
async def list_services(db: DBSession) -> ServiceListResponse:
    services = await catalogService.list_services(db)
    return ServiceListResponse(data=[ServiceOut.model_validate(s) for s in services])


# Declared before /{service_id} so the literal path wins
@router.get(
    "/provider-counts",
    response_model=ProviderCountsResponse,
    summary="Active provider count per service",
)
async def provider_counts(db: DBSession) -> ProviderCountsResponse:
    counts = await catalogService.count_providers_by_service(db)
    return ProviderCountsResponse(
        data=[
            ProviderCount(service_id=service_id, active_providers=count)
            for service_id, count in counts.items()
        ]
    )


@router.get(
    "/{service_id}",
    response_model=ServiceDetailResponse,
    summary="Service detail",
)
async def get_service(db: DBSession, service_id: int) -> ServiceDetailResponse:
    details = await catalogService.get_service_details(db, service_id)
    return ServiceDetailResponse(
        data=ServiceOut.model_validate(details.service),
        active_providers=details.active_providers,
    )


@router.get(
    "/{service_id}/filters",
    response_model=ServiceFiltersResponse,
    summary="Filters of a service grouped into sections",
)
async def get_service_filters(db: DBSession, service_id: int) -> ServiceFiltersResponse:
    sections = await catalogService.get_service_filters(db, service_id)
    return ServiceFiltersResponse(
        service_id=service_id,
        sections=[FilterSection(**section) for section in sections],
    )
