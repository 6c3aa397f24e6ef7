"""
Catalog Service
===============

Read access to the fixed service catalog (ids 1-5) and each service's
filter form.

Key responsibilities:
  - List active services
  - Service detail with the number of providers currently offering it
  - Active provider counts per service
  - Service filters grouped into form sections, with options for the
    selection filter types
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from homeserve.models.provider import ConfigurationStatus, ProviderServiceConfiguration
from homeserve.models.taxonomy import SELECTION_FILTER_TYPES, ServiceFilter, ServiceType
from homeserve.services.searchService import get_service_or_404


# ---------------------------------------------------------------------------
# Fixed catalog
# ---------------------------------------------------------------------------

SERVICE_CATALOG: list[dict[str, Any]] = [
    {"id": 1, "name": "Cook", "category": "Food & Cooking"},
    {"id": 2, "name": "Baby Sitter", "category": "Child Care"},
    {"id": 3, "name": "Elderly Care", "category": "Elder Care"},
    {"id": 4, "name": "Gardening", "category": "Gardening & Landscaping"},
    {"id": 5, "name": "Driving", "category": "Transportation"},
]

DEFAULT_SECTION_TITLE = "General"


@dataclass(frozen=True)
class ServiceDetails:
    service: ServiceType
    active_providers: int


def _active_configurations():
    return (
        ProviderServiceConfiguration.status == ConfigurationStatus.ACTIVE,
        ProviderServiceConfiguration.is_active.is_(True),
    )


async def list_services(db: AsyncSession) -> list[ServiceType]:
    stmt = (
        select(ServiceType)
        .where(ServiceType.is_active.is_(True))
        .order_by(ServiceType.display_order, ServiceType.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_providers_by_service(db: AsyncSession) -> dict[int, int]:
    """Active, enabled provider configurations per service id.

    Every active service appears in the result, with 0 when nobody offers
    it.
    """
    stmt = (
        select(
            ProviderServiceConfiguration.service_id,
            func.count(ProviderServiceConfiguration.id),
        )
        .where(*_active_configurations())
        .group_by(ProviderServiceConfiguration.service_id)
    )
    counts = {service_id: count for service_id, count in (await db.execute(stmt)).all()}
    return {service.id: counts.get(service.id, 0) for service in await list_services(db)}


async def get_service_details(db: AsyncSession, service_id: int) -> ServiceDetails:
    """Raises ``ValidationError`` / ``NotFoundError`` like the search does."""
    service = await get_service_or_404(db, service_id)
    stmt = select(func.count(ProviderServiceConfiguration.id)).where(
        ProviderServiceConfiguration.service_id == service_id,
        *_active_configurations(),
    )
    count = (await db.execute(stmt)).scalar_one()
    return ServiceDetails(service=service, active_providers=count)


def _serialize_filter(service_filter: ServiceFilter) -> dict[str, Any]:
    data: dict[str, Any] = {
        "filter_id": service_filter.id,
        "filter_name": service_filter.filter_name,
        "filter_label": service_filter.filter_label,
        "filter_type": service_filter.filter_type.value,
        "is_required": service_filter.is_required,
        "placeholder": service_filter.placeholder,
        "help_text": service_filter.help_text,
        "display_order": service_filter.display_order,
    }
    if service_filter.filter_type in SELECTION_FILTER_TYPES:
        data["options"] = [
            {
                "value": option.option_value,
                "label": option.option_label,
                "display_order": option.display_order,
                "price_modifier": float(option.price_modifier or 0),
                "description": option.description,
            }
            for option in sorted(service_filter.options, key=lambda o: (o.display_order, o.id))
            if option.is_active
        ]
    return data


async def get_service_filters(db: AsyncSession, service_id: int) -> list[dict[str, Any]]:
    """Active filters of a service grouped into ordered sections."""
    await get_service_or_404(db, service_id)

    stmt = (
        select(ServiceFilter)
        .options(selectinload(ServiceFilter.options))
        .where(
            ServiceFilter.service_id == service_id,
            ServiceFilter.is_active.is_(True),
        )
        .order_by(ServiceFilter.section_order, ServiceFilter.display_order, ServiceFilter.id)
    )
    filters = (await db.execute(stmt)).scalars().all()

    sections: dict[str, dict[str, Any]] = {}
    for service_filter in filters:
        title = service_filter.section_title or DEFAULT_SECTION_TITLE
        section = sections.setdefault(
            title,
            {
                "section_title": title,
                "section_description": service_filter.section_description,
                "section_order": service_filter.section_order,
                "filters": [],
            },
        )
        section["filters"].append(_serialize_filter(service_filter))

    return list(sections.values())
