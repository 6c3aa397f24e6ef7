"""
Search History Service
======================

Append-only record of provider searches.  Each row keeps the query
parameters ``(latitude, longitude, radius_km, service_id)`` that a returning
customer's search is re-run with, plus a JSON snapshot of what was returned
at the time for display in the history listing.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.config import settings
from homeserve.models.search import SearchHistory

logger = logging.getLogger(__name__)


async def record_search(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID,
    latitude: float,
    longitude: float,
    radius_km: float,
    service_id: int,
    service_name: str,
    providers: Sequence[dict[str, Any]],
) -> SearchHistory:
    """Append one history row and flush it."""
    entry = SearchHistory(
        customer_id=customer_id,
        latitude=Decimal(str(latitude)),
        longitude=Decimal(str(longitude)),
        radius_km=Decimal(str(radius_km)),
        service_id=service_id,
        service_name=service_name,
        providers_snapshot=list(providers),
        providers_count=len(providers),
        searched_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    await db.flush()

    logger.info(
        "Search history %s recorded for customer %s (%d providers)",
        entry.id,
        customer_id,
        entry.providers_count,
    )
    return entry


async def get_latest_search(
    db: AsyncSession,
    customer_id: uuid.UUID,
) -> SearchHistory | None:
    stmt = (
        select(SearchHistory)
        .where(SearchHistory.customer_id == customer_id)
        .order_by(SearchHistory.searched_at.desc(), SearchHistory.id.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_search_history(
    db: AsyncSession,
    customer_id: uuid.UUID,
    limit: int | None = None,
) -> list[SearchHistory]:
    """Most recent searches first, at most ``limit`` (default from settings)."""
    stmt = (
        select(SearchHistory)
        .where(SearchHistory.customer_id == customer_id)
        .order_by(SearchHistory.searched_at.desc(), SearchHistory.id.desc())
        .limit(limit or settings.search_history_limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


def serialize_history_entry(entry: SearchHistory) -> dict[str, Any]:
    searched_at = entry.searched_at
    if searched_at is not None and searched_at.tzinfo is None:
        searched_at = searched_at.replace(tzinfo=timezone.utc)
    return {
        "id": entry.id,
        "location": {
            "latitude": float(entry.latitude),
            "longitude": float(entry.longitude),
            "radius": float(entry.radius_km),
        },
        "service": {
            "id": entry.service_id,
            "name": entry.service_name,
        },
        "providers_count": entry.providers_count,
        "providers": entry.providers_snapshot or [],
        "searched_at": searched_at.isoformat() if searched_at else None,
    }
