"""
HomeServe Database Seed Script
==============================

Inserts the fixed service catalog (ids 1-5) and a starter filter form for
each service using async SQLAlchemy.

Usage:
    python scripts/seed.py

Environment variables:
    DATABASE_URL  -- async PostgreSQL connection string

Features:
    - Idempotent: services are matched by id, filters by (service, name)
    - Prints progress to stdout
"""

from __future__ import annotations

import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))

from homeserve.core.config import settings  # noqa: E402
from homeserve.models import (  # noqa: E402
    FilterOption,
    FilterType,
    ServiceFilter,
    ServiceType,
)
from homeserve.services.catalogService import SERVICE_CATALOG  # noqa: E402

DATABASE_URL = settings.database_url

BASE_PRICES: dict[int, Decimal] = {
    1: Decimal("3000"),
    2: Decimal("4000"),
    3: Decimal("5000"),
    4: Decimal("1500"),
    5: Decimal("6000"),
}

# (service_id, name, label, type, section, [(value, label, price_modifier)])
STARTER_FILTERS: list[tuple[int, str, str, FilterType, str, list[tuple[str, str, int]]]] = [
    (1, "cuisine", "Cuisine", FilterType.MULTI_SELECT, "Preferences",
     [("north_indian", "North Indian", 0), ("south_indian", "South Indian", 0),
      ("continental", "Continental", 500)]),
    (1, "meals_per_day", "Meals per day", FilterType.SINGLE_SELECT, "Schedule",
     [("1", "One", 0), ("2", "Two", 800), ("3", "Three", 1500)]),
    (2, "child_age_group", "Child age group", FilterType.DROPDOWN, "Child",
     [("infant", "Infant (0-1)", 1000), ("toddler", "Toddler (1-3)", 500),
      ("school", "School age (4+)", 0)]),
    (3, "care_level", "Care level", FilterType.SINGLE_SELECT, "Care",
     [("companion", "Companionship", 0), ("assisted", "Assisted living", 1500),
      ("medical", "Medical support", 3000)]),
    (4, "garden_size", "Garden size", FilterType.SINGLE_SELECT, "Garden",
     [("small", "Small", 0), ("medium", "Medium", 300), ("large", "Large", 700)]),
    (5, "vehicle_type", "Vehicle type", FilterType.MULTI_SELECT, "Vehicle",
     [("hatchback", "Hatchback", 0), ("sedan", "Sedan", 500), ("suv", "SUV", 1000)]),
]


async def seed_services(session: AsyncSession) -> int:
    inserted = 0
    for order, item in enumerate(SERVICE_CATALOG, start=1):
        if await session.get(ServiceType, item["id"]) is not None:
            continue
        session.add(
            ServiceType(
                id=item["id"],
                name=item["name"],
                category=item["category"],
                base_price=BASE_PRICES.get(item["id"]),
                display_order=order,
                is_active=True,
            )
        )
        inserted += 1
    await session.flush()
    return inserted


async def seed_filters(session: AsyncSession) -> int:
    inserted = 0
    for order, (service_id, name, label, filter_type, section, options) in enumerate(
        STARTER_FILTERS, start=1
    ):
        existing = await session.execute(
            select(ServiceFilter.id).where(
                ServiceFilter.service_id == service_id,
                ServiceFilter.filter_name == name,
            )
        )
        if existing.scalar_one_or_none() is not None:
            continue

        service_filter = ServiceFilter(
            service_id=service_id,
            filter_name=name,
            filter_label=label,
            filter_type=filter_type,
            section_title=section,
            display_order=order,
        )
        service_filter.options = [
            FilterOption(
                option_value=value,
                option_label=option_label,
                price_modifier=Decimal(modifier),
                display_order=position,
            )
            for position, (value, option_label, modifier) in enumerate(options, start=1)
        ]
        session.add(service_filter)
        inserted += 1
    await session.flush()
    return inserted


async def main() -> None:
    print("=" * 60)
    print("HomeServe Seed Script")
    print("=" * 60)
    print(f"Database: {DATABASE_URL.split('@')[-1] if '@' in DATABASE_URL else DATABASE_URL}")
    print()

    engine = create_async_engine(DATABASE_URL, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        async with session.begin():
            await session.execute(text("SELECT 1"))
            print("[OK] Database connection verified.\n")

            print("[1/2] Seeding service catalog...")
            count = await seed_services(session)
            print(f"       -> {count} services inserted.\n")

            print("[2/2] Seeding starter filters...")
            count = await seed_filters(session)
            print(f"       -> {count} filters inserted.\n")

    await engine.dispose()

    print("=" * 60)
    print("Seed complete.")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
