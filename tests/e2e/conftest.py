"""
E2E test fixtures for the HomeServe backend.

Provides:
- An in-process FastAPI test app with all routes and error handlers
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database (in-memory) created fresh for every test
- Seed data: the service catalog, Cook filters and options, providers at
  known distances from a search centre, and two customers
- Redis, SMS delivery and activity logging replaced by in-memory doubles

Provider layout around the centre (12.9716, 77.5946), all offering Cook:

    NEAR        2.0 km north   per_day 500 + 18% tax
    EDGE        4.9 km north   per_hour 100
    FAR         5.1 km north   per_month 15000
    UNLOCATED   no location    per_week 3000
    INACTIVE    1.0 km north   configuration inactive (never returned)
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from homeserve.models import Base


@compiles(JSONB, "sqlite")
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

CUSTOMER_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
RETURNING_CUSTOMER_ID = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")
CUSTOMER_MOBILE = "9876543210"
RETURNING_MOBILE = "9123456780"

PROVIDER_NEAR_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
PROVIDER_EDGE_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
PROVIDER_FAR_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
PROVIDER_UNLOCATED_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
PROVIDER_INACTIVE_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")

CUISINE_FILTER_ID = 1
MEALS_FILTER_ID = 2
REQUESTS_FILTER_ID = 3

CENTER_LAT = 12.9716
CENTER_LON = 77.5946
KM_PER_DEGREE_LAT = math.pi * 6371.0 / 180.0

# Far from every seeded provider (New Delhi)
REMOTE_LAT = 28.6139
REMOTE_LON = 77.2090


def _coord(value: float) -> Decimal:
    return Decimal(f"{value:.7f}")


def _north(km: float) -> Decimal:
    return _coord(CENTER_LAT + km / KM_PER_DEGREE_LAT)


# ---------------------------------------------------------------------------
# Async engine + session (in-memory SQLite, one database per test)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_data(db: AsyncSession) -> None:
    from homeserve.models import (
        ConfigurationStatus,
        Customer,
        FilterOption,
        FilterType,
        Provider,
        ProviderServiceConfiguration,
        RateType,
        SearchHistory,
        ServiceFilter,
        ServiceType,
    )
    from homeserve.services.catalogService import SERVICE_CATALOG

    # -- Catalog --
    base_prices = {1: Decimal("3000"), 2: Decimal("4000"), 3: Decimal("5000"), 4: None, 5: Decimal("6000")}
    db.add_all(
        [
            ServiceType(
                id=item["id"],
                name=item["name"],
                category=item["category"],
                base_price=base_prices[item["id"]],
                display_order=item["id"],
                is_active=True,
            )
            for item in SERVICE_CATALOG
        ]
    )
    await db.flush()

    cuisine = ServiceFilter(
        id=CUISINE_FILTER_ID,
        service_id=1,
        filter_name="cuisine",
        filter_label="Cuisine",
        filter_type=FilterType.MULTI_SELECT,
        section_title="Preferences",
        section_order=1,
        display_order=1,
        is_required=True,
    )
    meals = ServiceFilter(
        id=MEALS_FILTER_ID,
        service_id=1,
        filter_name="meals_per_day",
        filter_label="Meals per day",
        filter_type=FilterType.SINGLE_SELECT,
        section_title="Schedule",
        section_order=2,
        display_order=1,
    )
    requests = ServiceFilter(
        id=REQUESTS_FILTER_ID,
        service_id=1,
        filter_name="special_requests",
        filter_label="Special requests",
        filter_type=FilterType.TEXT,
        section_title="Preferences",
        section_order=1,
        display_order=2,
        placeholder="Anything the cook should know",
    )
    db.add_all([cuisine, meals, requests])
    await db.flush()

    db.add_all(
        [
            FilterOption(filter_id=CUISINE_FILTER_ID, option_value="north_indian",
                         option_label="North Indian", price_modifier=Decimal("0"), display_order=1),
            FilterOption(filter_id=CUISINE_FILTER_ID, option_value="continental",
                         option_label="Continental", price_modifier=Decimal("500"), display_order=2),
            FilterOption(filter_id=CUISINE_FILTER_ID, option_value="thai",
                         option_label="Thai", price_modifier=Decimal("700"), display_order=3,
                         is_active=False),
            FilterOption(filter_id=MEALS_FILTER_ID, option_value="1",
                         option_label="One", price_modifier=Decimal("0"), display_order=1),
            FilterOption(filter_id=MEALS_FILTER_ID, option_value="2",
                         option_label="Two", price_modifier=Decimal("800"), display_order=2),
        ]
    )
    await db.flush()

    # -- Providers --
    providers = [
        (PROVIDER_NEAR_ID, "Near Cook", _north(2.0), _coord(CENTER_LON)),
        (PROVIDER_EDGE_ID, "Edge Cook", _north(4.9), _coord(CENTER_LON)),
        (PROVIDER_FAR_ID, "Far Cook", _north(5.1), _coord(CENTER_LON)),
        (PROVIDER_UNLOCATED_ID, "Mobile Cook", None, None),
        (PROVIDER_INACTIVE_ID, "Resting Cook", _north(1.0), _coord(CENTER_LON)),
    ]
    db.add_all(
        [
            Provider(id=pid, full_name=name, latitude=lat, longitude=lon, is_active=True)
            for pid, name, lat, lon in providers
        ]
    )
    await db.flush()

    def _config(provider_id, rate, rate_type, *, tax="0", filters=None,
                status=ConfigurationStatus.ACTIVE):
        return ProviderServiceConfiguration(
            provider_id=provider_id,
            service_id=1,
            base_rate=Decimal(rate),
            base_rate_type=rate_type,
            tax_percentage=Decimal(tax),
            status=status,
            is_active=True,
            selected_filters=filters or [],
        )

    db.add_all(
        [
            _config(
                PROVIDER_NEAR_ID, "500", RateType.PER_DAY, tax="18",
                filters=[
                    {"filter_name": "cuisine", "selected_values": ["north_indian"]},
                    {"filter_name": "meals_per_day", "selected_values": ["2"]},
                ],
            ),
            _config(
                PROVIDER_EDGE_ID, "100", RateType.PER_HOUR,
                filters=[{"filter_name": "cuisine", "selected_values": ["continental"]}],
            ),
            _config(PROVIDER_FAR_ID, "15000", RateType.PER_MONTH),
            _config(
                PROVIDER_UNLOCATED_ID, "3000", RateType.PER_WEEK,
                filters=[{"filter_name": "cuisine", "selected_values": ["north_indian"]}],
            ),
            _config(PROVIDER_INACTIVE_ID, "50", RateType.PER_DAY, status=ConfigurationStatus.INACTIVE),
        ]
    )

    # -- Customers --
    db.add_all(
        [
            Customer(id=CUSTOMER_ID, full_name="Asha Rao", mobile_number=CUSTOMER_MOBILE),
            Customer(
                id=RETURNING_CUSTOMER_ID,
                full_name="Vikram Shah",
                mobile_number=RETURNING_MOBILE,
                mobile_verified=True,
                last_login_at=datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc),
            ),
        ]
    )
    await db.flush()

    db.add(
        SearchHistory(
            customer_id=RETURNING_CUSTOMER_ID,
            latitude=_coord(REMOTE_LAT),
            longitude=_coord(REMOTE_LON),
            radius_km=Decimal("5.00"),
            service_id=1,
            service_name="Cook",
            providers_snapshot=[{"provider_id": "gone", "name": "Old Cook"}],
            providers_count=2,
            searched_at=datetime(2026, 1, 1, 9, 5, tzinfo=timezone.utc),
        )
    )
    await db.flush()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class CapturingSmsGateway:
    """Keeps every passcode that would have been texted."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_otp(self, mobile_number: str, code: str, expires_at: datetime) -> None:
        self.sent.append((mobile_number, code))

    def last_code(self, mobile_number: str) -> str:
        return next(code for mobile, code in reversed(self.sent) if mobile == mobile_number)


@pytest.fixture
def sms_outbox() -> CapturingSmsGateway:
    return CapturingSmsGateway()


# ---------------------------------------------------------------------------
# App + client
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession, redis: Any, sms: Any, audit: Any):
    """Build a FastAPI app with all routes and error handlers registered and
    the DB, Redis, SMS and audit dependencies overridden."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from homeserve.api.deps import get_activity_logger, get_db, get_redis, get_sms
    from homeserve.api.routes import bookings, otp, search, services
    from homeserve.core.exceptions import HomeServeError
    from homeserve.main import homeserve_error_handler, request_validation_handler

    app = FastAPI(title="HomeServe Test")
    app.add_exception_handler(HomeServeError, homeserve_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    async def _override_get_db():
        yield db_session_override

    async def _override_get_redis():
        return redis

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = _override_get_redis
    app.dependency_overrides[get_sms] = lambda: sms
    app.dependency_overrides[get_activity_logger] = lambda: audit

    for module in (search, otp, services, bookings):
        app.include_router(module.router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(
    seeded_db: AsyncSession,
    fake_redis,
    sms_outbox: CapturingSmsGateway,
    activity_log,
) -> AsyncGenerator[AsyncClient, None]:
    app = _create_test_app(seeded_db, fake_redis, sms_outbox, activity_log)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Build a bearer header for a customer id."""
    from homeserve.services.auth_service import Identity, get_token_issuer

    def _headers(customer_id: uuid.UUID) -> dict[str, str]:
        token = get_token_issuer().issue(Identity(subject_id=customer_id)).access_token
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ---------------------------------------------------------------------------
# Flow helpers
# ---------------------------------------------------------------------------

COOK_SELECTION = [
    {
        "filter_id": CUISINE_FILTER_ID,
        "filter_name": "cuisine",
        "filter_type": "multi_select",
        "selected_values": ["continental"],
    },
    {
        "filter_id": MEALS_FILTER_ID,
        "filter_name": "meals_per_day",
        "filter_type": "single_select",
        "selected_values": ["2"],
    },
]


async def login_via_otp(
    client: AsyncClient,
    sms: CapturingSmsGateway,
    mobile_number: str,
) -> dict[str, Any]:
    """Request a passcode, verify it, and return the verify response body."""
    resp = await client.post("/api/v1/otp/request", json={"mobile_number": mobile_number})
    assert resp.status_code == 200, resp.text
    resp = await client.post(
        "/api/v1/otp/verify",
        json={"mobile_number": mobile_number, "otp": sms.last_code(mobile_number)},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


async def search_around_center(
    client: AsyncClient,
    customer_id: uuid.UUID = CUSTOMER_ID,
    **overrides: Any,
):
    payload: dict[str, Any] = {
        "latitude": CENTER_LAT,
        "longitude": CENTER_LON,
        "radius": 5,
        "service_id": 1,
        "customer_id": str(customer_id),
    }
    payload.update(overrides)
    return await client.post("/api/v1/search/providers", json=payload)


async def save_cook_filters(client: AsyncClient, customer_id: uuid.UUID = CUSTOMER_ID):
    return await client.post(
        "/api/v1/bookings/filters",
        json={
            "customer_id": str(customer_id),
            "service_id": 1,
            "selected_filters": COOK_SELECTION,
        },
    )
