"""
Customer Session Service
========================

Completes mobile verification and decides what the customer sees next.

State machine, decided once per successful verification:

    otp_pending --verify--> otp_verified_new_customer
                      \\---> otp_verified_returning_customer

A customer is *returning* when they had logged in before (``last_login_at``
was set before this verification).  A returning customer's most recent
search is replayed live: the GeoSearchEngine re-runs with the stored
``(latitude, longitude, radius_km, service_id)``; the stored snapshot is
never served as current.  Three outcomes are kept distinct:

  - no history             -> identity only, no search context
  - history, providers now -> providers with the original search metadata
  - history, none now      -> success with an empty provider list
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.audit import ActivityLogger, default_activity_logger
from homeserve.core.exceptions import PermissionDeniedError
from homeserve.models.customer import Customer
from homeserve.services import otpService, searchHistoryService
from homeserve.services.auth_service import Identity, IdentityRole, IssuedToken, TokenIssuer
from homeserve.services.geoService import search_nearby_providers
from homeserve.services.searchService import assemble_results

logger = logging.getLogger(__name__)


class VerificationState(str, enum.Enum):
    OTP_PENDING = "otp_pending"
    OTP_VERIFIED_NEW_CUSTOMER = "otp_verified_new_customer"
    OTP_VERIFIED_RETURNING_CUSTOMER = "otp_verified_returning_customer"


def resolve_verification_state(previous_login_at: datetime | None) -> VerificationState:
    if previous_login_at is None:
        return VerificationState.OTP_VERIFIED_NEW_CUSTOMER
    return VerificationState.OTP_VERIFIED_RETURNING_CUSTOMER


@dataclass
class ReplayResult:
    has_history: bool
    message: str
    providers: list[dict[str, Any]] = field(default_factory=list)
    search_details: dict[str, Any] | None = None


@dataclass
class VerifiedSession:
    customer: Customer
    state: VerificationState
    token: IssuedToken
    replay: ReplayResult | None = None


async def replay_last_search(db: AsyncSession, customer_id: uuid.UUID) -> ReplayResult:
    """Re-run the customer's most recent search against live data."""
    latest = await searchHistoryService.get_latest_search(db, customer_id)
    if latest is None:
        return ReplayResult(
            has_history=False,
            message="Welcome back! You can start a new search.",
        )

    latitude = float(latest.latitude)
    longitude = float(latest.longitude)
    radius = float(latest.radius_km)

    candidates = await search_nearby_providers(
        db, latitude, longitude, radius, latest.service_id
    )
    providers = assemble_results(candidates)

    searched_at = latest.searched_at
    if searched_at is not None and searched_at.tzinfo is None:
        searched_at = searched_at.replace(tzinfo=timezone.utc)

    search_details = {
        "latitude": latitude,
        "longitude": longitude,
        "radius": radius,
        "service_id": latest.service_id,
        "service_name": latest.service_name,
        "last_searched_at": searched_at.isoformat() if searched_at else None,
        "previous_providers_count": latest.providers_count,
    }

    logger.info(
        "Replayed search %s for customer %s: %d providers now (was %d)",
        latest.id,
        customer_id,
        len(providers),
        latest.providers_count,
    )

    if not providers:
        return ReplayResult(
            has_history=True,
            message="Welcome back! No service providers found in your last search area.",
            providers=[],
            search_details=search_details,
        )
    return ReplayResult(
        has_history=True,
        message=f"Found {len(providers)} service providers",
        providers=providers,
        search_details=search_details,
    )


async def _get_or_create_customer(db: AsyncSession, mobile_number: str) -> Customer:
    result = await db.execute(select(Customer).where(Customer.mobile_number == mobile_number))
    customer = result.scalar_one_or_none()
    if customer is None:
        customer = Customer(mobile_number=mobile_number)
        db.add(customer)
        await db.flush()
        logger.info("Created customer %s on first verification", customer.id)
    return customer


async def verify_and_start_session(
    db: AsyncSession,
    mobile_number: str,
    otp: str,
    *,
    token_issuer: TokenIssuer,
    audit: ActivityLogger | None = None,
    now: datetime | None = None,
) -> VerifiedSession:
    """Verify the passcode, then resolve state, issue a token and replay.

    Raises whatever ``otpService.verify_otp`` raises on failure.
    """
    audit = audit or default_activity_logger
    now = now or datetime.now(timezone.utc)

    otp_row = await otpService.verify_otp(db, mobile_number, otp, now=now)
    customer = await _get_or_create_customer(db, otp_row.mobile_number)
    if not customer.is_active:
        raise PermissionDeniedError("This account has been deactivated.")

    state = resolve_verification_state(customer.last_login_at)
    customer.last_login_at = now
    customer.mobile_verified = True
    await db.flush()

    token = token_issuer.issue(Identity(subject_id=customer.id, role=IdentityRole.CUSTOMER))

    replay: ReplayResult | None = None
    if state is VerificationState.OTP_VERIFIED_RETURNING_CUSTOMER:
        replay = await replay_last_search(db, customer.id)
        if replay.has_history:
            audit.log_activity(
                "search.replayed",
                actor_id=customer.id,
                entity_type="service",
                entity_id=replay.search_details["service_id"] if replay.search_details else None,
                details={"results": len(replay.providers)},
            )

    audit.log_activity(
        "otp.verified",
        actor_id=customer.id,
        entity_type="customer",
        entity_id=customer.id,
        details={"state": state.value},
    )
    return VerifiedSession(customer=customer, state=state, token=token, replay=replay)
