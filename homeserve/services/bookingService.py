"""
Booking Service
===============

Booking flow built on a customer's saved filter selection:

  1. ``save_customer_filters``  -- store the selection, return a one-off
                                   price estimate.
  2. ``get_price_preview``      -- re-price the latest saved selection.
  3. ``create_booking``         -- booking + one row per selected filter +
                                   selection marked ``booking_confirmed``,
                                   all in one transaction.
  4. ``cancel_booking``         -- apply the refund policy.

Read side: ``get_booking`` and ``list_customer_bookings``.

All writes go through the request's ``AsyncSession``; a failed flush during
booking creation rolls the whole unit back and surfaces as
``TransactionError``.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.audit import ActivityLogger, default_activity_logger
from homeserve.core.exceptions import NotFoundError, TransactionError, ValidationError
from homeserve.models.booking import (
    Booking,
    BookingFilterSelection,
    BookingStatus,
    PaymentStatus,
)
from homeserve.models.search import CustomerFilterSelection, SelectionStatus
from homeserve.models.taxonomy import ServiceFilter
from homeserve.services.geoService import validate_coordinates, validate_radius
from homeserve.services.pricingEngine import (
    BookingEstimate,
    CancellationQuote,
    estimate_booking_price,
    evaluate_cancellation,
)
from homeserve.services.searchService import get_customer_or_404, get_service_or_404

logger = logging.getLogger(__name__)

CLOSED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


@dataclass
class SavedSelection:
    selection: CustomerFilterSelection
    estimate: BookingEstimate


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def generate_booking_reference(now: datetime) -> str:
    """``BK`` + epoch milliseconds + two random digits."""
    return f"BK{int(now.timestamp() * 1000)}{secrets.randbelow(100):02d}"


def service_start_at(start_date: date, preferred_time: str | None) -> datetime:
    """Combine the booking date with its preferred ``HH:MM`` time (UTC)."""
    start_time = time(0, 0)
    if preferred_time:
        try:
            start_time = time.fromisoformat(preferred_time)
        except ValueError:
            raise ValidationError(f"Invalid preferred time '{preferred_time}'. Use HH:MM.")
    return datetime.combine(start_date, start_time, tzinfo=timezone.utc)


def hours_until_service(booking: Booking, now: datetime) -> float:
    starts_at = service_start_at(booking.start_date, booking.preferred_time)
    return (starts_at - now).total_seconds() / 3600


async def _check_filters_belong_to_service(
    db: AsyncSession,
    service_id: int,
    selected_filters: Sequence[dict[str, Any]],
) -> None:
    filter_ids = {f["filter_id"] for f in selected_filters if f.get("filter_id") is not None}
    if not filter_ids:
        return
    stmt = select(ServiceFilter.id).where(
        ServiceFilter.service_id == service_id,
        ServiceFilter.id.in_(filter_ids),
    )
    known = set((await db.execute(stmt)).scalars().all())
    unknown = sorted(filter_ids - known)
    if unknown:
        raise ValidationError(
            f"Filters {', '.join(str(i) for i in unknown)} do not belong to service {service_id}"
        )


async def get_latest_selection(
    db: AsyncSession,
    customer_id: uuid.UUID,
    service_id: int,
) -> CustomerFilterSelection | None:
    stmt = (
        select(CustomerFilterSelection)
        .where(
            CustomerFilterSelection.customer_id == customer_id,
            CustomerFilterSelection.service_id == service_id,
            CustomerFilterSelection.status == SelectionStatus.FILTER_SELECTED,
        )
        .order_by(CustomerFilterSelection.created_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Filter selection & pricing
# ---------------------------------------------------------------------------

async def save_customer_filters(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID,
    service_id: int,
    selected_filters: Sequence[dict[str, Any]],
    latitude: float | None = None,
    longitude: float | None = None,
    radius_km: float | None = None,
) -> SavedSelection:
    await get_customer_or_404(db, customer_id)
    await get_service_or_404(db, service_id)
    if not selected_filters:
        raise ValidationError("At least one filter selection is required")
    await _check_filters_belong_to_service(db, service_id, selected_filters)

    lat = lon = None
    if latitude is not None or longitude is not None:
        lat, lon = validate_coordinates(latitude, longitude)
    radius = validate_radius(radius_km) if radius_km is not None else None

    selection = CustomerFilterSelection(
        customer_id=customer_id,
        service_id=service_id,
        selected_filters=list(selected_filters),
        latitude=Decimal(str(lat)) if lat is not None else None,
        longitude=Decimal(str(lon)) if lon is not None else None,
        radius_km=Decimal(str(radius)) if radius is not None else None,
        status=SelectionStatus.FILTER_SELECTED,
    )
    db.add(selection)
    await db.flush()

    estimate = await estimate_booking_price(db, service_id, selected_filters)
    logger.info(
        "Saved %d filters for customer %s on service %s",
        len(selected_filters),
        customer_id,
        service_id,
    )
    return SavedSelection(selection=selection, estimate=estimate)


async def get_price_preview(
    db: AsyncSession,
    customer_id: uuid.UUID,
    service_id: int,
) -> SavedSelection:
    """Re-price the customer's latest unconfirmed selection.

    Raises:
        NotFoundError: When the customer has no saved selection.
    """
    await get_service_or_404(db, service_id)
    selection = await get_latest_selection(db, customer_id, service_id)
    if selection is None:
        raise NotFoundError("No filter selection found. Please select filters first.")
    estimate = await estimate_booking_price(db, service_id, selection.selected_filters or [])
    return SavedSelection(selection=selection, estimate=estimate)


# ---------------------------------------------------------------------------
# Booking lifecycle
# ---------------------------------------------------------------------------

async def create_booking(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID,
    service_id: int,
    service_address: str,
    start_date: date,
    preferred_time: str | None = None,
    special_instructions: str | None = None,
    audit: ActivityLogger | None = None,
    now: datetime | None = None,
) -> tuple[Booking, BookingEstimate]:
    """Create a confirmed booking from the latest saved selection.

    Raises:
        ValidationError: Blank address or a start in the past.
        NotFoundError: Unknown customer / service, or no saved selection.
        TransactionError: When any of the writes fail.
    """
    audit = audit or default_activity_logger
    now = now or datetime.now(timezone.utc)

    if not service_address or not service_address.strip():
        raise ValidationError("Service address is required")
    if service_start_at(start_date, preferred_time) <= now:
        raise ValidationError("Start date must be in the future")

    await get_customer_or_404(db, customer_id)
    preview = await get_price_preview(db, customer_id, service_id)
    selection, estimate = preview.selection, preview.estimate

    booking = Booking(
        booking_reference=generate_booking_reference(now),
        customer_id=customer_id,
        service_id=service_id,
        filter_selection_id=selection.id,
        service_address=service_address.strip(),
        start_date=start_date,
        preferred_time=preferred_time,
        special_instructions=special_instructions,
        estimated_price=estimate.estimated_total,
        advance_amount=estimate.advance_amount,
        booking_charges=estimate.booking_charges,
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PENDING,
    )

    try:
        db.add(booking)
        await db.flush()

        for selected in selection.selected_filters or []:
            db.add(
                BookingFilterSelection(
                    booking_id=booking.id,
                    filter_id=selected.get("filter_id"),
                    filter_name=selected.get("filter_name", ""),
                    selected_values=list(selected.get("selected_values") or []),
                )
            )
        selection.status = SelectionStatus.BOOKING_CONFIRMED
        await db.flush()
    except SQLAlchemyError:
        logger.error(
            "Booking creation failed for customer %s on service %s",
            customer_id,
            service_id,
            exc_info=True,
        )
        await db.rollback()
        raise TransactionError()

    audit.log_activity(
        "booking.created",
        actor_id=customer_id,
        entity_type="booking",
        entity_id=booking.id,
        details={
            "booking_reference": booking.booking_reference,
            "estimated_price": str(booking.estimated_price),
        },
    )
    return booking, estimate


async def get_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def list_customer_bookings(
    db: AsyncSession, customer_id: uuid.UUID
) -> Sequence[Booking]:
    """Every booking of the customer, newest first."""
    await get_customer_or_404(db, customer_id)
    result = await db.execute(
        select(Booking)
        .where(Booking.customer_id == customer_id)
        .order_by(Booking.created_at.desc(), Booking.booking_reference.desc())
    )
    return result.scalars().all()


async def cancel_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    *,
    reason: str | None = None,
    audit: ActivityLogger | None = None,
    now: datetime | None = None,
) -> tuple[Booking, CancellationQuote]:
    """Cancel under the refund policy.

    Raises:
        NotFoundError: Unknown booking.
        ValidationError: Booking already closed or already started.
    """
    audit = audit or default_activity_logger
    now = now or datetime.now(timezone.utc)

    booking = await get_booking(db, booking_id)
    if booking.status in CLOSED_STATUSES:
        raise ValidationError(f"Booking is already {booking.status.value} and cannot be cancelled")

    quote = evaluate_cancellation(booking.estimated_price, hours_until_service(booking, now))
    if not quote.allowed:
        raise ValidationError(quote.policy, code="CANCELLATION_NOT_ALLOWED")

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now
    booking.cancellation_reason = reason
    booking.cancellation_charges = quote.cancellation_charges
    booking.refund_amount = quote.refund_amount
    await db.flush()

    audit.log_activity(
        "booking.cancelled",
        actor_id=booking.customer_id,
        entity_type="booking",
        entity_id=booking.id,
        details={
            "refund_amount": str(quote.refund_amount),
            "cancellation_charges": str(quote.cancellation_charges),
        },
    )
    return booking, quote
