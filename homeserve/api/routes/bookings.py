"""
Booking API Routes
==================

Routes:
  POST /api/v1/bookings/filters                                -- Save a filter selection, get a one-off estimate
  GET  /api/v1/bookings/price-preview/{customer_id}/{service_id} -- Re-price the latest selection
  POST /api/v1/bookings                                        -- Create a booking (transactional)
  POST /api/v1/bookings/{booking_id}/cancel                    -- Cancel under the refund policy
  GET  /api/v1/bookings/customer/{customer_id}                 -- List a customer's bookings
  GET  /api/v1/bookings/{booking_id}                           -- Fetch one booking
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from homeserve.api.deps import Audit, DBSession
from homeserve.api.schemas.booking import (
    BookingListResponse,
    BookingOut,
    BookingResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    CancellationOut,
    CreateBookingRequest,
    PricingBreakdown,
    PricingResponse,
    SaveFiltersRequest,
)
from homeserve.api.schemas.filters import selections_to_dicts
from homeserve.services import bookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post(
    "/filters",
    response_model=PricingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a customer's filter selection",
    description=(
        "Stores the selection for the service and returns the one-off "
        "estimate: service base price + option price modifiers + booking "
        "charges, with the advance payable."
    ),
)
async def save_filters(db: DBSession, body: SaveFiltersRequest) -> PricingResponse:
    saved = await bookingService.save_customer_filters(
        db,
        customer_id=body.customer_id,
        service_id=body.service_id,
        selected_filters=selections_to_dicts(body.selected_filters),
        latitude=body.location.latitude if body.location else None,
        longitude=body.location.longitude if body.location else None,
        radius_km=body.radius_km,
    )
    return PricingResponse(
        message="Filters saved successfully",
        selection_id=saved.selection.id,
        pricing_breakdown=PricingBreakdown(**saved.estimate.to_dict()),
    )


@router.get(
    "/price-preview/{customer_id}/{service_id}",
    response_model=PricingResponse,
    summary="Preview the price of the saved selection",
)
async def price_preview(
    db: DBSession,
    customer_id: uuid.UUID,
    service_id: int,
) -> PricingResponse:
    preview = await bookingService.get_price_preview(db, customer_id, service_id)
    return PricingResponse(
        message="Price preview calculated",
        selection_id=preview.selection.id,
        pricing_breakdown=PricingBreakdown(**preview.estimate.to_dict()),
    )


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
    description=(
        "Creates a confirmed booking from the customer's latest saved "
        "selection. The booking, its filter rows and the selection status "
        "are written in one transaction."
    ),
)
async def create_booking(
    db: DBSession,
    audit: Audit,
    body: CreateBookingRequest,
) -> BookingResponse:
    booking, estimate = await bookingService.create_booking(
        db,
        customer_id=body.customer_id,
        service_id=body.service_id,
        service_address=body.service_address,
        start_date=body.start_date,
        preferred_time=body.preferred_time,
        special_instructions=body.special_instructions,
        audit=audit,
    )
    return BookingResponse(
        message="Booking created successfully",
        booking=BookingOut.model_validate(booking),
        pricing_breakdown=PricingBreakdown(**estimate.to_dict()),
    )


@router.post(
    "/{booking_id}/cancel",
    response_model=CancelBookingResponse,
    summary="Cancel a booking",
    description=(
        "Refund: full at 48 h or more before the start, 75% at 24-48 h, "
        "50% under 24 h. Bookings that have started cannot be cancelled."
    ),
)
async def cancel_booking(
    db: DBSession,
    audit: Audit,
    booking_id: uuid.UUID,
    body: CancelBookingRequest,
) -> CancelBookingResponse:
    booking, quote = await bookingService.cancel_booking(
        db, booking_id, reason=body.reason, audit=audit
    )
    return CancelBookingResponse(
        message="Booking cancelled successfully",
        booking=BookingOut.model_validate(booking),
        cancellation=CancellationOut(**quote.to_dict()),
    )


@router.get(
    "/customer/{customer_id}",
    response_model=BookingListResponse,
    summary="List a customer's bookings",
)
async def list_customer_bookings(
    db: DBSession,
    customer_id: uuid.UUID,
) -> BookingListResponse:
    bookings = await bookingService.list_customer_bookings(db, customer_id)
    return BookingListResponse(
        message="Bookings retrieved successfully",
        count=len(bookings),
        data=[BookingOut.model_validate(b) for b in bookings],
    )


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(db: DBSession, booking_id: uuid.UUID) -> BookingResponse:
    booking = await bookingService.get_booking(db, booking_id)
    return BookingResponse(
        message="Booking retrieved successfully",
        booking=BookingOut.model_validate(booking),
    )
