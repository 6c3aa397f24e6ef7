"""
Pydantic v2 schemas for the booking API.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from homeserve.api.schemas.filters import FilterSelection
from homeserve.api.schemas.search import Location
from homeserve.models.booking import BookingStatus, PaymentStatus


# ---------------------------------------------------------------------------
# Filter selection & pricing
# ---------------------------------------------------------------------------

class SaveFiltersRequest(BaseModel):
    customer_id: uuid.UUID
    service_id: int
    selected_filters: list[FilterSelection] = Field(..., min_length=1)
    location: Optional[Location] = None
    radius_km: Optional[float] = Field(default=None, ge=1, le=50)


class FilterCost(BaseModel):
    filter_id: Optional[int] = None
    filter_name: str
    filter_value: str
    cost: float


class PricingBreakdown(BaseModel):
    service_id: int
    service_name: str
    base_service_cost: float
    filter_costs: list[FilterCost]
    total_filter_cost: float
    booking_charges: float
    estimated_total: float
    advance_amount: float


class PricingResponse(BaseModel):
    success: bool = True
    message: str
    selection_id: uuid.UUID
    pricing_breakdown: PricingBreakdown


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------

class CreateBookingRequest(BaseModel):
    customer_id: uuid.UUID
    service_id: int
    service_address: str = Field(..., min_length=1, max_length=500)
    start_date: date
    preferred_time: Optional[str] = Field(
        default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="HH:MM (24h)"
    )
    special_instructions: Optional[str] = Field(default=None, max_length=2000)


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    booking_reference: str
    customer_id: uuid.UUID
    service_id: int
    service_address: str
    start_date: date
    preferred_time: Optional[str] = None
    estimated_price: Decimal
    advance_amount: Decimal
    booking_charges: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_charges: Optional[Decimal] = None
    refund_amount: Optional[Decimal] = None


class BookingResponse(BaseModel):
    success: bool = True
    message: str
    booking: BookingOut
    pricing_breakdown: Optional[PricingBreakdown] = None


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class CancellationOut(BaseModel):
    allowed: bool
    refund_percentage: int
    refund_amount: float
    cancellation_charges: float
    policy: str


class CancelBookingResponse(BaseModel):
    success: bool = True
    message: str
    booking: BookingOut
    cancellation: CancellationOut


class BookingListResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    data: list[BookingOut]
