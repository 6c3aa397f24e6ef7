"""
SQLAlchemy models for bookings and booking_filter_selections.

A booking is created from a customer's saved filter selection.  The selected
filters are copied into ``booking_filter_selections`` so that later edits
to the service's filters do not change what was booked.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    ADVANCE_PAID = "advance_paid"
    PAID = "paid"
    REFUNDED = "refunded"


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bookings"

    booking_reference: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_types.id"), nullable=False
    )
    filter_selection_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customer_filter_selections.id", ondelete="SET NULL"),
        nullable=True,
    )

    service_address: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    preferred_time: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing
    estimated_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    advance_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    booking_charges: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="payment_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Cancellation
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_charges: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    filter_selections: Mapped[list["BookingFilterSelection"]] = relationship(
        "BookingFilterSelection",
        back_populates="booking",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Booking(ref={self.booking_reference}, status={self.status})>"


class BookingFilterSelection(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "booking_filter_selections"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filter_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("service_filters.id", ondelete="SET NULL"), nullable=True
    )
    filter_name: Mapped[str] = mapped_column(String(100), nullable=False)
    selected_values: Mapped[Any] = mapped_column(JSONB, nullable=False, default=list)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="filter_selections")
