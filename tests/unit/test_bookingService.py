"""
Unit tests for booking helpers and the cancellation flow.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from homeserve.core.exceptions import NotFoundError, ValidationError
from homeserve.models.booking import BookingStatus
from homeserve.services.bookingService import (
    cancel_booking,
    create_booking,
    generate_booking_reference,
    hours_until_service,
    service_start_at,
)


def _booking(start: datetime, status=BookingStatus.CONFIRMED, price="4400.00"):
    booking = MagicMock()
    booking.id = uuid.uuid4()
    booking.customer_id = uuid.uuid4()
    booking.start_date = start.date()
    booking.preferred_time = start.strftime("%H:%M")
    booking.estimated_price = Decimal(price)
    booking.status = status
    return booking


class TestHelpers:
    def test_reference_format(self, fixed_now):
        reference = generate_booking_reference(fixed_now)
        millis = str(int(fixed_now.timestamp() * 1000))
        assert reference.startswith("BK" + millis)
        assert len(reference) == 2 + len(millis) + 2

    def test_start_defaults_to_midnight(self):
        assert service_start_at(date(2026, 3, 5), None) == datetime(2026, 3, 5, tzinfo=timezone.utc)

    def test_start_with_time(self):
        assert service_start_at(date(2026, 3, 5), "14:30") == datetime(
            2026, 3, 5, 14, 30, tzinfo=timezone.utc
        )

    def test_bad_time_is_validation_error(self):
        with pytest.raises(ValidationError):
            service_start_at(date(2026, 3, 5), "half past two")

    def test_hours_until_service(self, fixed_now):
        booking = _booking(fixed_now + timedelta(hours=30))
        assert hours_until_service(booking, fixed_now) == pytest.approx(30)


class TestCancelBooking:
    """Refund policy applied to stored bookings."""

    @pytest.mark.asyncio
    async def test_full_refund_two_days_out(self, mock_db, fixed_now, activity_log):
        booking = _booking(fixed_now + timedelta(days=3))
        mock_db.get.return_value = booking

        cancelled, quote = await cancel_booking(
            mock_db, booking.id, reason="Plans changed", audit=activity_log, now=fixed_now
        )
        assert cancelled.status is BookingStatus.CANCELLED
        assert cancelled.refund_amount == Decimal("4400.00")
        assert cancelled.cancellation_charges == Decimal("0.00")
        assert cancelled.cancellation_reason == "Plans changed"
        assert quote.refund_percentage == 100
        assert activity_log.actions() == ["booking.cancelled"]

    @pytest.mark.asyncio
    async def test_partial_refund_inside_a_day(self, mock_db, fixed_now, activity_log):
        booking = _booking(fixed_now + timedelta(hours=10))
        mock_db.get.return_value = booking
        _, quote = await cancel_booking(mock_db, booking.id, audit=activity_log, now=fixed_now)
        assert quote.refund_amount == Decimal("2200.00")

    @pytest.mark.asyncio
    async def test_started_booking_cannot_be_cancelled(self, mock_db, fixed_now, activity_log):
        booking = _booking(fixed_now - timedelta(hours=1))
        mock_db.get.return_value = booking
        with pytest.raises(ValidationError) as exc_info:
            await cancel_booking(mock_db, booking.id, audit=activity_log, now=fixed_now)
        assert exc_info.value.code == "CANCELLATION_NOT_ALLOWED"
        assert booking.status is BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    async def test_closed_booking_cannot_be_cancelled(self, mock_db, fixed_now, status, activity_log):
        booking = _booking(fixed_now + timedelta(days=5), status=status)
        mock_db.get.return_value = booking
        with pytest.raises(ValidationError):
            await cancel_booking(mock_db, booking.id, audit=activity_log, now=fixed_now)

    @pytest.mark.asyncio
    async def test_unknown_booking(self, mock_db, fixed_now):
        mock_db.get.return_value = None
        with pytest.raises(NotFoundError):
            await cancel_booking(mock_db, uuid.uuid4(), now=fixed_now)


class TestCreateBookingValidation:
    """Input checks that run before any query."""

    @pytest.mark.asyncio
    async def test_blank_address(self, mock_db, fixed_now):
        with pytest.raises(ValidationError):
            await create_booking(
                mock_db,
                customer_id=uuid.uuid4(),
                service_id=1,
                service_address="   ",
                start_date=date(2026, 3, 10),
                now=fixed_now,
            )
        mock_db.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_in_the_past(self, mock_db, fixed_now):
        with pytest.raises(ValidationError):
            await create_booking(
                mock_db,
                customer_id=uuid.uuid4(),
                service_id=1,
                service_address="12 MG Road",
                start_date=fixed_now.date(),
                preferred_time="08:00",
                now=fixed_now,
            )
