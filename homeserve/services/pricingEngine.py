"""
Pricing Engine for HomeServe.

Two independent pricing modes, never interchanged:

- Recurring cost (provider search): the provider's base rate applied over a
  schedule of ``days_per_week`` x ``weeks_duration``, plus the provider's tax
  percentage.
    per_hour:  rate * hours_per_day * total_days
    per_day:   rate * total_days
    per_week:  rate * weeks_duration
    per_month: rate * ceil(weeks_duration / 4)

- One-off booking estimate (booking flow): the service's flat base price,
  plus the price modifier of every selected filter option, plus a fixed
  booking charge.

Also provides the advance amount (25 % of the total, never below the
minimum) and the cancellation refund policy:
    starts in <= 0 h   -> cannot be cancelled
    0 h < h < 24 h     -> 50 % refund
    24 h <= h < 48 h   -> 75 % refund
    h >= 48 h          -> full refund

All money is ``Decimal`` rounded half-up to two places.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.config import settings
from homeserve.core.exceptions import NotFoundError, ValidationError
from homeserve.models.provider import RateType
from homeserve.models.taxonomy import FilterOption, ServiceFilter, ServiceType
from homeserve.services.geoService import validate_service_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TWO_PLACES = Decimal("0.01")

BOOKING_CHARGES = Decimal(settings.booking_charges)
ADVANCE_MINIMUM = Decimal(settings.advance_minimum)
ADVANCE_RATE = Decimal(str(settings.advance_rate))
FALLBACK_PRICE = Decimal(settings.fallback_price)
DEFAULT_HOURS_PER_DAY = settings.default_hours_per_day
CURRENCY_SYMBOL = settings.currency_symbol

WEEKS_PER_MONTH = 4

# Cancellation policy: (lower bound in hours, refund fraction, message)
CANCELLATION_TIERS: list[tuple[int, Decimal, str]] = [
    (48, Decimal("1.00"), "More than 48 hours: Full refund available"),
    (24, Decimal("0.75"), "24-48 hours: 25% cancellation charges apply"),
    (0, Decimal("0.50"), "Less than 24 hours: 50% cancellation charges apply"),
]
CANCELLATION_BLOCKED_MESSAGE = "Cannot cancel bookings that have already started or passed"


class PriceComputationError(ValueError):
    """Raised when a provider's recurring cost cannot be computed."""


def _money(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _whole(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_decimal(value: Any, label: str) -> Decimal:
    if value is None:
        raise PriceComputationError(f"{label} is missing")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise PriceComputationError(f"{label} {value!r} is not a number")
    if not result.is_finite():
        raise PriceComputationError(f"{label} {value!r} is not a number")
    return result


def _format_amount(value: Decimal) -> str:
    if value == value.to_integral_value():
        return f"{_whole(value):,}"
    return f"{_money(value):,}"


# ---------------------------------------------------------------------------
# Shared breakdown
# ---------------------------------------------------------------------------

@dataclass
class FilterSurcharge:
    filter_id: int | None
    filter_name: str
    filter_value: str
    cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "filter_id": self.filter_id,
            "filter_name": self.filter_name,
            "filter_value": self.filter_value,
            "cost": float(self.cost),
        }


@dataclass
class PriceBreakdown:
    """Common shape of both pricing modes."""

    base_amount: Decimal
    filter_surcharges: list[FilterSurcharge]
    tax_amount: Decimal
    total: Decimal
    advance_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_amount": float(self.base_amount),
            "filter_surcharges": [s.to_dict() for s in self.filter_surcharges],
            "tax_amount": float(self.tax_amount),
            "total": float(self.total),
            "advance_amount": float(self.advance_amount),
        }


def calculate_advance_amount(total: Decimal | int | float) -> Decimal:
    """Advance payable at booking: 25 % of the total, at least the minimum."""
    amount = _to_decimal(total, "Total")
    if amount < 0:
        raise ValidationError("Total cannot be negative")
    return _money(max(amount * ADVANCE_RATE, ADVANCE_MINIMUM))


# ---------------------------------------------------------------------------
# Recurring cost (provider search)
# ---------------------------------------------------------------------------

@dataclass
class RecurringCost:
    """Recurring cost of one provider over the requested schedule."""

    base_rate: Decimal
    rate_type: str
    days_per_week: int
    weeks_duration: int
    total_days: int
    subtotal: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    total: Decimal
    per_day_cost: Decimal
    is_fallback: bool = False

    @property
    def display(self) -> str:
        return f"{CURRENCY_SYMBOL}{_whole(self.total):,} for {self.weeks_duration} weeks"

    def to_cost_dict(self) -> dict[str, Any]:
        unit = self.rate_type.replace("per_", "")
        return {
            "base_rate": f"{CURRENCY_SYMBOL}{_format_amount(self.base_rate)}/{unit}",
            "duration": f"{self.days_per_week} days/week × {self.weeks_duration} weeks",
            "calculation": {
                "subtotal": _whole(self.subtotal),
                "tax": _whole(self.tax_amount),
                "total_cost": _whole(self.total),
            },
            "display": self.display,
            "per_day_cost": _whole(self.per_day_cost),
            "is_fallback": self.is_fallback,
        }

    def as_price_breakdown(self) -> PriceBreakdown:
        return PriceBreakdown(
            base_amount=self.subtotal,
            filter_surcharges=[],
            tax_amount=self.tax_amount,
            total=self.total,
            advance_amount=calculate_advance_amount(self.total),
        )


def validate_schedule(days_per_week: int, weeks_duration: int) -> None:
    if not 1 <= days_per_week <= 7:
        raise ValidationError("days_per_week must be between 1 and 7")
    if weeks_duration < 1:
        raise ValidationError("weeks_duration must be at least 1")


def calculate_recurring_cost(
    base_rate: Decimal | int | float | None,
    rate_type: RateType | str | None,
    tax_percentage: Decimal | int | float | None = 0,
    *,
    days_per_week: int = 7,
    weeks_duration: int = 4,
    hours_per_day: int | None = None,
) -> RecurringCost:
    """Compute a provider's cost over ``days_per_week`` x ``weeks_duration``.

    Raises:
        ValidationError: If the schedule itself is invalid.
        PriceComputationError: If the provider's rate data is unusable.
    """
    validate_schedule(days_per_week, weeks_duration)
    hours = DEFAULT_HOURS_PER_DAY if hours_per_day is None else hours_per_day

    rate = _to_decimal(base_rate, "Base rate")
    if rate < 0:
        raise PriceComputationError(f"Base rate {rate} is negative")

    try:
        kind = RateType(rate_type)
    except ValueError:
        raise PriceComputationError(f"Unknown rate type {rate_type!r}")

    tax_pct = _to_decimal(tax_percentage if tax_percentage is not None else 0, "Tax percentage")
    if tax_pct < 0:
        raise PriceComputationError(f"Tax percentage {tax_pct} is negative")

    total_days = days_per_week * weeks_duration

    if kind is RateType.PER_HOUR:
        subtotal = rate * hours * total_days
    elif kind is RateType.PER_DAY:
        subtotal = rate * total_days
    elif kind is RateType.PER_WEEK:
        subtotal = rate * weeks_duration
    else:
        subtotal = rate * math.ceil(weeks_duration / WEEKS_PER_MONTH)

    subtotal = _money(subtotal)
    tax_amount = _money(subtotal * tax_pct / Decimal(100))
    total = subtotal + tax_amount

    return RecurringCost(
        base_rate=rate,
        rate_type=kind.value,
        days_per_week=days_per_week,
        weeks_duration=weeks_duration,
        total_days=total_days,
        subtotal=subtotal,
        tax_percentage=tax_pct,
        tax_amount=tax_amount,
        total=total,
        per_day_cost=_money(total / total_days),
    )


def recurring_cost_or_fallback(
    provider_id: Any,
    base_rate: Any,
    rate_type: Any,
    tax_percentage: Any,
    *,
    days_per_week: int,
    weeks_duration: int,
) -> RecurringCost:
    """Like ``calculate_recurring_cost`` but never fails for bad rate data.

    A provider whose rate cannot be priced gets ``FALLBACK_PRICE`` as its
    total and is flagged ``is_fallback``; the anomaly is logged.
    """
    try:
        return calculate_recurring_cost(
            base_rate,
            rate_type,
            tax_percentage,
            days_per_week=days_per_week,
            weeks_duration=weeks_duration,
        )
    except PriceComputationError as exc:
        logger.warning(
            "Recurring price unavailable for provider %s (%s); using fallback %s",
            provider_id,
            exc,
            FALLBACK_PRICE,
        )

    try:
        fallback_rate_type = RateType(rate_type).value
    except ValueError:
        fallback_rate_type = RateType.PER_MONTH.value

    total_days = days_per_week * weeks_duration
    return RecurringCost(
        base_rate=FALLBACK_PRICE,
        rate_type=fallback_rate_type,
        days_per_week=days_per_week,
        weeks_duration=weeks_duration,
        total_days=total_days,
        subtotal=FALLBACK_PRICE,
        tax_percentage=Decimal("0"),
        tax_amount=Decimal("0.00"),
        total=_money(FALLBACK_PRICE),
        per_day_cost=_money(FALLBACK_PRICE / total_days),
        is_fallback=True,
    )


# ---------------------------------------------------------------------------
# One-off booking estimate (booking flow)
# ---------------------------------------------------------------------------

@dataclass
class BookingEstimate:
    service_id: int
    service_name: str
    base_service_cost: Decimal
    filter_surcharges: list[FilterSurcharge] = field(default_factory=list)
    booking_charges: Decimal = BOOKING_CHARGES

    @property
    def total_filter_cost(self) -> Decimal:
        return _money(sum((s.cost for s in self.filter_surcharges), Decimal("0")))

    @property
    def estimated_total(self) -> Decimal:
        return _money(self.base_service_cost + self.total_filter_cost + self.booking_charges)

    @property
    def advance_amount(self) -> Decimal:
        return calculate_advance_amount(self.estimated_total)

    def as_price_breakdown(self) -> PriceBreakdown:
        return PriceBreakdown(
            base_amount=self.base_service_cost,
            filter_surcharges=list(self.filter_surcharges),
            tax_amount=Decimal("0.00"),
            total=self.estimated_total,
            advance_amount=self.advance_amount,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "service_name": self.service_name,
            "base_service_cost": float(self.base_service_cost),
            "filter_costs": [s.to_dict() for s in self.filter_surcharges],
            "total_filter_cost": float(self.total_filter_cost),
            "booking_charges": float(self.booking_charges),
            "estimated_total": float(self.estimated_total),
            "advance_amount": float(self.advance_amount),
        }


def _selection_field(selection: Any, key: str) -> Any:
    if isinstance(selection, Mapping):
        return selection.get(key)
    return getattr(selection, key, None)


def compute_booking_estimate(
    service_id: int,
    service_name: str,
    base_price: Decimal | None,
    customer_filters: Iterable[Any],
    modifiers_by_filter_id: Mapping[int, Mapping[str, Decimal]],
    modifiers_by_filter_name: Mapping[str, Mapping[str, Decimal]] | None = None,
) -> BookingEstimate:
    """Price a booking from the service's flat price and option modifiers.

    A selected value with no modifier on record costs nothing.  Filters whose
    selected values add nothing are left out of the surcharge list.
    """
    by_name = modifiers_by_filter_name or {}
    if base_price is None:
        logger.warning(
            "No base price on record for service %s (%s); using fallback %s",
            service_id,
            service_name,
            FALLBACK_PRICE,
        )
        base = FALLBACK_PRICE
    else:
        base = _money(Decimal(base_price))

    surcharges: list[FilterSurcharge] = []
    for selection in customer_filters:
        filter_id = _selection_field(selection, "filter_id")
        filter_name = str(_selection_field(selection, "filter_name") or "")
        values = [str(v) for v in (_selection_field(selection, "selected_values") or [])]

        options = modifiers_by_filter_id.get(filter_id) if filter_id is not None else None
        if options is None:
            options = by_name.get(filter_name, {})

        cost = sum((Decimal(options.get(v, 0)) for v in values), Decimal("0"))
        if cost > 0:
            surcharges.append(
                FilterSurcharge(
                    filter_id=filter_id,
                    filter_name=filter_name.replace("_", " ").upper(),
                    filter_value=", ".join(values),
                    cost=_money(cost),
                )
            )

    return BookingEstimate(
        service_id=service_id,
        service_name=service_name,
        base_service_cost=base,
        filter_surcharges=surcharges,
    )


async def estimate_booking_price(
    db: AsyncSession,
    service_id: int,
    customer_filters: Iterable[Any],
) -> BookingEstimate:
    """Load the service's base price and option modifiers, then price.

    Raises:
        ValidationError: If ``service_id`` is not a supported service.
        NotFoundError: If the service is not in the catalog.
    """
    validate_service_id(service_id)
    service = await db.get(ServiceType, service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found")

    stmt = (
        select(
            FilterOption.filter_id,
            ServiceFilter.filter_name,
            FilterOption.option_value,
            FilterOption.price_modifier,
        )
        .join(ServiceFilter, ServiceFilter.id == FilterOption.filter_id)
        .where(
            ServiceFilter.service_id == service_id,
            FilterOption.is_active.is_(True),
        )
    )
    rows = (await db.execute(stmt)).all()

    by_id: dict[int, dict[str, Decimal]] = {}
    by_name: dict[str, dict[str, Decimal]] = {}
    for filter_id, filter_name, option_value, price_modifier in rows:
        modifier = price_modifier if price_modifier is not None else Decimal("0")
        by_id.setdefault(filter_id, {})[option_value] = modifier
        by_name.setdefault(filter_name, {})[option_value] = modifier

    estimate = compute_booking_estimate(
        service_id,
        service.name,
        service.base_price,
        list(customer_filters),
        by_id,
        by_name,
    )
    logger.info(
        "Booking estimate for service %s: base=%s filters=%s total=%s",
        service_id,
        estimate.base_service_cost,
        estimate.total_filter_cost,
        estimate.estimated_total,
    )
    return estimate


# ---------------------------------------------------------------------------
# Cancellation policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CancellationQuote:
    allowed: bool
    refund_percentage: int
    refund_amount: Decimal
    cancellation_charges: Decimal
    policy: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "refund_percentage": self.refund_percentage,
            "refund_amount": float(self.refund_amount),
            "cancellation_charges": float(self.cancellation_charges),
            "policy": self.policy,
        }


def evaluate_cancellation(
    total: Decimal | int | float,
    hours_until_service: float,
) -> CancellationQuote:
    """Apply the refund tiers to a booking total.

    The refund is non-decreasing in ``hours_until_service``.
    """
    amount = _money(_to_decimal(total, "Total"))
    if amount < 0:
        raise ValidationError("Total cannot be negative")

    if hours_until_service <= 0:
        return CancellationQuote(
            allowed=False,
            refund_percentage=0,
            refund_amount=Decimal("0.00"),
            cancellation_charges=Decimal("0.00"),
            policy=CANCELLATION_BLOCKED_MESSAGE,
        )

    _, refund_fraction, message = next(
        tier for tier in CANCELLATION_TIERS if hours_until_service >= tier[0]
    )
    refund = _money(amount * refund_fraction)
    return CancellationQuote(
        allowed=True,
        refund_percentage=int(refund_fraction * 100),
        refund_amount=refund,
        cancellation_charges=amount - refund,
        policy=message,
    )
