"""
HomeServe SQLAlchemy Models
===========================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from homeserve.models import Base, Customer, Provider, SearchHistory
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Catalog --
from .taxonomy import (
    SELECTION_FILTER_TYPES,
    FilterOption,
    FilterType,
    ServiceFilter,
    ServiceType,
)

# -- Providers --
from .provider import (
    ConfigurationStatus,
    Provider,
    ProviderServiceConfiguration,
    RateType,
)

# -- Customers & OTP --
from .customer import Customer, OTPRequest

# -- Search --
from .search import CustomerFilterSelection, SearchHistory, SelectionStatus

# -- Bookings --
from .booking import Booking, BookingFilterSelection, BookingStatus, PaymentStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "SELECTION_FILTER_TYPES",
    "FilterOption",
    "FilterType",
    "ServiceFilter",
    "ServiceType",
    "ConfigurationStatus",
    "Provider",
    "ProviderServiceConfiguration",
    "RateType",
    "Customer",
    "OTPRequest",
    "CustomerFilterSelection",
    "SearchHistory",
    "SelectionStatus",
    "Booking",
    "BookingFilterSelection",
    "BookingStatus",
    "PaymentStatus",
]
