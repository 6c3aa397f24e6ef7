"""
SQLAlchemy models for providers and provider_service_configurations.

A provider offers one or more service types.  Each (provider, service) pair
has exactly one configuration row holding the rate, tax, availability flags
and the filter values the provider advertises.
"""

import enum
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RateType(str, enum.Enum):
    PER_HOUR = "per_hour"
    PER_DAY = "per_day"
    PER_WEEK = "per_week"
    PER_MONTH = "per_month"


class ConfigurationStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Provider(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "providers"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    mobile_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Current location; NULL means the provider is unlocated
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    service_configurations: Mapped[list["ProviderServiceConfiguration"]] = relationship(
        "ProviderServiceConfiguration",
        back_populates="provider",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, name={self.full_name})>"


class ProviderServiceConfiguration(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "provider_service_configurations"
    __table_args__ = (
        UniqueConstraint("provider_id", "service_id", name="uq_provider_service"),
    )

    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("service_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Pricing
    base_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    base_rate_type: Mapped[Optional[RateType]] = mapped_column(
        Enum(
            RateType,
            name="rate_type",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    tax_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )

    # Availability
    status: Mapped[ConfigurationStatus] = mapped_column(
        Enum(
            ConfigurationStatus,
            name="configuration_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ConfigurationStatus.ACTIVE,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # JSON list of {filter_id, filter_name, selected_values[]}
    selected_filters: Mapped[Any] = mapped_column(JSONB, nullable=False, default=list)

    provider: Mapped["Provider"] = relationship(
        "Provider", back_populates="service_configurations"
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderServiceConfiguration(provider_id={self.provider_id}, "
            f"service_id={self.service_id}, status={self.status})>"
        )
