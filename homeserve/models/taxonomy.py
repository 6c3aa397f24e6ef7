"""
SQLAlchemy models for service_types, service_filters, and filter_options.

Service types form a fixed catalog (ids 1-5).  Each service exposes a set of
filters that customers select from and providers advertise against; the
options of selection filters carry an optional price modifier used by the
one-off booking estimate.
"""

import enum
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class FilterType(str, enum.Enum):
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    DROPDOWN = "dropdown"
    TEXT = "text"
    DATE = "date"
    TIME = "time"
    NUMBER = "number"


SELECTION_FILTER_TYPES = frozenset(
    {FilterType.SINGLE_SELECT, FilterType.MULTI_SELECT, FilterType.DROPDOWN}
)


class ServiceType(TimestampMixin, Base):
    __tablename__ = "service_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    base_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    filters: Mapped[list["ServiceFilter"]] = relationship(
        "ServiceFilter",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceFilter.display_order",
    )

    def __repr__(self) -> str:
        return f"<ServiceType(id={self.id}, name={self.name})>"


class ServiceFilter(TimestampMixin, Base):
    __tablename__ = "service_filters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_types.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filter_name: Mapped[str] = mapped_column(String(100), nullable=False)
    filter_label: Mapped[str] = mapped_column(String(200), nullable=False)
    filter_type: Mapped[FilterType] = mapped_column(
        Enum(
            FilterType,
            name="filter_type",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    # Section grouping for the customer-facing form
    section_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    section_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    section_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    placeholder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    help_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    service: Mapped["ServiceType"] = relationship("ServiceType", back_populates="filters")
    options: Mapped[list["FilterOption"]] = relationship(
        "FilterOption",
        back_populates="filter",
        cascade="all, delete-orphan",
        order_by="FilterOption.display_order",
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceFilter(id={self.id}, service_id={self.service_id}, "
            f"name={self.filter_name}, type={self.filter_type})>"
        )


class FilterOption(TimestampMixin, Base):
    __tablename__ = "filter_options"
    __table_args__ = (
        CheckConstraint("price_modifier >= 0", name="ck_filter_options_price_modifier"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_filters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_value: Mapped[str] = mapped_column(String(200), nullable=False)
    option_label: Mapped[str] = mapped_column(String(200), nullable=False)
    price_modifier: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    filter: Mapped["ServiceFilter"] = relationship("ServiceFilter", back_populates="options")

    def __repr__(self) -> str:
        return f"<FilterOption(id={self.id}, filter_id={self.filter_id}, value={self.option_value})>"
