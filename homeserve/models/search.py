"""
SQLAlchemy models for search_history and customer_filter_selections.

``search_history`` is append-only: one row per provider search, holding the
query parameters that a later replay re-runs and a serialized snapshot of
the providers returned at the time.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class SelectionStatus(str, enum.Enum):
    FILTER_SELECTED = "filter_selected"
    BOOKING_CONFIRMED = "booking_confirmed"


class SearchHistory(Base):
    __tablename__ = "search_history"
    __table_args__ = (
        Index("ix_search_history_customer_searched_at", "customer_id", "searched_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    latitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    longitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    radius_km: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_types.id"), nullable=False
    )
    service_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Providers as returned at search time; never used to answer a replay
    providers_snapshot: Mapped[Any] = mapped_column(JSONB, nullable=False, default=list)
    providers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    searched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<SearchHistory(id={self.id}, customer_id={self.customer_id}, "
            f"service_id={self.service_id}, radius_km={self.radius_km})>"
        )


class CustomerFilterSelection(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "customer_filter_selections"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_types.id"), nullable=False
    )

    # JSON list of {filter_id, filter_name, filter_type, selected_values[]}
    selected_filters: Mapped[Any] = mapped_column(JSONB, nullable=False, default=list)

    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    radius_km: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    status: Mapped[SelectionStatus] = mapped_column(
        Enum(
            SelectionStatus,
            name="selection_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=SelectionStatus.FILTER_SELECTED,
    )

    def __repr__(self) -> str:
        return (
            f"<CustomerFilterSelection(customer_id={self.customer_id}, "
            f"service_id={self.service_id}, status={self.status})>"
        )
