"""
SQLAlchemy models for customers and otp_requests.

Customers authenticate with a mobile number and a one-time passcode.  There
is at most one live OTP row per mobile number; issuing a new passcode
overwrites the previous one and resets its attempt counter.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Customer(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "customers"

    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mobile_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    mobile_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # NULL until the first successful verification
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, mobile={self.mobile_number})>"


class OTPRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "otp_requests"

    mobile_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    # SHA-256 hex digest; the plain code is never stored
    otp_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<OTPRequest(mobile={self.mobile_number}, attempts={self.attempts}, "
            f"verified={self.verified})>"
        )
