"""
OTP Service
===========

Issues and verifies six-digit one-time passcodes for mobile login.

Issuance:
  - The mobile number must be a 10-digit Indian mobile (``^[6-9]\\d{9}$``).
  - Requests are rate limited per number with a Redis counter (``INCR``,
    ``EXPIRE`` on the first hit of a window):
        registration flow: 5 per hour
        login / resend:    3 per 5 minutes
    A rejected request carries ``retry_after`` = the window length.
  - One OTP row per number; a new code overwrites the old one, resets the
    attempt counter and expires after 10 minutes.  Only a SHA-256 digest of
    the code is stored.

Verification order:
  no live OTP -> OTP_NOT_FOUND; attempts used up -> MAX_ATTEMPTS_EXCEEDED;
  expired -> OTP_EXPIRED; otherwise one attempt is claimed atomically
  (``UPDATE ... SET attempts = attempts + 1 WHERE attempts < max RETURNING``)
  before the code is compared, so parallel guesses cannot exceed the limit.
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from redis.asyncio import Redis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.audit import ActivityLogger, default_activity_logger
from homeserve.core.config import settings
from homeserve.core.exceptions import (
    InvalidOTPError,
    MaxAttemptsExceededError,
    NotFoundError,
    OTPExpiredError,
    RateLimitError,
    ValidationError,
)
from homeserve.integrations.sms import SmsGateway, mask_mobile
from homeserve.models.customer import Customer, OTPRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")
OTP_PATTERN = re.compile(r"^\d{6}$")

OTP_EXPIRY = timedelta(minutes=settings.otp_expiry_minutes)
MAX_ATTEMPTS = settings.otp_max_attempts


class OTPFlow(str, enum.Enum):
    REGISTRATION = "registration"
    LOGIN = "login"


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


RATE_LIMIT_RULES: dict[OTPFlow, RateLimitRule] = {
    OTPFlow.REGISTRATION: RateLimitRule(
        settings.otp_registration_limit, settings.otp_registration_window_seconds
    ),
    OTPFlow.LOGIN: RateLimitRule(
        settings.otp_login_limit, settings.otp_login_window_seconds
    ),
}


# ---------------------------------------------------------------------------
# Validation & hashing
# ---------------------------------------------------------------------------

def validate_mobile_number(mobile_number: Any) -> str:
    if not isinstance(mobile_number, str) or not mobile_number.strip():
        raise ValidationError("Mobile number is required")
    mobile = mobile_number.strip()
    if not MOBILE_PATTERN.match(mobile):
        raise ValidationError("Please enter a valid 10-digit mobile number")
    return mobile


def validate_otp_format(otp: Any) -> str:
    if not isinstance(otp, str) or not OTP_PATTERN.match(otp.strip()):
        raise ValidationError("OTP must be a 6-digit number")
    return otp.strip()


def generate_otp() -> str:
    return f"{secrets.randbelow(900_000) + 100_000}"


def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class OTPRateLimiter:
    """Fixed-window request counter per (flow, mobile number)."""

    def __init__(
        self,
        redis: Redis,
        rules: dict[OTPFlow, RateLimitRule] | None = None,
    ) -> None:
        self._redis = redis
        self._rules = rules or RATE_LIMIT_RULES

    @staticmethod
    def key(flow: OTPFlow, mobile_number: str) -> str:
        return f"otp:rate:{flow.value}:{mobile_number}"

    async def hit(self, mobile_number: str, flow: OTPFlow) -> int:
        """Count one request; raise ``RateLimitError`` past the limit."""
        rule = self._rules[flow]
        key = self.key(flow, mobile_number)

        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, rule.window_seconds)

        if count > rule.limit:
            logger.warning(
                "OTP rate limit hit for %s on %s flow (%d/%d)",
                mask_mobile(mobile_number),
                flow.value,
                count,
                rule.limit,
            )
            raise RateLimitError(
                "Too many OTP requests. Please try again later.",
                retry_after=rule.window_seconds,
            )
        return count


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OTPIssued:
    mobile_number: str
    expires_at: datetime
    is_existing_customer: bool

    @property
    def masked_mobile(self) -> str:
        return mask_mobile(self.mobile_number)


async def request_otp(
    db: AsyncSession,
    mobile_number: str,
    *,
    limiter: OTPRateLimiter,
    sms_gateway: SmsGateway,
    flow: OTPFlow = OTPFlow.REGISTRATION,
    audit: ActivityLogger | None = None,
    now: datetime | None = None,
) -> OTPIssued:
    """Rate-limit, generate, store and send a new passcode.

    Raises:
        ValidationError: On a malformed mobile number.
        RateLimitError: When the number exceeded its window.
    """
    audit = audit or default_activity_logger
    mobile = validate_mobile_number(mobile_number)
    await limiter.hit(mobile, flow)

    now = now or datetime.now(timezone.utc)
    code = generate_otp()
    expires_at = now + OTP_EXPIRY

    result = await db.execute(select(OTPRequest).where(OTPRequest.mobile_number == mobile))
    otp_row = result.scalar_one_or_none()
    if otp_row is None:
        otp_row = OTPRequest(mobile_number=mobile, otp_hash=hash_otp(code), expires_at=expires_at)
        db.add(otp_row)
    else:
        otp_row.otp_hash = hash_otp(code)
        otp_row.expires_at = expires_at
        otp_row.verified = False
    otp_row.attempts = 0
    await db.flush()

    existing = await db.execute(select(Customer.id).where(Customer.mobile_number == mobile))
    is_existing_customer = existing.scalar_one_or_none() is not None

    await sms_gateway.send_otp(mobile, code, expires_at)

    audit.log_activity(
        "otp.requested",
        entity_type="mobile_number",
        entity_id=mask_mobile(mobile),
        details={"flow": flow.value, "expires_at": expires_at.isoformat()},
    )
    return OTPIssued(
        mobile_number=mobile,
        expires_at=expires_at,
        is_existing_customer=is_existing_customer,
    )


async def resend_otp(
    db: AsyncSession,
    mobile_number: str,
    *,
    limiter: OTPRateLimiter,
    sms_gateway: SmsGateway,
    audit: ActivityLogger | None = None,
    now: datetime | None = None,
) -> OTPIssued:
    """Issue a fresh code under the stricter login window."""
    return await request_otp(
        db,
        mobile_number,
        limiter=limiter,
        sms_gateway=sms_gateway,
        flow=OTPFlow.LOGIN,
        audit=audit,
        now=now,
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

async def verify_otp(
    db: AsyncSession,
    mobile_number: str,
    otp: str,
    *,
    now: datetime | None = None,
) -> OTPRequest:
    """Check ``otp`` for ``mobile_number`` and mark it verified.

    A mismatch is committed before ``InvalidOTPError`` is raised so the
    consumed attempt survives the request's rollback.

    Raises:
        ValidationError: On malformed input.
        NotFoundError: ``OTP_NOT_FOUND`` when there is no live code.
        MaxAttemptsExceededError: When all attempts are used.
        OTPExpiredError: When the code has expired.
        InvalidOTPError: On a mismatch, with the attempts remaining.
    """
    mobile = validate_mobile_number(mobile_number)
    code = validate_otp_format(otp)
    now = now or datetime.now(timezone.utc)

    result = await db.execute(select(OTPRequest).where(OTPRequest.mobile_number == mobile))
    otp_row = result.scalar_one_or_none()
    if otp_row is None or otp_row.verified:
        raise NotFoundError(
            "No OTP request found for this mobile number. Please request a new OTP.",
            code="OTP_NOT_FOUND",
        )
    if otp_row.attempts >= MAX_ATTEMPTS:
        raise MaxAttemptsExceededError()
    if _as_utc(otp_row.expires_at) <= now:
        raise OTPExpiredError()

    claimed = await db.execute(
        update(OTPRequest)
        .where(
            OTPRequest.id == otp_row.id,
            OTPRequest.attempts < MAX_ATTEMPTS,
            OTPRequest.verified.is_(False),
        )
        .values(attempts=OTPRequest.attempts + 1)
        .returning(OTPRequest.attempts)
    )
    attempts = claimed.scalar_one_or_none()
    if attempts is None:
        raise MaxAttemptsExceededError()

    if not hmac.compare_digest(otp_row.otp_hash, hash_otp(code)):
        await db.commit()
        remaining = max(MAX_ATTEMPTS - attempts, 0)
        logger.info(
            "OTP mismatch for %s (%d attempts remaining)", mask_mobile(mobile), remaining
        )
        raise InvalidOTPError(remaining)

    otp_row.verified = True
    await db.flush()
    logger.info("OTP verified for %s", mask_mobile(mobile))
    return otp_row
