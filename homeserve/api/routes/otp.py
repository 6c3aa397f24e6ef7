"""
OTP API Routes
==============

Mobile number verification for customers.

Routes:
  POST /api/v1/otp/request -- Send a passcode (5 per hour per number)
  POST /api/v1/otp/resend  -- Send a new passcode (3 per 5 minutes)
  POST /api/v1/otp/verify  -- Verify, start a session, replay the last search
"""

from __future__ import annotations

from fastapi import APIRouter

from homeserve.api.deps import Audit, DBSession, Issuer, RateLimiter, Sms
from homeserve.api.schemas.otp import (
    CustomerOut,
    OTPIssuedData,
    OTPIssuedResponse,
    OTPRequestIn,
    OTPVerifyIn,
    OTPVerifyResponse,
    TokenOut,
)
from homeserve.api.schemas.search import ProviderResult
from homeserve.services import customerSessionService, otpService
from homeserve.services.customerSessionService import VerificationState

router = APIRouter(prefix="/otp", tags=["OTP"])


def _issued_response(message: str, issued: otpService.OTPIssued) -> OTPIssuedResponse:
    return OTPIssuedResponse(
        message=message,
        data=OTPIssuedData(
            masked_mobile=issued.masked_mobile,
            otp_expires_at=issued.expires_at,
            is_existing_customer=issued.is_existing_customer,
        ),
    )


@router.post(
    "/request",
    response_model=OTPIssuedResponse,
    summary="Request a one-time passcode",
    description=(
        "Sends a 6-digit passcode valid for 10 minutes. Limited to 5 requests "
        "per hour per mobile number; excess requests get 429 with retryAfter."
    ),
)
async def request_otp(
    db: DBSession,
    limiter: RateLimiter,
    sms: Sms,
    audit: Audit,
    body: OTPRequestIn,
) -> OTPIssuedResponse:
    issued = await otpService.request_otp(
        db,
        body.mobile_number,
        limiter=limiter,
        sms_gateway=sms,
        audit=audit,
    )
    return _issued_response("OTP sent successfully", issued)


@router.post(
    "/resend",
    response_model=OTPIssuedResponse,
    summary="Resend a one-time passcode",
    description="Replaces the current passcode. Limited to 3 requests per 5 minutes.",
)
async def resend_otp(
    db: DBSession,
    limiter: RateLimiter,
    sms: Sms,
    audit: Audit,
    body: OTPRequestIn,
) -> OTPIssuedResponse:
    issued = await otpService.resend_otp(
        db,
        body.mobile_number,
        limiter=limiter,
        sms_gateway=sms,
        audit=audit,
    )
    return _issued_response("OTP resent successfully", issued)


@router.post(
    "/verify",
    response_model=OTPVerifyResponse,
    summary="Verify a one-time passcode",
    description=(
        "On success returns the customer, a session token and, for a "
        "returning customer, their last search re-run against current "
        "providers. Failures: OTP_NOT_FOUND (404), OTP_EXPIRED, INVALID_OTP "
        "with remainingAttempts, MAX_ATTEMPTS_EXCEEDED."
    ),
)
async def verify_otp(
    db: DBSession,
    issuer: Issuer,
    audit: Audit,
    body: OTPVerifyIn,
) -> OTPVerifyResponse:
    session = await customerSessionService.verify_and_start_session(
        db,
        body.mobile_number,
        body.otp,
        token_issuer=issuer,
        audit=audit,
    )

    is_new = session.state is VerificationState.OTP_VERIFIED_NEW_CUSTOMER
    replay = session.replay
    if is_new:
        message = "OTP verified successfully. Welcome to HomeServe!"
    else:
        message = replay.message if replay else "Welcome back!"

    return OTPVerifyResponse(
        message=message,
        state=session.state.value,
        customer=CustomerOut(
            id=session.customer.id,
            mobile_number=session.customer.mobile_number,
            full_name=session.customer.full_name,
            is_new_customer=is_new,
        ),
        token=TokenOut(
            access_token=session.token.access_token,
            token_type=session.token.token_type,
            expires_at=session.token.expires_at,
        ),
        has_search_history=bool(replay and replay.has_history),
        data=[ProviderResult(**row) for row in replay.providers] if replay else [],
        search_details=replay.search_details if replay else None,
    )
