"""
Pydantic v2 schemas for the OTP endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from homeserve.api.schemas.search import ProviderResult


class OTPRequestIn(BaseModel):
    mobile_number: str = Field(..., description="10-digit mobile number")


class OTPVerifyIn(BaseModel):
    mobile_number: str
    otp: str = Field(..., description="6-digit passcode")


class OTPIssuedData(BaseModel):
    masked_mobile: str
    otp_expires_at: datetime
    is_existing_customer: bool


class OTPIssuedResponse(BaseModel):
    success: bool = True
    message: str
    data: OTPIssuedData


class CustomerOut(BaseModel):
    id: uuid.UUID
    mobile_number: str
    full_name: Optional[str] = None
    is_new_customer: bool


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class OTPVerifyResponse(BaseModel):
    success: bool = True
    message: str
    state: str = Field(description="otp_verified_new_customer or otp_verified_returning_customer")
    customer: CustomerOut
    token: TokenOut
    has_search_history: bool = False
    data: list[ProviderResult] = Field(default_factory=list)
    search_details: Optional[dict[str, Any]] = Field(
        default=None, serialization_alias="searchDetails"
    )
