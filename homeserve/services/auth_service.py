"""
Authentication service for the HomeServe platform.

Session tokens are issued once a customer's OTP is verified.  Issuance and
verification go through the ``TokenIssuer`` protocol; the concrete
``JWTTokenIssuer`` signs HS256 tokens with PyJWT.  A token carries either a
customer or an admin identity.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from homeserve.core.config import settings
from homeserve.models.customer import Customer


class IdentityRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    subject_id: uuid.UUID
    role: IdentityRole = IdentityRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role is IdentityRole.ADMIN


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    expires_at: datetime
    token_type: str = "bearer"


class TokenIssuer(Protocol):
    def issue(self, identity: Identity) -> IssuedToken: ...

    def verify(self, token: str) -> Identity:
        """Return the identity in ``token`` or raise ``ValueError``."""
        ...


# ---------------------------------------------------------------------------
# JWT token generation
# ---------------------------------------------------------------------------

class JWTTokenIssuer:
    """Signs access tokens with a shared secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def issue(self, identity: Identity) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(minutes=self._expire_minutes)
        payload = {
            "sub": str(identity.subject_id),
            "role": identity.role.value,
            "type": "access",
            "exp": expires_at,
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return IssuedToken(access_token=token, expires_at=expires_at)

    def verify(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise ValueError("Access token has expired.")
        except jwt.InvalidTokenError:
            raise ValueError("Invalid access token.")

        if payload.get("type") != "access":
            raise ValueError("Invalid token type. Expected an access token.")

        subject = payload.get("sub")
        if subject is None:
            raise ValueError("Invalid token: missing subject.")
        try:
            subject_id = uuid.UUID(subject)
        except (ValueError, AttributeError, TypeError):
            raise ValueError("Invalid token: malformed subject.")

        try:
            role = IdentityRole(payload.get("role", IdentityRole.CUSTOMER.value))
        except ValueError:
            raise ValueError("Invalid token: unknown role.")

        return Identity(subject_id=subject_id, role=role)


_token_issuer: TokenIssuer | None = None


def get_token_issuer() -> TokenIssuer:
    """Return the process-wide issuer built from settings."""
    global _token_issuer
    if _token_issuer is None:
        _token_issuer = JWTTokenIssuer(
            settings.jwt_secret,
            settings.jwt_algorithm,
            settings.access_token_expire_minutes,
        )
    return _token_issuer


async def get_current_identity(
    db: AsyncSession,
    token: str,
    issuer: TokenIssuer,
) -> Identity:
    """Verify ``token`` and, for customers, check the account is active.

    Raises:
        ValueError: If the token is invalid or the customer is unknown or
            deactivated.
    """
    identity = issuer.verify(token)
    if identity.is_admin:
        return identity

    customer = await db.get(Customer, identity.subject_id)
    if customer is None:
        raise ValueError("Customer not found.")
    if not customer.is_active:
        raise ValueError("Account is no longer active.")
    return identity
