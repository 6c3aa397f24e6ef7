"""
Shared FastAPI dependencies for the HomeServe backend.

Request-scoped database sessions, the Redis client behind OTP rate
limiting, the injected collaborators (activity logger, SMS gateway, token
issuer) and the bearer-token dependency resolving the caller's identity.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from homeserve.core.audit import ActivityLogger, default_activity_logger
from homeserve.core.config import settings
from homeserve.integrations.sms import SmsGateway, get_sms_gateway
from homeserve.services import auth_service
from homeserve.services.auth_service import Identity, TokenIssuer
from homeserve.services.otpService import OTPRateLimiter

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session that commits when the request
    succeeds and rolls back when it raises.

    Routes take it through the ``DBSession`` alias::

        async def list_services(db: DBSession) -> ServiceListResponse: ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Return a shared async Redis client, creating it lazily."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def get_rate_limiter(redis: Annotated[Redis, Depends(get_redis)]) -> OTPRateLimiter:
    return OTPRateLimiter(redis)


RateLimiter = Annotated[OTPRateLimiter, Depends(get_rate_limiter)]


# ---------------------------------------------------------------------------
# Injected collaborators
# ---------------------------------------------------------------------------

def get_activity_logger() -> ActivityLogger:
    return default_activity_logger


def get_sms() -> SmsGateway:
    return get_sms_gateway()


def get_issuer() -> TokenIssuer:
    return auth_service.get_token_issuer()


Audit = Annotated[ActivityLogger, Depends(get_activity_logger)]
Sms = Annotated[SmsGateway, Depends(get_sms)]
Issuer = Annotated[TokenIssuer, Depends(get_issuer)]


# ---------------------------------------------------------------------------
# Bearer identity
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=True)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    db: DBSession,
    issuer: Issuer,
) -> Identity:
    """Verify the Bearer token and return the caller's identity.

    Raises 401 if the token is missing, expired, or belongs to an unknown
    or inactive customer.
    """
    try:
        return await auth_service.get_current_identity(db, credentials.credentials, issuer)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
