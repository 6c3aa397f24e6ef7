"""HomeServe API -- Main Application Entry Point

Creates the FastAPI application, configures CORS middleware, maps the
domain error hierarchy onto the JSON error envelope and registers all API
route modules under the /api/v1 prefix.

Run with::

    uvicorn homeserve.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from homeserve.api.deps import close_redis
from homeserve.core.config import settings
from homeserve.core.exceptions import HomeServeError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared Redis client used by OTP rate limiting on shutdown."""
    yield
    await close_redis()


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

async def homeserve_error_handler(request: Request, exc: HomeServeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
            "details": [
                {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
                for e in errors
            ],
        },
    )


app.add_exception_handler(HomeServeError, homeserve_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness checks."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------

from homeserve.api.routes import bookings, otp, search, services  # noqa: E402

_prefix = settings.api_v1_prefix

app.include_router(search.router, prefix=_prefix)
app.include_router(otp.router, prefix=_prefix)
app.include_router(services.router, prefix=_prefix)
app.include_router(bookings.router, prefix=_prefix)
