"""
Domain exceptions for the HomeServe backend.

Every error a service raises derives from ``HomeServeError`` and carries the
HTTP status and machine-readable ``code`` it should surface as.  The FastAPI
exception handler in ``homeserve.main`` renders them into the standard
``{"success": false, "message": ..., "code": ...}`` envelope.
"""

from __future__ import annotations

from typing import Any


class HomeServeError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.extra: dict[str, Any] = extra or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "code": self.code,
            **self.extra,
        }


class ValidationError(HomeServeError):
    """Missing or out-of-range input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(HomeServeError):
    """Unknown customer, service, booking or OTP session."""

    status_code = 404
    code = "NOT_FOUND"


class PermissionDeniedError(HomeServeError):
    status_code = 403
    code = "FORBIDDEN"


class RateLimitError(HomeServeError):
    """Too many OTP requests for a mobile number inside the window."""

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, *, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(message, extra={"retryAfter": retry_after})


class OTPExpiredError(HomeServeError):
    status_code = 400
    code = "OTP_EXPIRED"

    def __init__(self) -> None:
        super().__init__("OTP has expired. Please request a new one.")


class MaxAttemptsExceededError(HomeServeError):
    status_code = 400
    code = "MAX_ATTEMPTS_EXCEEDED"

    def __init__(self) -> None:
        super().__init__("Maximum OTP attempts exceeded. Please request a new OTP.")


class InvalidOTPError(HomeServeError):
    """Passcode mismatch; reports how many attempts are left."""

    status_code = 400
    code = "INVALID_OTP"

    def __init__(self, remaining_attempts: int) -> None:
        self.remaining_attempts = remaining_attempts
        super().__init__(
            f"Invalid OTP. {remaining_attempts} attempts remaining.",
            extra={"remainingAttempts": remaining_attempts},
        )


class TransactionError(HomeServeError):
    """A multi-row write failed and was rolled back.

    The message shown to clients is generic; the underlying cause is only
    written to the log.
    """

    status_code = 500
    code = "TRANSACTION_FAILED"

    def __init__(self, message: str = "The operation could not be completed. Please try again.") -> None:
        super().__init__(message)
