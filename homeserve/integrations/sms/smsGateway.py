"""
SMS Gateway
===========

Delivers one-time passcodes to customers' mobile numbers.

Two implementations of the ``SmsGateway`` protocol:

  - ``LoggingSmsGateway`` -- the default when no provider is configured;
    writes the delivery to the log with the number masked.  Development
    and tests only.
  - ``HttpSmsGateway``    -- POSTs to a JSON SMS API.  Transient failures
    (5xx, timeouts, connection errors) are retried up to ``_MAX_RETRIES``
    times with exponential backoff; 4xx responses fail immediately.

The gateway is chosen by ``get_sms_gateway()`` from ``SMS_API_URL``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

import httpx

from homeserve.core.config import settings
from homeserve.core.exceptions import HomeServeError

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_INITIAL_BACKOFF_SECONDS = 0.5  # doubles each retry: 0.5, 1.0, 2.0
_REQUEST_TIMEOUT_SECONDS = 10.0


class SmsDeliveryError(HomeServeError):
    """Raised when the SMS provider rejects or never acknowledges a message."""

    status_code = 502
    code = "SMS_DELIVERY_FAILED"

    def __init__(self, message: str, status: int | None = None, raw: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.raw = raw


class SmsGateway(Protocol):
    async def send_otp(self, mobile_number: str, code: str, expires_at: datetime) -> None: ...


def mask_mobile(mobile_number: str) -> str:
    """Replace every digit but the last three with ``X``."""
    head, tail = mobile_number[:-3], mobile_number[-3:]
    return "".join("X" if ch.isdigit() else ch for ch in head) + tail


def render_otp_message(code: str, expires_at: datetime) -> str:
    return (
        f"{code} is your HomeServe verification code. "
        f"It expires at {expires_at:%H:%M} UTC. Do not share it with anyone."
    )


class LoggingSmsGateway:
    async def send_otp(self, mobile_number: str, code: str, expires_at: datetime) -> None:
        logger.info(
            "SMS gateway not configured; OTP for %s expires at %s",
            mask_mobile(mobile_number),
            expires_at.isoformat(),
        )


class HttpSmsGateway:
    def __init__(self, api_url: str, api_key: str, sender_id: str) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._sender_id = sender_id

    async def send_otp(self, mobile_number: str, code: str, expires_at: datetime) -> None:
        payload = {
            "sender": self._sender_id,
            "to": mobile_number,
            "message": render_otp_message(code, expires_at),
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        async with httpx.AsyncClient() as client:
            await self._post_with_retry(client, payload, headers)

        logger.info("OTP SMS delivered to %s", mask_mobile(mobile_number))

    async def _post_with_retry(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> None:
        last_exception: Exception | None = None
        backoff = _INITIAL_BACKOFF_SECONDS

        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                response = await client.post(
                    self._api_url,
                    json=payload,
                    headers=headers,
                    timeout=_REQUEST_TIMEOUT_SECONDS,
                )
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_exception = exc
                logger.warning(
                    "SMS API transport error on attempt %d/%d: %s",
                    attempt,
                    _MAX_RETRIES,
                    exc,
                )
            else:
                if response.status_code < 400:
                    return
                if response.status_code < 500:
                    raise SmsDeliveryError(
                        f"SMS API client error: HTTP {response.status_code}",
                        status=response.status_code,
                        raw=response.text,
                    )
                last_exception = SmsDeliveryError(
                    f"SMS API server error: HTTP {response.status_code}",
                    status=response.status_code,
                    raw=response.text,
                )
                logger.warning(
                    "SMS API server error on attempt %d/%d: HTTP %d",
                    attempt,
                    _MAX_RETRIES,
                    response.status_code,
                )

            if attempt < _MAX_RETRIES:
                await asyncio.sleep(backoff)
                backoff *= 2

        raise SmsDeliveryError(
            f"SMS API request failed after {_MAX_RETRIES} attempts",
            raw=str(last_exception),
        )


def get_sms_gateway() -> SmsGateway:
    if settings.sms_api_url:
        return HttpSmsGateway(settings.sms_api_url, settings.sms_api_key, settings.sms_sender_id)
    return LoggingSmsGateway()
