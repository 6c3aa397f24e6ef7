"""
Activity logging
================

Services record audit events (search performed, OTP requested / verified,
booking created / cancelled) through an ``ActivityLogger`` that is passed to
them explicitly.  The default implementation writes each event as a
structured record through the standard ``logging`` module and returns the
payload so callers and tests can inspect it.

Events recorded:
  - search.performed
  - search.replayed
  - otp.requested
  - otp.verified
  - booking.created
  - booking.cancelled
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ActivityLogger(Protocol):
    """Sink for audit events."""

    def log_activity(
        self,
        action: str,
        *,
        actor_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: Any = None,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]: ...


def _build_event(
    action: str,
    *,
    actor_id: uuid.UUID | None = None,
    entity_type: str | None = None,
    entity_id: Any = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct a standardised audit payload."""
    return {
        "action": action,
        "actor_id": str(actor_id) if actor_id else None,
        "entity_type": entity_type,
        "entity_id": str(entity_id) if entity_id is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details or {},
    }


class LoggingActivityLogger:
    """Writes audit events to a dedicated logger."""

    def __init__(self, logger_name: str = "homeserve.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log_activity(
        self,
        action: str,
        *,
        actor_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: Any = None,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        event = _build_event(
            action,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        self._logger.info(
            "Activity recorded: %s on %s %s by %s",
            action,
            event["entity_type"],
            event["entity_id"],
            event["actor_id"],
            extra={"audit_event": event},
        )
        return event


default_activity_logger = LoggingActivityLogger()
