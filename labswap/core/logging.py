"""Structured logging helpers for exchange negotiation events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Normalized context fields expected in structured logs."""

    request_id: str | None = None
    request_number: str | None = None
    viewer_id: int | None = None
    item_id: int | None = None
    trace_id: str | None = None


def build_log_event(event: str, context: LogContext, **fields: Any) -> dict[str, Any]:
    """Build a normalized structured log payload."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "request_id": context.request_id,
        "request_number": context.request_number,
        "viewer_id": context.viewer_id,
        "item_id": context.item_id,
        "trace_id": context.trace_id,
    }
    payload.update(fields)
    return payload
