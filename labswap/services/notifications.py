"""Notification sink for exchange lifecycle events.

Delivery is fire-and-forget: callers emit after their database commit and
never wait for, or depend on, the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from labswap.core.config import Config, get_config
from labswap.core.logging import LogContext, build_log_event
from labswap.database.models import ExchangeRequest
from labswap.tasks.celery_app import DELIVER_EVENT_TASK, celery_app

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Writes each event to the log; the default for local runs."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(
            "notification.%s",
            event,
            extra=build_log_event(
                f"notification.{event}",
                LogContext(
                    request_id=payload.get("request_id"),
                    request_number=payload.get("request_number"),
                    viewer_id=payload.get("actor_id"),
                ),
            ),
        )


class CeleryNotifier:
    """Hands each event to the delivery task on the Celery broker."""

    def __init__(self, app=celery_app) -> None:
        self.app = app

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.app.send_task(DELIVER_EVENT_TASK, args=[event, payload])


def build_notifier(config: Config | None = None) -> Notifier:
    cfg = config or get_config()
    if cfg.NOTIFIER_BACKEND == "celery":
        return CeleryNotifier()
    return LoggingNotifier()


def build_event_payload(request: ExchangeRequest, actor_id: int | None) -> dict[str, Any]:
    return {
        "request_id": request.id,
        "request_number": request.request_number,
        "status": request.status,
        "initiator_id": request.initiator_id,
        "responder_id": request.responder_id,
        "target_item_id": request.target_item_id,
        "actor_id": actor_id,
    }
