"""Background tasks for exchange requests: expiry sweep and event delivery."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from labswap.database.db import get_db_session
from labswap.services.exchange_request_service import ExchangeRequestService
from labswap.services.notifications import LoggingNotifier, build_notifier
from labswap.tasks.celery_app import DELIVER_EVENT_TASK, EXPIRE_STALE_TASK, celery_app
from labswap.tasks.hooks import after_task, before_task

logger = logging.getLogger(__name__)


@celery_app.task(name=EXPIRE_STALE_TASK)
def expire_stale_requests() -> dict[str, Any]:
    """Expire every overdue pending/viewed request; scheduled by celery beat."""
    context = {"trace_id": uuid.uuid4().hex}
    logger.info("task.start", extra=before_task(EXPIRE_STALE_TASK, context))

    with get_db_session() as session:
        service = ExchangeRequestService(db=session, notifier=build_notifier())
        expired = service.expire_stale()

    logger.info("task.finish", extra=after_task(EXPIRE_STALE_TASK, context, status="succeeded", expired=expired))
    return {"status": "succeeded", "expired": expired}


@celery_app.task(name=DELIVER_EVENT_TASK)
def deliver_exchange_event(event: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Hand an exchange event to the delivery channel.

    Channel mechanics (email, push) live outside this service; the worker
    records the event so downstream consumers can pick it up from the log.
    """
    context = {
        "request_id": payload.get("request_id"),
        "request_number": payload.get("request_number"),
        "trace_id": uuid.uuid4().hex,
    }
    logger.info("task.start", extra=before_task(DELIVER_EVENT_TASK, context))
    LoggingNotifier().notify(event, payload)
    logger.info("task.finish", extra=after_task(DELIVER_EVENT_TASK, context, status="delivered", notification=event))
    return {"status": "delivered", "event": event, "request_id": payload.get("request_id")}
