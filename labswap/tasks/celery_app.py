"""Celery application bootstrap."""

from __future__ import annotations

import os

from celery import Celery

from labswap.core.config import get_config

EXPIRE_STALE_TASK = "labswap.expire_stale_requests"
DELIVER_EVENT_TASK = "labswap.deliver_exchange_event"

config = get_config()

celery_app = Celery(
    "labswap",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["labswap.tasks.exchange_tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    beat_schedule={
        "expire-stale-exchange-requests": {
            "task": EXPIRE_STALE_TASK,
            "schedule": float(config.EXPIRY_SWEEP_INTERVAL_SECONDS),
        },
    },
)

# Local/dev convenience: run tasks synchronously when requested.
if os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() in {"1", "true", "yes", "on"}:
    celery_app.conf.task_always_eager = True
