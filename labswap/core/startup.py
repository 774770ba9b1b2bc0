"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from labswap.core.config import get_config
from labswap.core.logging_config import configure_logging
from labswap.database.db import get_active_database_url, verify_database_connection
from labswap.database.init_db import init_db

logger = logging.getLogger(__name__)


def validate_startup_config() -> None:
    """Fail-fast config and connectivity checks."""
    config = get_config()
    database_ok = verify_database_connection()
    if not database_ok and config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    if not database_ok:
        logger.warning(
            "startup.database.connectivity_optional_failed",
            extra={"event": "startup.database.connectivity_optional_failed"},
        )

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": get_active_database_url().split("://", 1)[0],
            "notifier_backend": config.NOTIFIER_BACKEND,
        },
    )


def bootstrap() -> None:
    """Initialize logging, validate runtime configuration and create tables."""
    configure_logging()
    validate_startup_config()
    init_db()
