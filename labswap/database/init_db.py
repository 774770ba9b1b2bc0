"""Schema creation for the exchange service tables."""

from __future__ import annotations

import logging

from labswap.database import db as db_module
from labswap.database.models import Base

logger = logging.getLogger(__name__)


def init_db(engine=None) -> None:
    """Create any missing tables on the active (or given) engine."""
    bind = engine or db_module.get_engine()
    Base.metadata.create_all(bind=bind)
    logger.info(
        "database.schema.ready",
        extra={"event": "database.schema.ready", "tables": sorted(Base.metadata.tables)},
    )


if __name__ == "__main__":
    from labswap.core.logging_config import configure_logging

    configure_logging()
    init_db()
