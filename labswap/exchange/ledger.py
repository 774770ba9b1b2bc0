"""Inventory ledger: authoritative available quantity per listed item."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from labswap.core.exceptions import InsufficientQuantityError, InvalidPayloadError, NotFoundError
from labswap.core.logging import LogContext, build_log_event
from labswap.database.models import Item
from labswap.exchange.locks import item_lock

logger = logging.getLogger(__name__)


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InventoryLedger:
    """Quantity checks and decrements on ``items.quantity``.

    ``check_available`` is advisory and takes no lock. ``commit`` is the only
    hard enforcement point: a single conditional ``UPDATE`` that decrements
    only while enough quantity remains. It runs inside the caller's
    transaction; the caller commits or rolls back. ``release`` is the inverse
    of ``commit`` for callers that unwind an accepted exchange.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def available_quantity(self, item_id: int) -> int | None:
        return self.db.query(Item.quantity).filter(Item.id == item_id).scalar()

    def check_available(self, item_id: int, quantity: int) -> bool:
        available = self.available_quantity(item_id)
        return available is not None and available >= quantity

    def commit(self, item_id: int, quantity: int) -> None:
        """Decrement ``quantity`` units of ``item_id`` or raise InsufficientQuantityError."""
        if quantity < 1:
            raise InvalidPayloadError("Commit quantity must be >= 1.", constraint="commit.quantity_positive")

        with item_lock(item_id):
            result = self.db.execute(
                update(Item)
                .where(Item.id == item_id, Item.quantity >= quantity)
                .values(quantity=Item.quantity - quantity, last_updated=_utcnow_naive())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = self.available_quantity(item_id)
                if available is None:
                    raise NotFoundError(f"Item {item_id} does not exist.", constraint="item.exists")
                raise InsufficientQuantityError(
                    f"Item {item_id} has {available} available, {quantity} requested.",
                    constraint="item.quantity_available",
                )

        logger.info(
            "inventory.committed",
            extra=build_log_event("inventory.committed", LogContext(item_id=item_id), quantity=quantity),
        )

    def release(self, item_id: int, quantity: int) -> None:
        """Return ``quantity`` units to ``item_id``.

        Public compensating step for ``commit``, used by callers that undo an
        exchange after it was accepted (downstream execution failing, for
        instance). The negotiation service never calls it: a failed acceptance
        rolls its own decrements back with the transaction.
        """
        if quantity < 1:
            raise InvalidPayloadError("Release quantity must be >= 1.", constraint="release.quantity_positive")

        with item_lock(item_id):
            result = self.db.execute(
                update(Item)
                .where(Item.id == item_id)
                .values(quantity=Item.quantity + quantity, last_updated=_utcnow_naive())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundError(f"Item {item_id} does not exist.", constraint="item.exists")

        logger.info(
            "inventory.released",
            extra=build_log_event("inventory.released", LogContext(item_id=item_id), quantity=quantity),
        )
