"""Process-local per-item locks for inventory commits.

These serialize acceptance critical sections inside one process. Across
processes the conditional decrement in ``InventoryLedger.commit`` is the
enforcement point; the locks only keep same-process writers from contending
on the database.

Locks are striped: item ids share a fixed pool of ``LOCK_STRIPES`` re-entrant
locks keyed by ``item_id % LOCK_STRIPES``, so memory stays bounded however
many items a worker touches. Always acquire several items through
``item_locks``, which takes stripes in ascending order.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from threading import RLock

LOCK_STRIPES = 64

_STRIPES: tuple[RLock, ...] = tuple(RLock() for _ in range(LOCK_STRIPES))


def stripe_for(item_id: int) -> int:
    return item_id % LOCK_STRIPES


@contextmanager
def item_lock(item_id: int) -> Iterator[None]:
    """Hold the lock for a single item. Re-entrant within a thread."""
    lock = _STRIPES[stripe_for(item_id)]
    lock.acquire()
    try:
        yield
    finally:
        lock.release()


@contextmanager
def item_locks(*item_ids: int | None) -> Iterator[None]:
    """Hold the locks for every given item, stripes acquired in ascending order."""
    stripes = sorted({stripe_for(item_id) for item_id in item_ids if item_id is not None})
    with ExitStack() as stack:
        for stripe in stripes:
            lock = _STRIPES[stripe]
            lock.acquire()
            stack.callback(lock.release)
        yield
