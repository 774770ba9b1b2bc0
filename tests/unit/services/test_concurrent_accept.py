from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from labswap.core.exceptions import AlreadyFinalizedError, ExchangeError, InsufficientQuantityError
from labswap.database.models import Base, ExchangeRequest
from labswap.services.exchange_request_service import ExchangeRequestService


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'labswap.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    opened = []

    def _open():
        db = factory()
        opened.append(db)
        return db

    yield _open
    for db in opened:
        db.close()
    engine.dispose()


def _service(db, notifier):
    return ExchangeRequestService(db=db, notifier=notifier, ttl_days=7)


def _run_concurrently(*calls):
    barrier = threading.Barrier(len(calls))
    outcomes: list[object] = [None] * len(calls)

    def _worker(index, call):
        barrier.wait()
        try:
            outcomes[index] = call()
        except ExchangeError as exc:
            outcomes[index] = exc

    threads = [threading.Thread(target=_worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def test_competing_accepts_never_oversell(file_sessions, seed, notifier, custom_offer):
    setup = file_sessions()
    catalog = seed(setup)
    creator = _service(setup, notifier)
    first = creator.create(catalog.requester_id, catalog.target.id, 3, custom_offer)
    second = creator.create(catalog.outsider_id, catalog.target.id, 3, custom_offer)
    target_id, first_id, second_id = catalog.target.id, first.id, second.id

    owner = catalog.owner_id
    left = _service(file_sessions(), notifier)
    right = _service(file_sessions(), notifier)
    outcomes = _run_concurrently(
        lambda: left.respond(owner, first_id, "accept").status,
        lambda: right.respond(owner, second_id, "accept").status,
    )

    assert outcomes.count("accepted") == 1
    assert sum(isinstance(o, InsufficientQuantityError) for o in outcomes) == 1
    check = file_sessions()
    statuses = sorted(r.status for r in check.query(ExchangeRequest).all())
    assert statuses == ["accepted", "pending"]
    assert _service(check, notifier).ledger.available_quantity(target_id) == 2


def test_same_request_is_accepted_exactly_once(file_sessions, seed, notifier, custom_offer):
    setup = file_sessions()
    catalog = seed(setup)
    request = _service(setup, notifier).create(catalog.requester_id, catalog.target.id, 2, custom_offer)
    request_id, target_id, owner = request.id, catalog.target.id, catalog.owner_id

    left = _service(file_sessions(), notifier)
    right = _service(file_sessions(), notifier)
    outcomes = _run_concurrently(
        lambda: left.respond(owner, request_id, "accept").status,
        lambda: right.respond(owner, request_id, "accept").status,
    )

    assert outcomes.count("accepted") == 1
    assert sum(isinstance(o, AlreadyFinalizedError) for o in outcomes) == 1
    check = file_sessions()
    assert _service(check, notifier).ledger.available_quantity(target_id) == 3
    assert [e.action for e in check.get(ExchangeRequest, request_id).events] == ["create", "accept"]


def test_stale_writer_loses_compare_and_swap(file_sessions, seed, notifier, custom_offer):
    setup = file_sessions()
    catalog = seed(setup)
    request = _service(setup, notifier).create(catalog.requester_id, catalog.target.id, 1, custom_offer)

    # Both sessions hold the request as pending before either acts.
    slow = _service(file_sessions(), notifier)
    fast = _service(file_sessions(), notifier)
    slow.get(catalog.requester_id, request.id)
    fast.get(catalog.requester_id, request.id)

    fast.respond(catalog.owner_id, request.id, "accept")
    with pytest.raises(AlreadyFinalizedError):
        slow.respond(catalog.owner_id, request.id, "reject", {"rejection_reason": "Too late"})

    assert fast.ledger.available_quantity(catalog.target.id) == 4
