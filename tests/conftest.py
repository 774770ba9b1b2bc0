from __future__ import annotations

import copy
from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from labswap.database.models import Base, Item, Lab
from labswap.services.exchange_request_service import ExchangeRequestService

CUSTOM_OFFER = {
    "kind": "custom",
    "name": "Centrifuge 5424",
    "description": "Benchtop microcentrifuge, 24 x 1.5 ml rotor",
    "condition": "good",
    "quantity": 1,
    "estimated_value": 1800.0,
    "brand": "Eppendorf",
    "model": "5424",
    "specifications": [{"name": "Max speed", "value": "15000", "unit": "rpm"}],
    "warranty": {"available": True, "duration": 6, "unit": "months"},
}


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def notify(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def seed_catalog(session) -> SimpleNamespace:
    """Three labs; lab 2 lists the target, lab 1 owns the item it can offer."""
    requester = Lab(id=1, lab_name="Al Noor Diagnostics")
    owner = Lab(id=2, lab_name="Riyadh Clinical Lab")
    outsider = Lab(id=3, lab_name="Jeddah Pathology")
    session.add_all([requester, owner, outsider])

    target = Item(owner_id=2, name="PCR Thermocycler", listing_type="exchange", status="active", quantity=5)
    offered = Item(owner_id=1, name="Pipette set", listing_type="exchange", status="active", quantity=2)
    foreign = Item(owner_id=3, name="Autoclave", listing_type="exchange", status="active", quantity=4)
    for_sale = Item(owner_id=1, name="Microscope", listing_type="sale", status="active", quantity=3)
    inactive = Item(owner_id=1, name="Incubator", listing_type="exchange", status="inactive", quantity=3)
    own_listing = Item(owner_id=1, name="Spectrophotometer", listing_type="exchange", status="active", quantity=1)
    session.add_all([target, offered, foreign, for_sale, inactive, own_listing])
    session.commit()

    return SimpleNamespace(
        requester_id=1,
        owner_id=2,
        outsider_id=3,
        target=target,
        offered=offered,
        foreign=foreign,
        for_sale=for_sale,
        inactive=inactive,
        own_listing=own_listing,
    )


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def catalog(session):
    return seed_catalog(session)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(session, notifier):
    return ExchangeRequestService(db=session, notifier=notifier, ttl_days=7)


@pytest.fixture
def session_scope(session):
    """Stand-in for ``get_db_session()`` that yields the test session."""

    @contextmanager
    def _get_db_session():
        yield session

    return _get_db_session


@pytest.fixture
def custom_offer():
    return copy.deepcopy(CUSTOM_OFFER)


@pytest.fixture
def seed():
    return seed_catalog
