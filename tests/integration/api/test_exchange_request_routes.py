from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from labswap.core.dependencies import get_db_session, get_notifier
from labswap.database.models import Base
from labswap.main import create_app

BASE = "/api/v1/exchange-requests"


@pytest.fixture
def api(seed, notifier):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = TestingSessionLocal()
    catalog = seed(setup)
    ids = {
        "requester": catalog.requester_id,
        "owner": catalog.owner_id,
        "outsider": catalog.outsider_id,
        "target": catalog.target.id,
        "offered": catalog.offered.id,
        "own_listing": catalog.own_listing.id,
    }
    setup.close()

    def _override_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app = create_app()
    app.dependency_overrides[get_db_session] = _override_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    client = TestClient(app)
    yield client, ids
    engine.dispose()


def _as(lab_id: int) -> dict[str, str]:
    return {"X-Lab-Id": str(lab_id)}


def _create(client, ids, offer, quantity=1):
    response = client.post(
        BASE,
        json={"target_item_id": ids["target"], "requested_quantity": quantity, "offer": offer},
        headers=_as(ids["requester"]),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(api):
    client, _ = api
    assert client.get("/api/v1/health").json()["status"] == "ok"


def test_full_negotiation_over_http(api, notifier, custom_offer):
    client, ids = api
    created = _create(client, ids, custom_offer, quantity=3)
    assert created["status"] == "pending"
    assert created["is_receiver"] is False
    assert created["allowed_actions"] == ["withdraw"]
    assert created["history"][0]["action"] == "create"

    viewed = client.get(f"{BASE}/{created['id']}", headers=_as(ids["owner"])).json()
    assert viewed["status"] == "viewed"
    assert viewed["is_receiver"] is True
    assert viewed["allowed_actions"] == ["accept", "reject", "counter_offer"]

    countered = client.post(
        f"{BASE}/{created['id']}/respond",
        json={"action": "counter_offer", "counter_offer": {"message": "Two units", "proposed_quantity": 2}},
        headers=_as(ids["owner"]),
    )
    assert countered.status_code == 200
    assert countered.json()["counter_offer"]["proposed_quantity"] == 2

    accepted = client.post(
        f"{BASE}/{created['id']}/respond",
        json={"action": "accept"},
        headers=_as(ids["requester"]),
    )
    body = accepted.json()
    assert body["status"] == "accepted"
    assert [event["to_status"] for event in body["history"]] == ["pending", "viewed", "counter_offer", "accepted"]
    assert notifier.names == ["created", "viewed", "counter_offer", "accepted"]


def test_envelope_offer_form_is_accepted(api):
    client, ids = api
    created = _create(client, ids, {"existing_item": {"item_id": ids["offered"], "quantity": 1}})
    assert created["offer_kind"] == "existing_item"
    assert created["offered_item_id"] == ids["offered"]


@pytest.mark.parametrize(
    "body,status_code,error_code",
    [
        ({"offer": {"existing_item": None, "custom": None}}, 422, "invalid_offer"),
        ({"requested_quantity": 50}, 409, "insufficient_quantity"),
        ({"target_item_id": 999}, 404, "not_found"),
        ({"requested_quantity": 0}, 422, "invalid_payload"),
    ],
)
def test_create_errors_map_to_envelopes(api, custom_offer, body, status_code, error_code):
    client, ids = api
    payload = {"target_item_id": ids["target"], "requested_quantity": 1, "offer": custom_offer, **body}
    response = client.post(BASE, json=payload, headers=_as(ids["requester"]))
    assert response.status_code == status_code
    assert response.json()["status"] == "error"
    assert response.json()["error_code"] == error_code


def test_self_target_is_rejected(api, custom_offer):
    client, ids = api
    response = client.post(
        BASE,
        json={"target_item_id": ids["own_listing"], "requested_quantity": 1, "offer": custom_offer},
        headers=_as(ids["requester"]),
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "self_target"


def test_missing_identity_is_unauthenticated(api):
    client, _ = api
    assert client.get(BASE).status_code == 401
    assert client.get(BASE, headers={"X-Lab-Id": "abc"}).json()["error_code"] == "unauthenticated"


def test_transition_errors_map_to_status_codes(api, custom_offer):
    client, ids = api
    created = _create(client, ids, custom_offer)
    url = f"{BASE}/{created['id']}"

    assert client.get(url, headers=_as(ids["outsider"])).status_code == 403
    assert client.get(f"{BASE}/unknown", headers=_as(ids["owner"])).status_code == 404

    wrong_role = client.post(f"{url}/respond", json={"action": "accept"}, headers=_as(ids["requester"]))
    assert wrong_role.status_code == 403
    assert wrong_role.json()["error_code"] == "unauthorized_action"

    withdrawn = client.post(f"{url}/withdraw", json={"reason": "Sourced elsewhere"}, headers=_as(ids["requester"]))
    assert withdrawn.json()["status"] == "withdrawn"

    finalized = client.post(
        f"{url}/respond",
        json={"action": "reject", "rejection_reason": "Too late"},
        headers=_as(ids["owner"]),
    )
    assert finalized.status_code == 409
    assert finalized.json()["error_code"] == "already_finalized"
    assert finalized.json()["constraint"] == "withdrawn.terminal"


def test_list_and_stats(api, custom_offer):
    client, ids = api
    first = _create(client, ids, custom_offer)
    _create(client, ids, custom_offer)
    client.post(f"{BASE}/{first['id']}/respond", json={"action": "accept"}, headers=_as(ids["owner"]))

    listing = client.get(BASE, params={"role": "received", "limit": 1}, headers=_as(ids["owner"])).json()
    assert listing["total"] == 2
    assert len(listing["items"]) == 1

    accepted = client.get(BASE, params={"status": "accepted"}, headers=_as(ids["requester"])).json()
    assert [item["id"] for item in accepted["items"]] == [first["id"]]

    stats = client.get(f"{BASE}/stats", headers=_as(ids["requester"])).json()
    assert stats == {"total": 2, "sent": 2, "received": 0, "accepted": 1, "pending": 1}

    assert client.get(BASE, params={"role": "everyone"}, headers=_as(ids["owner"])).status_code == 422
