"""
HTTP surface tests through FastAPI's TestClient with in-memory adapters.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from slotbook.application.use_cases.slot_registry import SlotRegistry
from slotbook.core.config import settings
from slotbook.domain.entities.account import Account, MembershipTier
from slotbook.main import app
from slotbook.wiring import dependencies


BOOKING = {
    "resource_id": "court-3",
    "date": "2024-06-01",
    "hour": 10,
    "amount": "80",
    "client_name": "Ada Lovelace",
    "client_email": "ada@example.com",
}


@pytest.fixture
def client(store, workflow, scheduler, aggregator, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "cron-secret")
    app.dependency_overrides[dependencies.get_booking_workflow] = lambda: workflow
    app.dependency_overrides[dependencies.get_slot_registry] = lambda: SlotRegistry(store)
    app.dependency_overrides[dependencies.get_auto_charge_scheduler] = lambda: scheduler
    app.dependency_overrides[dependencies.get_billing_aggregator] = lambda: aggregator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _open(client, hour: int = 10) -> None:
    resp = client.put("/slots", json={"resource_id": "court-3", "date": "2024-06-01", "hour": hour})
    assert resp.status_code == 200


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_booking_request_and_conflict(client):
    """A second request for a held slot gets 409 naming the first booking."""
    _open(client)

    created = client.post("/bookings", json=BOOKING)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["amount"] == "80.00"

    clash = client.post("/bookings", json={**BOOKING, "client_email": "bob@example.com"})
    assert clash.status_code == 409
    assert clash.json()["detail"]["conflict"]["booking_id"] == body["id"]

    fetched = client.get(f"/bookings/{body['id']}")
    assert fetched.json()["id"] == body["id"]


def test_open_slots_listing(client):
    _open(client, 9)
    _open(client, 10)
    client.post("/bookings", json=BOOKING)

    resp = client.get("/slots/court-3", params={"from": "2024-06-01"})
    assert [s["hour"] for s in resp.json()] == [9]


def test_confirm_and_decline_by_token(client, store, workflow):
    _open(client)
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]
    token = workflow.action_token(store.get_booking(booking_id))

    first = client.post("/bookings/confirm", json={"token": token})
    again = client.post("/bookings/confirm", json={"token": token})
    assert first.status_code == 200
    assert first.json()["changed"] is True
    assert again.json()["changed"] is False

    declined = client.post("/bookings/decline", json={"token": token})
    assert declined.status_code == 409


def test_bad_token_is_400(client):
    resp = client.post("/bookings/confirm", json={"token": "forged.token"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "invalid or expired token"


def test_validation_and_missing(client):
    _open(client)
    assert client.post("/bookings", json={**BOOKING, "amount": "0"}).status_code == 400
    assert client.post("/bookings", json={**BOOKING, "hour": 25}).status_code == 422
    assert client.get("/bookings/missing").status_code == 404
    assert client.post("/bookings/missing/cancel").status_code == 404


def test_cancel_and_reschedule(client):
    _open(client, 10)
    _open(client, 11)
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]

    moved = client.post(f"/bookings/{booking_id}/reschedule", json={"date": "2024-06-01", "hour": 11})
    assert moved.json()["hour"] == 11

    cancelled = client.post(f"/bookings/{booking_id}/cancel")
    assert cancelled.json()["booking"]["status"] == "cancelled"


def test_cron_requires_secret(client):
    assert client.get("/cron/process-charges").status_code == 401
    assert client.get("/cron/process-charges", headers={"Authorization": "Bearer wrong"}).status_code == 401

    ok = client.get("/cron/process-charges", headers={"Authorization": "Bearer cron-secret"})
    assert ok.status_code == 200
    assert ok.json() == {"processed": 0, "results": []}


def test_ledger_and_billing(client, store):
    store.save_account(Account(id="tennis", tier=MembershipTier.TENNIS_SOCIAL))
    auth = {"Authorization": "Bearer cron-secret"}

    for amount in ("40", "15"):
        resp = client.post(
            "/transactions",
            json={"account_id": "tennis", "amount": amount, "department": "FOOD_AND_BEVERAGE"},
        )
        assert resp.status_code == 201
    assert client.post("/transactions", json={"account_id": "ghost", "amount": "5"}).status_code == 404

    run = client.post("/billing/process", json={"billing_date": "2024-07-01"}, headers=auth)
    assert run.json() == {"processed": 1, "skipped": 0, "errors": []}
    rerun = client.post("/billing/process", json={"billing_date": "2024-07-01"}, headers=auth)
    assert rerun.json()["processed"] == 0

    [statement] = store.list_statements("tennis")
    assert statement.total_amount == 305
    paid = client.post(f"/statements/{statement.id}/pay")
    assert paid.json()["is_paid"] is True


def test_cancel_auto_charge_endpoint(client, store):
    _open(client)
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]

    resp = client.post(f"/bookings/{booking_id}/cancel-auto-charge")
    assert resp.status_code == 200
    assert resp.json()["already_cancelled"] is False
    assert client.post(f"/bookings/{booking_id}/cancel-auto-charge").json()["already_cancelled"] is True


def test_charge_booking_now(client, store, workflow, payments):
    """An admin can capture a confirmed member booking right away, once."""
    store.save_account(
        Account(id="acct-1", tier=MembershipTier.FULL_GOLF, customer_ref="cus_1", payment_method_ref="pm_ok")
    )
    _open(client, 10)
    _open(client, 11)
    booking_id = client.post("/bookings", json={**BOOKING, "account_id": "acct-1"}).json()["id"]
    walk_in_id = client.post("/bookings", json={**BOOKING, "hour": 11}).json()["id"]

    assert client.post(f"/bookings/{booking_id}/charge").status_code == 409
    client.post("/bookings/confirm", json={"token": workflow.action_token(store.get_booking(booking_id))})

    charged = client.post(f"/bookings/{booking_id}/charge")
    assert charged.status_code == 200
    assert charged.json()["booking"]["payment_status"] == "paid"
    assert charged.json()["charge_id"] == "mock_pi_1"
    assert [c.idempotency_key for c in payments.charges] == [f"auto-charge-{booking_id}"]

    assert client.post(f"/bookings/{booking_id}/charge").status_code == 400
    assert client.post("/bookings/missing/charge").status_code == 404

    client.post("/bookings/confirm", json={"token": workflow.action_token(store.get_booking(walk_in_id))})
    assert client.post(f"/bookings/{walk_in_id}/charge").status_code == 400


def test_charge_booking_decline_is_402(client, store, workflow, payments):
    payments.declined_methods.add("pm_declined")
    store.save_account(Account(id="acct-1", tier=MembershipTier.FULL_GOLF, payment_method_ref="pm_declined"))
    _open(client)
    booking_id = client.post("/bookings", json={**BOOKING, "account_id": "acct-1"}).json()["id"]
    client.post("/bookings/confirm", json={"token": workflow.action_token(store.get_booking(booking_id))})

    resp = client.post(f"/bookings/{booking_id}/charge")

    assert resp.status_code == 402
    assert resp.json()["detail"] == "Card declined: Your card was declined."
