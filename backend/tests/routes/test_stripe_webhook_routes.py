# backend/tests/routes/test_stripe_webhook_routes.py
"""HTTP tests for POST /api/v1/webhooks/stripe."""

import hashlib
import hmac
import json
import time

from fastapi.testclient import TestClient
import pytest

from studio_booking.api.dependencies.database import get_db
from studio_booking.api.dependencies.services import get_booking_policy
from studio_booking.core.enums import HoldStatus
from studio_booking.main import app

from tests.utils.booking_fixtures import insert_booking

# Matches the signing secret configured for the test run in conftest
WEBHOOK_SECRET = "whsec_test_secret"
WEBHOOK_PATH = "/api/v1/webhooks/stripe"


@pytest.fixture
def client(db, policy):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_policy] = lambda: policy
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def signed_post(client, event, secret=WEBHOOK_SECRET):
    payload = json.dumps(event).encode("utf-8")
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return client.post(
        WEBHOOK_PATH,
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": f"t={timestamp},v1={signature}",
        },
    )


def held_event(booking, event_id="evt_route_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": "payment_intent.amount_capturable_updated",
        "data": {
            "object": {
                "id": "pi_route",
                "object": "payment_intent",
                "metadata": {"booking_id": booking.id, "user_id": booking.artist_id},
            }
        },
    }


def test_held_event_is_applied(client, db, catalog, artist_id, window):
    booking = insert_booking(db, catalog, artist_id, *window)

    response = signed_post(client, held_event(booking))

    assert response.status_code == 200
    assert response.json() == {
        "status": "applied",
        "event_type": "payment_intent.amount_capturable_updated",
        "booking_id": booking.id,
        "message": None,
    }
    db.refresh(booking)
    assert booking.hold_status == HoldStatus.HELD.value
    assert booking.payment_intent_id == "pi_route"


def test_redelivery_is_acknowledged_as_duplicate(client, db, catalog, artist_id, window):
    booking = insert_booking(db, catalog, artist_id, *window)

    signed_post(client, held_event(booking))
    response = signed_post(client, held_event(booking))

    assert response.status_code == 200
    assert response.json()["status"] == "duplicate"


def test_unknown_event_is_acknowledged(client):
    response = signed_post(
        client,
        {"id": "evt_other", "object": "event", "type": "invoice.paid", "data": {"object": {}}},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_invalid_signature_is_rejected(client, db, catalog, artist_id, window):
    booking = insert_booking(db, catalog, artist_id, *window)

    response = signed_post(client, held_event(booking), secret="whsec_wrong")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"
    db.refresh(booking)
    assert booking.hold_status == HoldStatus.NONE.value


def test_missing_signature_is_rejected(client):
    response = client.post(WEBHOOK_PATH, content=b"{}")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"
