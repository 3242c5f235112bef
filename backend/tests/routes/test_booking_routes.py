# backend/tests/routes/test_booking_routes.py
"""
HTTP tests for slot locks, availability and the booking lifecycle.

The app runs against the per-test SQLite session and a fake payment gateway
through FastAPI dependency overrides.
"""

from datetime import timedelta

from fastapi.testclient import TestClient
import pytest

from studio_booking.api.dependencies.database import get_db
from studio_booking.api.dependencies.services import get_booking_policy, get_payment_gateway
from studio_booking.core.enums import HoldStatus
from studio_booking.main import app
from studio_booking.repositories.booking_repository import BookingRepository

from tests.utils.booking_fixtures import BOOKING_DAY, local_at, new_id


@pytest.fixture
def client(db, policy, gateway):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_policy] = lambda: policy
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth(user_id):
    return {"X-User-Id": user_id}


def window_body(catalog, start=None, end=None, with_engineer=True):
    return {
        "room_id": catalog.room.id,
        "engineer_id": catalog.engineer_id if with_engineer else None,
        "start_at": (start or local_at(14)).isoformat(),
        "end_at": (end or local_at(16)).isoformat(),
    }


class TestSlotLockRoutes:
    def test_acquire_lock(self, client, catalog, artist_id):
        response = client.post(
            "/api/v1/slot-locks", json=window_body(catalog), headers=auth(artist_id)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["locked_by"] == artist_id
        assert data["room_id"] == catalog.room.id
        assert data["engineer_id"] == catalog.engineer_id

    def test_conflicting_lock(self, client, catalog, artist_id):
        client.post("/api/v1/slot-locks", json=window_body(catalog), headers=auth(artist_id))

        response = client.post(
            "/api/v1/slot-locks",
            json=window_body(catalog, local_at(15), local_at(17)),
            headers=auth(new_id()),
        )

        assert response.status_code == 409
        problem = response.json()
        assert problem["code"] == "SLOT_CONFLICT"
        assert problem["status"] == 409
        assert problem["instance"] == "/api/v1/slot-locks"
        assert problem["errors"]["resource"] == "room"

    def test_inverted_window_is_bad_request(self, client, catalog, artist_id):
        response = client.post(
            "/api/v1/slot-locks",
            json=window_body(catalog, local_at(16), local_at(14)),
            headers=auth(artist_id),
        )
        assert response.status_code == 400

    def test_unknown_field_is_rejected(self, client, catalog, artist_id):
        body = {**window_body(catalog), "price": 1}
        response = client.post("/api/v1/slot-locks", json=body, headers=auth(artist_id))

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_release_lock(self, client, catalog, artist_id):
        lock_id = client.post(
            "/api/v1/slot-locks", json=window_body(catalog), headers=auth(artist_id)
        ).json()["id"]

        stranger = client.delete(f"/api/v1/slot-locks/{lock_id}", headers=auth(new_id()))
        owner = client.delete(f"/api/v1/slot-locks/{lock_id}", headers=auth(artist_id))

        assert stranger.status_code == 404
        assert owner.status_code == 200
        assert owner.json() == {"lock_id": lock_id, "released": True}

    def test_requires_caller_identity(self, client, catalog):
        response = client.post("/api/v1/slot-locks", json=window_body(catalog))

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_unreachable_store_is_service_unavailable(
        self, client, unreachable_db, catalog, artist_id
    ):
        def override_get_db():
            yield unreachable_db

        app.dependency_overrides[get_db] = override_get_db

        response = client.post(
            "/api/v1/slot-locks", json=window_body(catalog), headers=auth(artist_id)
        )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "2"
        problem = response.json()
        assert problem["code"] == "STORE_UNAVAILABLE"
        assert problem["title"] == "Service Unavailable"
        assert problem["status"] == 503


class TestAvailabilityRoutes:
    def test_free_window(self, client, catalog, artist_id):
        response = client.post(
            "/api/v1/availability/check", json=window_body(catalog), headers=auth(artist_id)
        )

        assert response.status_code == 200
        assert response.json() == {"available": True, "reason": None, "resource": None}

    def test_closed_window_reports_reason(self, client, catalog, artist_id):
        body = window_body(catalog, local_at(23), local_at(1, day=BOOKING_DAY + timedelta(days=1)))
        response = client.post("/api/v1/availability/check", json=body, headers=auth(artist_id))

        assert response.status_code == 200
        data = response.json()
        assert data["available"] is False
        assert data["reason"] == "Bookings must start and end on the same day"


class TestBookingFlow:
    def test_full_lifecycle(self, client, db, gateway, catalog, artist_id):
        studio = auth(catalog.studio_owner_id)
        engineer = auth(catalog.engineer_id)
        artist = auth(artist_id)

        locked = client.post("/api/v1/slot-locks", json=window_body(catalog), headers=artist)
        assert locked.status_code == 201

        created = client.post("/api/v1/bookings", json=window_body(catalog), headers=artist)
        assert created.status_code == 201
        booking = created.json()
        booking_id = booking["id"]
        assert booking["status"] == "pending"
        assert booking["subtotal_cents"] == 16000
        assert booking["app_fee_cents"] == 1920
        assert booking["total_cents"] == 17920

        path = f"/api/v1/bookings/{booking_id}"
        assert client.get(path, headers=engineer).status_code == 200
        assert client.get(path, headers=auth(new_id())).status_code == 404

        confirmed = client.post(f"{path}/confirm-studio", headers=studio)
        assert confirmed.json()["status"] == "studio_confirmed"
        confirmed = client.post(f"{path}/confirm-engineer", headers=engineer)
        assert confirmed.json()["status"] == "engineer_confirmed"

        not_held = client.post(f"{path}/start", headers=studio)
        assert not_held.status_code == 422
        assert not_held.json()["code"] == "INVALID_STATE"

        hold = client.post(f"{path}/payment-hold", headers=artist)
        assert hold.status_code == 200
        assert hold.json()["payment_intent_id"] == f"pi_{booking_id}"

        BookingRepository(db).raise_hold_status(booking_id, HoldStatus.HELD)
        db.commit()

        started = client.post(f"{path}/start", headers=studio)
        assert started.status_code == 200
        assert started.json()["status"] == "in_progress"
        assert gateway.captures[0]["key"] == f"capture:{booking_id}"

        extended = client.post(
            f"{path}/extend",
            json={"additional_minutes": 30},
            headers=artist,
        )
        assert extended.status_code == 200
        # 30 min at 1.5x: room 3750, engineer 2250
        assert extended.json()["overtime_cost_cents"] == 6000
        assert extended.json()["booking"]["overtime_minutes"] == 30

        completed = client.post(f"{path}/complete", headers=engineer)
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"
        assert completed.json()["transfer_ids"] == {
            "studio": "tr_studio",
            "engineer": "tr_engineer",
        }

        tip = client.post(
            f"{path}/tip", json={"amount_cents": 2500}, headers=artist
        )
        assert tip.status_code == 201
        assert tip.json()["amount_cents"] == 2500

        again = client.post(
            f"{path}/tip", json={"amount_cents": 100}, headers=artist
        )
        assert again.status_code == 409
        assert again.json()["code"] == "DUPLICATE_TIP"

    def test_booking_without_lock(self, client, catalog, artist_id):
        response = client.post(
            "/api/v1/bookings", json=window_body(catalog), headers=auth(artist_id)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "SLOT_INVALID"

    def test_cancel_with_reason(self, client, catalog, artist_id):
        client.post("/api/v1/slot-locks", json=window_body(catalog), headers=auth(artist_id))
        booking_id = client.post(
            "/api/v1/bookings", json=window_body(catalog), headers=auth(artist_id)
        ).json()["id"]

        response = client.post(
            f"/api/v1/bookings/{booking_id}/cancel",
            json={"reason": "  Singer has a cold  "},
            headers=auth(artist_id),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancellation_reason"] == "Singer has a cold"

        twice = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth(artist_id))
        assert twice.status_code == 422

    def test_invalid_booking_id(self, client, artist_id):
        response = client.get("/api/v1/bookings/not-a-ulid", headers=auth(artist_id))

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unknown_booking(self, client, artist_id):
        response = client.get(f"/api/v1/bookings/{new_id()}", headers=auth(artist_id))

        assert response.status_code == 404
        assert response.json()["title"] == "Not Found"


def test_metrics_endpoint(client, catalog, artist_id):
    client.post("/api/v1/availability/check", json=window_body(catalog), headers=auth(artist_id))

    response = client.get("/api/v1/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "Studio Booking API"
