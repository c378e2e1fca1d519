"""
Tests for the HTTP routes
"""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.db import get_db
from app.services.notification_service import NotificationService
from app.utils.security import rate_limiter
from main import app as api_app

ADMIN = {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}

@pytest.fixture
def client(session_factory, notifier, blob_store, qr_service):
    """Test client bound to the per-test database and fake collaborators"""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    api_app.dependency_overrides[get_db] = override_get_db
    api_app.state.notifier = notifier
    api_app.state.messages = NotificationService()
    api_app.state.qr_service = qr_service
    api_app.state.blob_store = blob_store
    rate_limiter.reset()
    yield TestClient(api_app)
    api_app.dependency_overrides.clear()

def create_event(client, **overrides):
    payload = {
        "name": "Tech Meetup",
        "date": "2026-12-05T18:30:00",
        "venue": "Main Hall",
        "seat_limit": 2,
        "is_free": True,
        "custom_fields": [{"name": "Company.Name", "type": "text"}],
    }
    payload.update(overrides)
    response = client.post("/admin/events", json=payload, headers=ADMIN)
    assert response.status_code == 201
    return response.json()["data"]

def test_health_check(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_admin_requires_token(client):
    payload = {"name": "Gala", "date": "2026-12-05T18:30:00", "seat_limit": 5}
    response = client.post("/admin/events", json=payload, headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401

def test_public_event_listing(client):
    event = create_event(client)

    listing = client.get("/events").json()["data"]
    assert [e["id"] for e in listing] == [event["id"]]
    assert listing[0]["remaining_seats"] == 2
    assert "last_ticket_id" not in listing[0]

    assert client.get("/events/missing").json()["error_code"] == "EVENT_NOT_FOUND"

def test_free_registration_over_http(client, notifier):
    event = create_event(client)
    body = {"name": "Asha", "email": "asha@example.com", "custom_field_values": {"Company.Name": "Acme"}}

    response = client.post(f"/events/{event['id']}/register", json=body)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["ticket_id"] == 1
    assert data["notification_sent"] is True

    duplicate = client.post(f"/events/{event['id']}/register", json=body)
    assert duplicate.status_code == 409
    assert duplicate.json()["success"] is False
    assert duplicate.json()["error_code"] == "DUPLICATE_REGISTRATION"

    status = client.get("/registrations/status", params={"ticket_id": 1, "email": "asha@example.com"})
    assert status.status_code == 200
    status_data = status.json()["data"]
    assert status_data["state"] == "completed"
    assert status_data["registration"]["custom_field_values"] == {"Company.Name": "Acme"}

def test_fully_booked_over_http(client):
    event = create_event(client, seat_limit=1)
    client.post(f"/events/{event['id']}/register", json={"name": "A", "email": "a@example.com"})

    response = client.post(f"/events/{event['id']}/register", json={"name": "B", "email": "b@example.com"})

    assert response.status_code == 409
    assert response.json()["error_code"] == "FULLY_BOOKED"
    assert response.json()["kind"] == "CONFLICT"
    assert response.json()["message"] == "Event is fully booked"

def test_invalid_request_body(client):
    event = create_event(client)
    response = client.post(f"/events/{event['id']}/register", json={"name": "", "email": "not-an-email"})
    assert response.status_code == 422

def test_paid_flow_over_http(client, proof_image, notifier):
    event = create_event(client, is_free=False, fee=500, upi_id="meetup@upi")
    attendee = {"name": "Asha", "email": "asha@example.com", "phone": "9876543210"}

    register = client.post(f"/events/{event['id']}/register", json=attendee).json()["data"]
    assert register["is_paid"] is True
    assert register["fee"] == 500

    payment = client.post("/payments/create-payment", json={**attendee, "event_id": event["id"]}).json()["data"]
    reference = payment["payment_reference"]
    assert payment["upi_link"].startswith("upi://pay?pa=meetup@upi")

    proof = {
        **payment["registration_data"],
        "payment_screenshot": proof_image,
        "custom_field_values": '{"Company.Name": "Acme"}',
    }
    submitted = client.post("/payments/submit-proof", json=proof)
    assert submitted.status_code == 201
    registration_id = submitted.json()["data"]["registration_id"]
    assert submitted.json()["data"]["state"] == "awaiting_verification"

    retry = client.post("/payments/submit-proof", json=proof)
    assert retry.status_code == 200
    assert retry.json()["data"]["already_submitted"] is True

    check = client.post("/payments/check-payment-status", json={"payment_reference": reference, "email": "asha@example.com"})
    assert check.json()["data"]["has_proof"] is True

    verified = client.post(f"/admin/registrations/{registration_id}/verify", json={"verified": True}, headers=ADMIN)
    assert verified.status_code == 200
    assert verified.json()["data"]["registration"]["payment_status"] == "completed"
    assert verified.json()["data"]["registration"]["verified_by"] == "admin"

    status = client.get(f"/payments/payment-status/{reference}").json()["data"]
    assert status["payment_verified"] is True

    details = client.get(f"/admin/events/{event['id']}", headers=ADMIN).json()["data"]
    assert details["registered_users"] == 1
    assert details["verified"] == 1

def test_proof_upload_rejects_non_images(client):
    event = create_event(client, is_free=False, fee=100, upi_id="x@upi")
    response = client.post("/payments/submit-proof", json={
        "payment_reference": "YM1",
        "email": "asha@example.com",
        "name": "Asha",
        "event_id": event["id"],
        "payment_screenshot": "data:text/plain;base64,aGVsbG8=",
    })
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION"

def test_admin_update_and_export(client):
    event = create_event(client)
    client.post(f"/events/{event['id']}/register", json={"name": "Asha", "email": "asha@example.com"})

    too_small = client.patch(f"/admin/events/{event['id']}", json={"seat_limit": 0}, headers=ADMIN)
    assert too_small.status_code == 422

    updated = client.patch(f"/admin/events/{event['id']}", json={"seat_limit": 50}, headers=ADMIN)
    assert updated.json()["data"]["seat_limit"] == 50

    listing = client.get(f"/admin/events/{event['id']}/registrations", headers=ADMIN).json()["data"]
    assert len(listing["registrations"]) == 1
    assert listing["custom_fields"][0]["name"] == "Company.Name"

    export = client.get(f"/admin/events/{event['id']}/export.xlsx", headers=ADMIN)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert export.content[:2] == b"PK"

def test_maintenance_endpoints(client):
    event = create_event(client)
    client.post(f"/events/{event['id']}/register", json={"name": "Asha", "email": "asha@example.com"})

    backfill = client.post("/admin/maintenance/custom-fields/backfill", params={"event_id": event["id"]}, headers=ADMIN)
    assert backfill.json()["data"] == {"repaired": 1}

    restore = client.post("/admin/maintenance/custom-fields/restore-keys", headers=ADMIN)
    assert restore.json()["data"] == {"repaired": 0}

    resync = client.post(f"/admin/maintenance/ticket-counters/{event['id']}/resync", headers=ADMIN)
    assert resync.json()["data"] == {"last_ticket_id": 1}

def test_rate_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)

    codes = [
        client.get("/registrations/status", params={"ticket_id": 1, "email": "x@example.com"}).status_code
        for _ in range(3)
    ]

    assert codes == [404, 404, 429]
