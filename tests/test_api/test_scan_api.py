"""
Tests for the scan endpoint.

These tests verify status codes and response bodies of the FastAPI app,
with the notifier wired to the fixture store and a console transport.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import app, reset_api_state
from tagscan.config import TagScanSettings
from tagscan.errors import TransportAuthError
from tagscan.models import ScanOutcome
from tagscan.notifier import build_notifier
from tagscan.recorder import ScanRecorder
from tagscan.transports import ConsoleTransport

SCAN_URL = "/api/pet-found"


@pytest.fixture
def api_client(notifier):
    """Test client with fresh state."""
    reset_api_state(notifier)
    yield TestClient(app)
    reset_api_state(None)


class TestHealthEndpoint:

    def test_health_check(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestScanEndpoint:

    def test_email_sent(self, api_client, store, transport, rex_pet_id):
        response = api_client.post(SCAN_URL, json={"petId": rex_pet_id})

        assert response.status_code == 200
        assert response.text == "Email sent"
        assert transport.get_sent_count() == 1

        events = ScanRecorder(store).history(rex_pet_id)
        assert len(events) == 1
        assert events[0].outcome == ScanOutcome.NOTIFIED
        assert events[0].emailed is True

    def test_throttled(self, api_client, store, clock, rex_pet_id):
        """A notified event 5 minutes ago with a 30 minute window throttles."""
        api_client.post(SCAN_URL, json={"petId": rex_pet_id})
        clock.advance(timedelta(minutes=5))

        response = api_client.post(SCAN_URL, json={"petId": rex_pet_id, "lat": 14.6, "lng": 121.0, "ua": "Safari"})

        assert response.status_code == 200
        assert response.text == "Throttled"
        events = ScanRecorder(store).history(rex_pet_id)
        assert len(events) == 2
        assert events[1].outcome == ScanOutcome.THROTTLED
        assert events[1].emailed is False
        assert events[1].ua == "Safari"

    def test_method_not_allowed(self, api_client):
        response = api_client.get(SCAN_URL)

        assert response.status_code == 405

    @pytest.mark.parametrize("body", [{}, {"lat": 1.0, "lng": 2.0}, {"petId": ""}])
    def test_missing_pet_id(self, api_client, body):
        response = api_client.post(SCAN_URL, json=body)

        assert response.status_code == 400
        assert response.text == "petId required"

    def test_no_body(self, api_client):
        response = api_client.post(SCAN_URL)

        assert response.status_code == 400
        assert response.text == "petId required"

    def test_malformed_body(self, api_client):
        response = api_client.post(SCAN_URL, json={"petId": "pet-001", "lat": "north"})

        assert response.status_code == 400
        assert response.text == "Invalid request body"

    @pytest.mark.parametrize("pet_id,status,text", [
        ("pet-unknown", 404, "Pet not found"),
        ("pet-003", 400, "Pet has no ownerID"),
        ("pet-004", 404, "Owner not found"),
        ("pet-005", 400, "Owner email missing"),
    ])
    def test_resolution_failures(self, api_client, store, pet_id, status, text):
        response = api_client.post(SCAN_URL, json={"petId": pet_id})

        assert response.status_code == status
        assert response.text == text
        assert store.count("scanEvents") == 0


class TestServerErrors:

    def test_delivery_failure(self, settings, store, clock, rex_pet_id):
        transport = ConsoleTransport(fail_with=TransportAuthError("invalid_grant"))
        reset_api_state(build_notifier(settings, store=store, transport=transport, clock=clock))
        try:
            response = TestClient(app).post(SCAN_URL, json={"petId": rex_pet_id})
        finally:
            reset_api_state(None)

        assert response.status_code == 500
        assert response.text == "Email delivery failed"
        assert "invalid_grant" not in response.text
        events = ScanRecorder(store).history(rex_pet_id)
        assert len(events) == 1
        assert events[0].outcome == ScanOutcome.FAILED
        assert events[0].emailed is False

    def test_misconfigured_transport(self, monkeypatch):
        monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
        settings = TagScanSettings(_env_file=None, email_transport="sendgrid")
        monkeypatch.setattr("api.main.get_settings", lambda: settings)
        reset_api_state(None)

        response = TestClient(app).post(SCAN_URL, json={"petId": "pet-001"})

        assert response.status_code == 500
        assert response.text == "Server misconfigured"

    def test_unexpected_error_is_hidden(self, notifier, monkeypatch, rex_pet_id):
        def explode(request):
            raise RuntimeError("secret internal detail")

        monkeypatch.setattr(notifier, "handle_scan", explode)
        reset_api_state(notifier)
        try:
            response = TestClient(app).post(SCAN_URL, json={"petId": rex_pet_id})
        finally:
            reset_api_state(None)

        assert response.status_code == 500
        assert response.text == "Server error"
