import pytest

from jobpilot.db import mongodb

pytestmark = pytest.mark.integration


def test_request_id_is_echoed(client) -> None:
    response = client.get("/api/job-listings", headers={"x-request-id": "req-123"})

    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-123"


def test_request_id_is_generated(client) -> None:
    response = client.get("/api/job-listings")
    assert response.headers["x-request-id"]


def test_domain_errors_are_json(client) -> None:
    response = client.get("/api/job-listings/missing")

    assert response.status_code == 404
    assert response.json() == {"detail": "Job listing not found.", "success": False}


def test_health_reports_dependencies(client, monkeypatch) -> None:
    monkeypatch.setattr(mongodb, "test_mongo_connection", lambda: False)

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["mongodb"] == "disconnected"
    assert body["queued_events"] == 0
