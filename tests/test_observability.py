from fastapi.testclient import TestClient

from app.main import create_app


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint(client, staff_headers):
    client.get("/api/doctors", headers=staff_headers)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "carepulse_api_requests_total" in response.text
    assert 'path="/api/doctors"' in response.text
    assert 'role="STAFF"' in response.text
    assert response.headers["content-type"].startswith("text/plain")


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_detailed_health(client):
    response = client.get("/health/detailed")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["sms"] == "mock"
    assert body["storage"] == "mock"


def test_detailed_health_reports_database_outage(client, seeded, monkeypatch):
    monkeypatch.setattr(seeded, "ping", lambda: False)
    response = client.get("/health/detailed")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
    assert response.json()["database"] == "disconnected"


def test_missing_auth_headers(client):
    response = client.get("/api/appointments")
    assert response.status_code == 401
    response = client.get(
        "/api/appointments", headers={"X-User-ID": "user_x", "X-User-Role": "ADMIN"}
    )
    assert response.status_code == 401


def test_rate_limit(settings, seeded):
    settings.rate_limit_requests = 2
    client = TestClient(create_app(settings, seeded))
    assert client.get("/health").status_code == 200
    assert client.get("/health").status_code == 200
    response = client.get("/health")
    assert response.status_code == 429
    assert response.json() == {"error": "RateLimited", "detail": "Rate limit exceeded"}
