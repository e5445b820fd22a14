"""Health and metrics endpoints."""

from unittest.mock import patch


def test_health_is_public(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] is True
    assert body["cache_backend"] == "memory"
    assert body["environment"] == "test"
    assert response.headers["Cache-Control"] == "no-store"


def test_health_degraded_when_database_down(client):
    with patch.object(client.app.state.database, "ping", return_value=False):
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_metrics_exposed(client, customer_headers):
    client.get("/api/v1/consultants", headers=customer_headers)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]
    assert "slotbook_http_requests_total" in response.text
    assert "slotbook_prometheus_scrapes_total" in response.text
