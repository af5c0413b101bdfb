"""Tests for correlation ID header on all responses."""

from fastapi.testclient import TestClient

from tokenspectrum.main import app
from tokenspectrum.middleware.rate_limit import limiter
from tokenspectrum.session import get_controller


def test_correlation_id_on_success(client):
    """Test that correlation ID is included on successful responses."""
    response = client.get("/health")
    assert response.status_code == 200
    assert "X-Correlation-ID" in response.headers
    assert len(response.headers["X-Correlation-ID"]) == 8  # 4 bytes as hex


def test_correlation_id_on_action_error(client):
    """Test that correlation ID is included on failed actions (HTTPException)."""
    response = client.post("/api/v1/assets/decrypt", json={"token_ids": [5]})
    assert response.status_code == 403
    assert "X-Correlation-ID" in response.headers
    assert len(response.headers["X-Correlation-ID"]) == 8


def test_correlation_id_on_validation_error(client):
    """Test that correlation ID is included on validation error (422) responses."""
    response = client.post("/api/v1/assets/decrypt", json={"token_ids": "all"})
    assert response.status_code == 422
    assert "X-Correlation-ID" in response.headers
    assert len(response.headers["X-Correlation-ID"]) == 8


def test_correlation_id_on_unhandled_exception(make_controller, alice, monkeypatch):
    """Test that correlation ID is included on 500 responses from unhandled exceptions."""
    controller = make_controller(alice)

    async def raise_error():
        raise RuntimeError("Unexpected RPC failure")

    monkeypatch.setattr(controller, "refresh", raise_error)
    app.dependency_overrides[get_controller] = lambda: controller
    limiter.enabled = False

    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/v1/portfolio")

            assert response.status_code == 500
            assert "X-Correlation-ID" in response.headers
            assert len(response.headers["X-Correlation-ID"]) == 8
            assert response.json()["detail"] == "Internal server error"
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


def test_correlation_ids_unique_across_requests(client):
    """Test that each request gets a unique correlation ID."""
    response1 = client.get("/health")
    response2 = client.get("/health")

    corr_id_1 = response1.headers.get("X-Correlation-ID")
    corr_id_2 = response2.headers.get("X-Correlation-ID")

    assert corr_id_1 != corr_id_2, "Correlation IDs should be unique across requests"
