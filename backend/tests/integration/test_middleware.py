"""
Integration tests for FastAPI middleware (CORS, correlation_id, error envelope).
"""
import uuid

import pytest


@pytest.mark.integration
def test_cors_headers_included(client):
    response = client.get("/health", headers={"Origin": "http://localhost:5173"})
    
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.integration
def test_correlation_id_generated(client):
    response = client.get("/health")
    
    correlation_id = response.headers["X-Correlation-ID"]
    uuid.UUID(correlation_id)


@pytest.mark.integration
def test_correlation_id_preserved(client):
    custom_correlation_id = str(uuid.uuid4())
    
    response = client.get("/health", headers={"X-Correlation-ID": custom_correlation_id})
    
    assert response.headers["X-Correlation-ID"] == custom_correlation_id


@pytest.mark.integration
def test_not_found_error_envelope_carries_correlation_id(client):
    custom_correlation_id = str(uuid.uuid4())
    
    response = client.get(f"/bookings/{uuid.uuid4()}", headers={"X-Correlation-ID": custom_correlation_id})
    
    assert response.status_code == 404
    body = response.json()
    assert body["correlation_id"] == custom_correlation_id
    assert "not found" in body["error"]
    assert body["details"]["resource"] == "Booking"


@pytest.mark.integration
def test_request_validation_error_envelope(client):
    response = client.post("/technicians/recommendations", json={"service_area": "Accra"})
    
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Validation error"
    assert any("complexity" in error["loc"] for error in body["details"]["errors"])


@pytest.mark.integration
def test_unknown_route_envelope(client):
    response = client.get("/nowhere")
    
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"
