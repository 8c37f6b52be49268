from fastapi.testclient import TestClient

from app.main import app


def test_health_endpoint():
    """Test health endpoint"""
    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_routes_require_messaging():
    """Inspection routes answer 503 until the lifespan has built the messaging components."""
    client = TestClient(app)
    response = client.get("/api/v1/outbox/stats")

    assert response.status_code == 503
    assert response.json()["success"] is False
