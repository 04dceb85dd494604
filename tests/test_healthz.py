from fastapi.testclient import TestClient


def test_health_check_success(client: TestClient):
    """Test health check endpoint returns correct format."""
    response = client.get("/v1/healthz")

    assert response.status_code == 200

    data = response.json()
    assert data["ok"] is True
    assert "data" in data

    health_data = data["data"]
    assert health_data["ok"] is True
    assert health_data["version"] == "1.0.0"
    assert health_data["environment"] == "development"
    assert health_data["queue_backend"] == "memory"
    assert health_data["database"]["connected"] is True


def test_health_check_reports_job_counts(client: TestClient):
    client.post("/v1/jobs", json={"name": "a", "job_type": "process"})
    created = client.post("/v1/jobs", json={"name": "b", "job_type": "analyze"})
    client.post(f"/v1/jobs/{created.json()['data']['id']}/cancel")

    jobs = client.get("/v1/healthz").json()["data"]["jobs"]

    assert jobs["by_status"] == {
        "pending": 1,
        "processing": 0,
        "completed": 0,
        "failed": 0,
        "cancelling": 1,
        "cancelled": 0,
    }
    assert jobs["backlog"] == 2


def test_health_check_response_structure(client: TestClient):
    """Test health check response envelope structure."""
    response = client.get("/v1/healthz")

    data = response.json()

    # Check response envelope structure
    required_keys = ["ok", "data", "message", "request_id"]
    for key in required_keys:
        assert key in data

    # Check that request ID is present in headers
    assert "X-Request-ID" in response.headers

