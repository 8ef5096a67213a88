from fastapi.testclient import TestClient

from src.main import app


def test_error_responses_include_request_id_in_body_and_header():
    client = TestClient(app)

    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404

    payload = r.json()
    assert "request_id" in payload
    assert payload["request_id"], payload

    assert r.headers.get("x-request-id") == payload["request_id"]


def test_caller_request_id_is_echoed():
    client = TestClient(app)

    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 200
    assert r.headers.get("x-request-id") == "req-123"


def test_validation_errors_use_the_envelope():
    client = TestClient(app)

    r = client.post("/api/v1/auth/register", json={"phone_number": "not-a-phone"})
    assert r.status_code == 422

    payload = r.json()
    assert isinstance(payload["detail"], list)
    assert payload["request_id"]
