from __future__ import annotations

from fastapi.testclient import TestClient

from jobguard.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_replaces_oversized_request_id():
    resp = client.get("/health", headers={"X-Request-ID": "x" * 500})

    assert resp.headers.get("X-Request-ID") != "x" * 500
    assert len(resp.headers["X-Request-ID"]) == 36


def test_error_body_carries_request_id():
    resp = client.post(
        "/v1/throttle/check",
        json={"key": "k", "preset": "login"},
        headers={"X-Request-ID": "corr-42"},
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["request_id"] == "corr-42"
