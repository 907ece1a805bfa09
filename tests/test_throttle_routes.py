"""Tests for the /v1/throttle endpoints."""

import pytest
from fastapi.testclient import TestClient

from jobguard.core.app_factory import create_app
from jobguard.core.config import StorageSettings
from jobguard.services.container import build_services

HEADERS = {"X-API-Key": "test-api-key-123"}
LOGIN_KEY = "login-candidate-a@x.com"


@pytest.fixture
def client(clock) -> TestClient:
    services = build_services(StorageSettings(backend="memory"), clock=clock)
    return TestClient(create_app(services=services))


def _check(client: TestClient, **body) -> dict:
    resp = client.post("/v1/throttle/check", json=body, headers=HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_first_check_is_allowed(client) -> None:
    data = _check(client, key=LOGIN_KEY, preset="login")

    assert data == {
        "allowed": True,
        "wait_ms": 0,
        "attempts_left": 4,
        "wait_time": None,
        "message": None,
    }


def test_login_lockout_message(client, clock) -> None:
    for _ in range(5):
        assert _check(client, key=LOGIN_KEY, preset="login")["allowed"] is True
        clock.advance(1100)

    data = _check(client, key=LOGIN_KEY, preset="login")

    assert data["allowed"] is False
    assert data["wait_ms"] == 300_000
    assert data["wait_time"] == "5 minutes"
    assert data["message"] == "Trop de tentatives. Réessayez dans 5 minutes."


def test_explicit_config(client, clock) -> None:
    config = {
        "min_interval_ms": 2000,
        "max_attempts": 3,
        "lockout_duration_ms": 60000,
        "window_duration_ms": 60000,
    }
    _check(client, key="k", config=config)
    clock.advance(500)

    data = _check(client, key="k", config=config)

    assert data["allowed"] is False
    assert data["wait_ms"] == 1500
    assert data["wait_time"] == "2 secondes"


def test_success_resets_key(client, clock) -> None:
    _check(client, key=LOGIN_KEY, preset="login")

    resp = client.post("/v1/throttle/success", json={"key": LOGIN_KEY}, headers=HEADERS)
    assert resp.status_code == 204

    assert _check(client, key=LOGIN_KEY, preset="login")["attempts_left"] == 4


def test_admin_clear(client) -> None:
    _check(client, key=LOGIN_KEY, preset="login")

    resp = client.delete(f"/v1/throttle/{LOGIN_KEY}", headers=HEADERS)
    assert resp.status_code == 204

    assert _check(client, key=LOGIN_KEY, preset="login")["allowed"] is True


def test_unknown_preset_is_400(client) -> None:
    resp = client.post("/v1/throttle/check", json={"key": "k", "preset": "nope"}, headers=HEADERS)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "unknown_throttle_preset"


@pytest.mark.parametrize(
    "body",
    [
        {"key": "k"},
        {
            "key": "k",
            "preset": "login",
            "config": {
                "min_interval_ms": 0,
                "max_attempts": 1,
                "lockout_duration_ms": 0,
                "window_duration_ms": 1,
            },
        },
        {"key": "", "preset": "login"},
        {"key": "k", "config": {"min_interval_ms": 0}},
    ],
)
def test_invalid_check_body_is_422(client, body) -> None:
    resp = client.post("/v1/throttle/check", json=body, headers=HEADERS)

    assert resp.status_code == 422


def test_presets_listing(client) -> None:
    resp = client.get("/v1/throttle/presets", headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["login"] == {
        "min_interval_ms": 1000,
        "max_attempts": 5,
        "lockout_duration_ms": 300000,
        "window_duration_ms": 300000,
    }


def test_requires_api_key(client) -> None:
    resp = client.post("/v1/throttle/check", json={"key": "k", "preset": "login"})

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "missing_api_key"
