from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import Fixture
from session_service.app.config import SessionConfig
from session_service.app.exceptions import InfraUnavailable
from session_service.app.main import create_app


@pytest.fixture
def app(fx: Fixture):
    return create_app(container=fx.container)


def _client(app) -> TestClient:
    return TestClient(app)


def _login(client: TestClient, user_id: str = "user-1", *, platform: str = "web", force: bool = False):
    return client.post(
        "/api/v1/sessions",
        json={"user_id": user_id, "claims": {"nickname": "fan"}, "force": force},
        headers={"X-Platform": platform, "User-Agent": "Mozilla/5.0 (Macintosh) Chrome/120.0"},
    )


def test_health(app) -> None:
    response = _client(app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-Id"]


def test_login_sets_cookie_and_me_returns_session(app) -> None:
    client = _client(app)

    response = _login(client)

    assert response.status_code == 200
    body = response.json()
    assert body["platform"] == "web"
    assert body["previous_session_terminated"] is False
    set_cookie = response.headers["set-cookie"]
    assert "sid=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "Max-Age=86400" in set_cookie

    me = client.get("/api/v1/sessions/me")
    assert me.status_code == 200
    assert me.json()["user_id"] == "user-1"
    assert me.json()["claims"] == {"nickname": "fan"}
    assert me.json()["verified"] is True


def test_me_without_cookie_is_unauthenticated(app) -> None:
    response = _client(app).get("/api/v1/sessions/me")

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_UNAUTHORIZED"


def test_second_login_invalidates_first_device(app) -> None:
    first = _client(app)
    second = _client(app)
    _login(first)

    response = _login(second)
    assert response.json()["previous_session_terminated"] is True
    assert response.json()["terminated_device_name"] == "Chrome on macOS"

    me = first.get("/api/v1/sessions/me")
    assert me.status_code == 401
    assert me.json()["code"] == "AUTH_SESSION_INVALIDATED"
    assert "Max-Age=0" in me.headers["set-cookie"]

    assert second.get("/api/v1/sessions/me").status_code == 200


def test_login_while_logged_in_requires_force(app) -> None:
    client = _client(app)
    _login(client)

    rejected = _login(client)
    assert rejected.status_code == 400
    assert rejected.json()["code"] == "AUTH_ALREADY_LOGGED_IN"

    forced = _login(client, force=True)
    assert forced.status_code == 200
    assert client.get("/api/v1/sessions/me").status_code == 200


def test_list_and_remove_other_device(app) -> None:
    web = _client(app)
    mobile = _client(app)
    _login(web)
    _login(mobile, platform="app")

    listed = web.get("/api/v1/sessions")
    assert listed.status_code == 200
    body = listed.json()
    assert body["total"] == 2
    current = [item for item in body["items"] if item["is_current"]]
    other = [item for item in body["items"] if not item["is_current"]]
    assert current[0]["platform"] == "web"
    assert other[0]["platform"] == "app"

    own = web.delete(f"/api/v1/sessions/{current[0]['session_ref']}")
    assert own.status_code == 400
    assert own.json()["code"] == "SESSION_CURRENT_NOT_DELETABLE"

    removed = web.delete(f"/api/v1/sessions/{other[0]['session_ref']}")
    assert removed.status_code == 200
    assert removed.json() == {"deleted": True}
    assert mobile.get("/api/v1/sessions/me").status_code == 401

    missing = web.delete(f"/api/v1/sessions/{other[0]['session_ref']}")
    assert missing.status_code == 404


def test_delete_other_sessions_keeps_current(app) -> None:
    web = _client(app)
    mobile = _client(app)
    _login(web)
    _login(mobile, platform="app")

    response = web.delete("/api/v1/sessions/others")

    assert response.json() == {"deleted_count": 1}
    assert web.get("/api/v1/sessions/me").status_code == 200
    assert mobile.get("/api/v1/sessions/me").status_code == 401


def test_logout_clears_cookie(app) -> None:
    client = _client(app)
    _login(client)

    response = client.delete("/api/v1/sessions/me")

    assert response.status_code == 200
    assert response.json() == {"deleted": True}
    assert "Max-Age=0" in response.headers["set-cookie"]


def test_gateway_delete_all_and_count(app) -> None:
    web = _client(app)
    mobile = _client(app)
    _login(web)
    _login(mobile, platform="app")
    gateway = _client(app)

    assert gateway.get("/api/v1/users/user-1/sessions/count").json() == {"user_id": "user-1", "count": 2}

    deleted = gateway.delete("/api/v1/users/user-1/sessions")
    assert deleted.json() == {"deleted_count": 2}

    assert gateway.get("/api/v1/users/user-1/sessions/count").json()["count"] == 0
    assert web.get("/api/v1/sessions/me").json()["code"] == "AUTH_SESSION_INVALIDATED"
    assert mobile.get("/api/v1/sessions/me").json()["code"] == "AUTH_SESSION_INVALIDATED"


def test_store_outage_returns_503(app, fx: Fixture) -> None:
    client = _client(app)
    _login(client)
    fx.store.fail_with = InfraUnavailable("redis down", operation="store_load")

    response = client.get("/api/v1/sessions/me")

    assert response.status_code == 503
    assert response.json()["code"] == "INFRA_UNAVAILABLE"


def test_rolling_session_reissues_cookie_after_throttle() -> None:
    fx = Fixture(session_config=SessionConfig(web_max_age_seconds=600, rolling=True, rolling_throttle_seconds=60))
    client = _client(create_app(container=fx.container))
    _login(client)

    fx.clock.advance(30)
    within_throttle = client.get("/api/v1/sessions/me")
    assert within_throttle.status_code == 200
    assert "set-cookie" not in within_throttle.headers

    fx.clock.advance(90)
    refreshed = client.get("/api/v1/sessions/me")

    assert refreshed.status_code == 200
    assert "Max-Age=600" in refreshed.headers["set-cookie"]
    assert fx.store.ttl(client.cookies["sid"]) == 600
