"""
Unit tests for the session middleware and application factory.

Requests go through a real FastAPI app built by create_app(), with the
session store talking to the in-memory fake client.
"""

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from redis_session.config.settings import Settings
from redis_session.main import create_app
from redis_session.middleware.session import (
    REQUEST_ID_HEADER,
    new_session_id,
    sanitize_session_id,
)
from redis_session.session.redis_store import RedisSessionStore

SESSION_ID = "0123456789abcdef0123456789abcdef"


def build_app(settings, fake_client):
    store = RedisSessionStore(settings, client_factory=lambda: fake_client)
    app = create_app(settings=settings, store=store)

    @app.get("/session")
    async def show_session(request: Request):
        session = request.state.session
        return {
            "data": session.data.decode("utf-8"),
            "is_new": session.is_new,
        }

    @app.post("/session")
    async def update_session(request: Request):
        request.state.session.data = await request.body()
        return {"ok": True}

    @app.post("/logout")
    async def logout(request: Request):
        await request.state.session.destroy()
        return {"ok": True}

    return app


@pytest.fixture
def app(session_settings, fake_client):
    return build_app(session_settings, fake_client)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class TestSessionIds:
    """Tests for session id helpers."""

    def test_new_session_ids_are_valid_and_unique(self):
        ids = {new_session_id() for _ in range(50)}

        assert len(ids) == 50
        assert all(sanitize_session_id(session_id) for session_id in ids)

    @pytest.mark.parametrize(
        "raw",
        [None, "", "short", "has spaces in it but long enough", "x" * 300, "abc;def" * 5],
    )
    def test_rejects_malformed_ids(self, raw):
        assert sanitize_session_id(raw) is None

    def test_accepts_php_style_ids(self):
        assert sanitize_session_id("k7vq2c0pg3o4t2lq9jv0b8d5c1") == "k7vq2c0pg3o4t2lq9jv0b8d5c1"


class TestSessionMiddleware:
    """Tests for the per-request session lifecycle."""

    def test_new_visitor_gets_cookie_and_placeholder_record(self, client, fake_client):
        response = client.get("/session")

        assert response.status_code == 200
        assert response.json() == {"data": "", "is_new": True}

        session_id = response.cookies.get("PHPSESSID")
        assert sanitize_session_id(session_id)
        assert fake_client.data[f"SESS:{session_id}"] == b""
        assert fake_client.ttls[f"SESS:{session_id}"] == 1800

    def test_payload_round_trips_across_requests(self, client, fake_client):
        client.cookies.set("PHPSESSID", SESSION_ID)

        client.post("/session", content=b"cart=3")
        response = client.get("/session")

        assert response.json() == {"data": "cart=3", "is_new": False}
        assert fake_client.data[f"SESS:{SESSION_ID}"] == b"cart=3"

    def test_existing_session_does_not_reissue_cookie(self, client):
        client.cookies.set("PHPSESSID", SESSION_ID)

        response = client.get("/session")

        assert "set-cookie" not in response.headers

    def test_malformed_cookie_is_replaced(self, client):
        client.cookies.set("PHPSESSID", "bad id")

        response = client.get("/session")

        assert response.json()["is_new"] is True
        assert response.cookies.get("PHPSESSID") != "bad id"

    def test_logout_deletes_record_and_clears_cookie(self, client, fake_client):
        client.cookies.set("PHPSESSID", SESSION_ID)
        client.post("/session", content=b"user=alice")

        response = client.post("/logout")

        assert response.status_code == 200
        assert f"SESS:{SESSION_ID}" not in fake_client.data
        header = response.headers["set-cookie"]
        assert header.startswith("PHPSESSID=")
        assert "Max-Age=0" in header

    def test_store_is_opened_once_across_requests(self, client, fake_client):
        client.get("/session")
        client.get("/session")
        client.get("/session")

        assert len(fake_client.connect_calls) == 1

    def test_connection_failure_fails_loudly_and_logs_out(self, client, fake_client):
        fake_client.failures["connect"] = RedisConnectionError("Connection refused")
        client.cookies.set("PHPSESSID", SESSION_ID)

        response = client.get("/session")

        assert response.status_code == 503
        body = response.json()
        assert body["error_code"] == "SESSION_CONNECTION_ERROR"
        assert body["details"]["stage"] == "connect"
        assert body["request_id"] == response.headers[REQUEST_ID_HEADER]
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_write_failure_returns_store_error(self, client, fake_client):
        client.cookies.set("PHPSESSID", SESSION_ID)
        fake_client.data[f"SESS:{SESSION_ID}"] = b"x=1"
        fake_client.failures["set"] = RedisConnectionError("Connection reset by peer")

        response = client.get("/session")

        assert response.status_code == 503
        assert response.json()["error_code"] == "SESSION_STORE_ERROR"

    def test_request_id_is_propagated(self, client):
        response = client.get("/session", headers={REQUEST_ID_HEADER: "req-123"})

        assert response.headers[REQUEST_ID_HEADER] == "req-123"

    def test_gc_invoked_when_probability_is_one(self, fake_client):
        settings = Settings(session_key_prefix="SESS:", session_gc_probability=1.0)
        app = build_app(settings, fake_client)
        store = app.state.session_store
        calls = []

        async def spy_gc(max_lifetime_seconds):
            calls.append(max_lifetime_seconds)

        store.gc = spy_gc

        with TestClient(app) as client:
            client.get("/session")

        assert calls == [1800]

    def test_shutdown_closes_store(self, app, fake_client):
        with TestClient(app) as client:
            client.get("/session")

        assert fake_client.closed


class TestHealthEndpoints:
    """Tests for the health endpoints."""

    def test_health_skips_session_handling(self, client, fake_client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "set-cookie" not in response.headers
        assert fake_client.connect_calls == []

    def test_ready_when_store_answers(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["dependencies"][0] == {"name": "session_store", "healthy": True}

    def test_not_ready_when_store_unreachable(self, client, fake_client):
        fake_client.failures["connect"] = RedisConnectionError("Connection refused")

        response = client.get("/health/ready")

        assert response.status_code == 503
        dependency = response.json()["dependencies"][0]
        assert dependency["healthy"] is False
        assert dependency["error"] == "Session store is unreachable"
