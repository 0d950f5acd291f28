"""Tests for infrastructure and system endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisClientConnectionError

from earnpulse.config import Settings, get_settings
from earnpulse.core.dependencies import get_engine_state
from earnpulse.main import app


def _state(**overrides: object) -> MagicMock:
    state = MagicMock()
    state.redis = None
    state.db = None
    state.db_enabled = False
    state.relay_enabled = False
    state.scheduler.running = True
    state.manager.status.return_value = []
    state.bus.subscriber_count = 0
    state.started_at = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)
    for name, value in overrides.items():
        setattr(state, name, value)
    return state


@pytest.fixture()
def engine_state():
    state = _state()
    app.dependency_overrides[get_engine_state] = lambda: state
    yield state
    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    # ASGITransport skips the lifespan, so no engine is started
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestHealth:
    async def test_health(self, client: httpx.AsyncClient):
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}


class TestReady:
    async def test_ready_without_infrastructure(self, client: httpx.AsyncClient, engine_state):
        r = await client.get("/ready")

        assert r.json() == {
            "status": "ready",
            "redis": "disabled",
            "db": "disabled",
            "scheduler": "ok",
        }

    async def test_ready_with_redis_and_db(self, client: httpx.AsyncClient, engine_state):
        engine_state.redis = AsyncMock()
        engine_state.db = MagicMock()

        r = await client.get("/ready")

        body = r.json()
        assert body["status"] == "ready"
        assert body["redis"] == "ok"
        assert body["db"] == "ok"

    async def test_redis_ping_failure(self, client: httpx.AsyncClient, engine_state):
        engine_state.redis = AsyncMock()
        engine_state.redis.ping.side_effect = RedisClientConnectionError("gone")

        r = await client.get("/ready")

        assert r.json()["status"] == "not_ready"
        assert r.json()["redis"] == "error"

    async def test_scheduler_stopped(self, client: httpx.AsyncClient, engine_state):
        engine_state.scheduler.running = False

        r = await client.get("/ready")

        assert r.json()["status"] == "not_ready"
        assert r.json()["scheduler"] == "error"


class TestSystemStatus:
    async def test_status(self, client: httpx.AsyncClient, engine_state):
        engine_state.manager.status.return_value = [MagicMock(), MagicMock()]
        engine_state.bus.subscriber_count = 3
        engine_state.db_enabled = True

        r = await client.get("/api/v1/system/status")

        assert r.status_code == 200
        body = r.json()
        assert body["scheduler_running"] is True
        assert body["active_sessions"] == 2
        assert body["stream_subscribers"] == 3
        assert body["db_enabled"] is True
        assert body["relay_enabled"] is False
        assert body["started_at"] == "2026-10-17T09:00:00+00:00"


class TestSystemConfig:
    async def test_config_hides_secrets(self, client: httpx.AsyncClient):
        settings = Settings.model_construct(
            perplexity_api_key=None,
            database_url=None,
            fiscal_year_end_months={"microsoft": 6},
        )
        app.dependency_overrides[get_settings] = lambda: settings
        try:
            r = await client.get("/api/v1/system/config")
        finally:
            app.dependency_overrides.clear()

        assert r.status_code == 200
        body = r.json()
        assert body["perplexity_enabled"] is False
        assert body["database_enabled"] is False
        assert body["live_poll_interval_ms"] == 120_000
        assert body["fiscal_year_end_months"] == {"microsoft": 6}
        assert "perplexity_api_key" not in body
