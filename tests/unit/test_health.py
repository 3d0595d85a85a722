"""Tests for the health check endpoints."""

from unittest.mock import MagicMock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from jobs import health


@pytest.fixture(autouse=True)
def reset_health_state():
    health.set_scheduler(None)
    health._last_cycles.clear()
    yield
    health.set_scheduler(None)
    health._last_cycles.clear()


def make_scheduler(running: bool = True):
    job = MagicMock()
    job.id = "event_poller"
    job.name = "Event poller"
    job.next_run_time = None
    scheduler = MagicMock()
    scheduler.running = running
    scheduler.get_jobs = MagicMock(return_value=[job])
    return scheduler


class TestHealthEndpoints:
    """Tests for /health, /readiness and /liveness."""

    @pytest.mark.asyncio
    async def test_health_without_scheduler(self):
        async with TestClient(TestServer(health.create_health_app())) as client:
            response = await client.get("/health")
            assert response.status == 503

    @pytest.mark.asyncio
    async def test_health_reports_last_cycles(self):
        """Last cycle results are exposed per loop."""
        health.set_scheduler(make_scheduler())
        health.record_cycle(
            "poller", {"success": True, "stats": {"captured": 3}, "errors": []}
        )

        async with TestClient(TestServer(health.create_health_app())) as client:
            response = await client.get("/health")
            data = await response.json()

        assert response.status == 200
        assert data["status"] == "healthy"
        assert data["jobs"][0]["id"] == "event_poller"
        assert data["last_cycles"]["poller"]["stats"] == {"captured": 3}
        assert data["last_cycles"]["poller"]["success"] is True

    @pytest.mark.asyncio
    async def test_readiness_follows_scheduler(self):
        health.set_scheduler(make_scheduler(running=False))

        async with TestClient(TestServer(health.create_health_app())) as client:
            not_ready = await client.get("/readiness")
            health.set_scheduler(make_scheduler(running=True))
            ready = await client.get("/readiness")

        assert not_ready.status == 503
        assert ready.status == 200

    @pytest.mark.asyncio
    async def test_liveness(self):
        async with TestClient(TestServer(health.create_health_app())) as client:
            response = await client.get("/liveness")
            assert (await response.json())["alive"] is True

    @pytest.mark.asyncio
    async def test_failed_cycle_degrades_health(self):
        """A failing latest cycle turns the status to degraded."""
        health.set_scheduler(make_scheduler())
        health.record_cycle("poller", {"success": True, "stats": {}})
        health.record_cycle("delivery", {"success": False, "errors": ["db gone"]})

        async with TestClient(TestServer(health.create_health_app())) as client:
            response = await client.get("/health")
            data = await response.json()

        assert response.status == 200
        assert data["status"] == "degraded"
        assert data["last_cycles"]["delivery"]["errors"] == ["db gone"]
