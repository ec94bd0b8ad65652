"""Tests for the probe API, health/metrics endpoints and the race service."""

from __future__ import annotations

import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from happy_probe.engine.context import RaceConfig
from happy_probe.engine.race import RaceEngine
from happy_probe.main import create_app
from happy_probe.middleware.error_handler import (
    RaceCapacityError,
    ReadinessWaitError,
    ValidationError,
    register_error_handlers,
)
from happy_probe.middleware.request_id import RequestIdMiddleware
from happy_probe.models.requests import ProbeRequest
from happy_probe.routers.health import create_health_router
from happy_probe.routers.probe import create_probe_router
from happy_probe.services.race_service import RaceService


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def race_service(settings, listener, closed_port, resolver_for) -> RaceService:
    host, port = listener
    resolver = resolver_for(
        {
            "up.test": [(host, port)],
            "mixed.test": [(host, closed_port), (host, port)],
        }
    )

    def factory(config: RaceConfig) -> RaceEngine:
        return RaceEngine(config, resolver=resolver)

    return RaceService(settings=settings, engine_factory=factory)


@pytest.fixture
def client(race_service) -> TestClient:
    app = FastAPI()
    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    app.include_router(create_health_router(race_service=race_service))
    app.include_router(create_probe_router(race_service=race_service))
    return TestClient(app)


# ---------------------------------------------------------------------------
# POST /api/v1/probe
# ---------------------------------------------------------------------------


class TestProbeEndpoint:
    """Tests for POST /api/v1/probe."""

    def test_returns_ranked_report(self, client) -> None:
        resp = client.post(
            "/api/v1/probe",
            json={"hosts": ["mixed.test"], "query_count": 2, "delay_ms": 0},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["error"] is None
        assert body["meta"] == {"targets": 1, "reachable_endpoints": 1}

        target = body["data"]["targets"][0]
        assert target["host"] == "mixed.test"
        assert target["port"] == "80"
        assert target["status"] == "ok"
        first, second = target["endpoints"]
        assert first["successes"] == 2
        assert all(s["signed_us"] > 0 for s in first["samples"])
        assert second["successes"] == 0
        assert len(second["samples"]) == 2

    def test_unresolvable_host_is_reported_not_raised(self, client) -> None:
        resp = client.post(
            "/api/v1/probe",
            json={"hosts": ["nowhere.invalid", "up.test"], "query_count": 1, "delay_ms": 0},
        )
        assert resp.status_code == 200
        statuses = [t["status"] for t in resp.json()["data"]["targets"]]
        assert statuses == ["fail", "ok"]

    def test_hosts_times_ports_expansion(self, client) -> None:
        resp = client.post(
            "/api/v1/probe",
            json={"hosts": ["up.test"], "ports": ["80", "8080"], "query_count": 1, "delay_ms": 0},
        )
        assert [t["port"] for t in resp.json()["data"]["targets"]] == ["80", "8080"]

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"hosts": []},
            {"hosts": ["  "]},
            {"hosts": ["up.test"], "query_count": 0},
            {"hosts": ["up.test"], "timeout_ms": -1},
            {"hosts": ["up.test"], "ports": []},
        ],
    )
    def test_invalid_payloads_are_rejected(self, client, payload) -> None:
        resp = client.post("/api/v1/probe", json=payload)
        assert resp.status_code == 422
        assert resp.json()["success"] is False

    def test_target_limit_is_enforced(self, client) -> None:
        resp = client.post(
            "/api/v1/probe",
            json={"hosts": [f"h{i}.test" for i in range(3)], "ports": ["1", "2", "3"]},
        )
        assert resp.status_code == 422
        assert resp.json()["meta"] == {"targets": 9}

    def test_request_id_header(self, client) -> None:
        resp = client.post(
            "/api/v1/probe",
            json={"hosts": ["up.test"], "query_count": 1, "delay_ms": 0},
            headers={"X-Request-ID": "probe-1"},
        )
        assert resp.headers["X-Request-ID"] == "probe-1"


# ---------------------------------------------------------------------------
# GET /health and /metrics
# ---------------------------------------------------------------------------


class TestHealthEndpoints:
    """Tests for the health and metrics endpoints."""

    def test_health(self, client) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "healthy"
        assert data["active_races"] == 0

    def test_metrics_count_races_and_samples(self, client) -> None:
        client.post(
            "/api/v1/probe",
            json={"hosts": ["mixed.test"], "query_count": 2, "delay_ms": 0},
        )
        stats = client.get("/metrics").json()["data"]["races"]

        assert stats["completed_races"] == 1
        assert stats["failed_races"] == 0
        assert stats["active_races"] == 0
        assert stats["endpoints_probed"] == 2
        assert stats["samples"]["success"] == 2
        assert stats["samples"]["failure"] + stats["samples"]["timeout"] == 2

    def test_app_lifespan_mounts_routers(self) -> None:
        with TestClient(create_app()) as app_client:
            resp = app_client.get("/health")
            assert resp.status_code == 200
            assert resp.json()["success"] is True
            assert "X-Request-ID" in resp.headers


# ---------------------------------------------------------------------------
# RaceService
# ---------------------------------------------------------------------------


class TestRaceService:
    """Tests for the RaceService class."""

    @pytest.mark.asyncio
    async def test_run_returns_report(self, race_service) -> None:
        report = await race_service.run(ProbeRequest(hosts=["up.test"], query_count=1, delay_ms=0))
        assert report.query_count == 1
        assert report.targets[0].endpoints[0].successes == 1
        assert race_service.get_stats()["completed_races"] == 1

    @pytest.mark.asyncio
    async def test_capacity_limit(self, settings) -> None:
        class EmptyEngine:
            def __init__(self, config):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *exc_info):
                return None

            def expand_all(self, hosts, ports):
                return None

            def run(self):
                return []

        service = RaceService(settings=settings, engine_factory=EmptyEngine)
        # Occupy every slot without running a race
        service._active = settings.max_concurrent_races
        with pytest.raises(RaceCapacityError):
            await service.run(ProbeRequest(hosts=["up.test"]))
        service._active = 0

        report = await service.run(ProbeRequest(hosts=["up.test"]))
        assert report.targets == []

    @pytest.mark.asyncio
    async def test_too_many_targets(self, race_service) -> None:
        request = ProbeRequest(hosts=[f"h{i}.test" for i in range(3)], ports=["1", "2", "3"])
        with pytest.raises(ValidationError):
            await race_service.run(request)

    @pytest.mark.asyncio
    async def test_fatal_errors_are_counted(self, settings) -> None:
        class BrokenEngine:
            def __init__(self, config):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *exc_info):
                return None

            def expand_all(self, hosts, ports):
                return None

            def run(self):
                raise ReadinessWaitError("select failed")

        service = RaceService(settings=settings, engine_factory=BrokenEngine)
        with pytest.raises(ReadinessWaitError):
            await service.run(ProbeRequest(hosts=["up.test"]))

        stats = service.get_stats()
        assert stats["failed_races"] == 1
        assert stats["active_races"] == 0
        assert stats["completed_races"] == 0

