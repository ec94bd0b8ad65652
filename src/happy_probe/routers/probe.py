"""Probe endpoint.

- POST /api/v1/probe - run a connection race and return the ranked results
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from happy_probe.models.requests import ProbeRequest
from happy_probe.models.responses import ApiResponse


def create_probe_router(*, race_service: Any = None) -> APIRouter:
    """Factory that creates the probe router with injected dependencies.

    Parameters
    ----------
    race_service:
        RaceService that executes the race in a worker thread.
    """
    probe_router = APIRouter(prefix="/api/v1/probe", tags=["probe"])

    @probe_router.post("")
    async def probe(body: ProbeRequest) -> dict:
        """Race connections to every address of the requested hosts."""
        report = await race_service.run(body)
        reachable = sum(
            1
            for target in report.targets
            for endpoint in target.endpoints
            if endpoint.successes > 0
        )
        return ApiResponse.ok(
            report.model_dump(),
            meta={"targets": len(report.targets), "reachable_endpoints": reachable},
        ).model_dump()

    return probe_router
