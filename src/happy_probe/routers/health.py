"""Health and metrics endpoints.

- GET /health - service status
- GET /metrics - race statistics
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter

from happy_probe.engine.race import descriptor_limit
from happy_probe.models.responses import ApiResponse

if TYPE_CHECKING:
    from happy_probe.services.race_service import RaceService


def create_health_router(*, race_service: Any = None) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check."""
        stats = race_service.get_stats() if race_service else {}
        return ApiResponse.ok(
            {
                "status": "healthy",
                "active_races": stats.get("active_races", 0),
                "descriptor_limit": descriptor_limit(),
            }
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Race statistics."""
        stats = race_service.get_stats() if race_service else {}
        return ApiResponse.ok({"races": stats}).model_dump()

    return health_router
