"""HTTP routers."""

from happy_probe.routers.health import create_health_router
from happy_probe.routers.probe import create_probe_router

__all__ = ["create_health_router", "create_probe_router"]
