"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, create the race service and
mount the routers.
Shutdown: races still running in worker threads finish on their own; each
one closes its sockets before returning.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from happy_probe.config.settings import ProbeSettings
from happy_probe.logging_config import configure_logging
from happy_probe.middleware.error_handler import register_error_handlers
from happy_probe.middleware.request_id import RequestIdMiddleware
from happy_probe.routers.health import create_health_router
from happy_probe.routers.probe import create_probe_router
from happy_probe.services.race_service import RaceService

logger = logging.getLogger(__name__)

# Shared state for the application: populated during lifespan startup
_state: dict = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings = ProbeSettings()

    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info("Starting happy probe service on port %d", settings.port)

    race_service = RaceService(settings=settings)

    app.include_router(create_health_router(race_service=race_service))
    app.include_router(create_probe_router(race_service=race_service))

    _state.update({"settings": settings, "race_service": race_service})

    logger.info("Happy probe service started")

    yield

    logger.info("Happy probe service shut down")
    _state.clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Happy Eyeballs Probe Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app


app = create_app()
