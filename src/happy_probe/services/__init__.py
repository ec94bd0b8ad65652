"""Services layer: race execution for the HTTP API."""

from happy_probe.services.race_service import RaceService

__all__ = ["RaceService"]
