"""Race service: runs connection races on behalf of the HTTP API.

Each request gets its own RaceEngine, executed in a worker thread so the
event loop keeps serving other requests; the engine itself stays strictly
single-threaded. The number of races in flight is capped, and the service
keeps running totals for the metrics endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from happy_probe.config.settings import ProbeSettings
from happy_probe.engine.context import RaceConfig
from happy_probe.engine.race import RaceEngine
from happy_probe.engine.resolver import Resolver
from happy_probe.middleware.error_handler import (
    FatalProbeError,
    RaceCapacityError,
    ValidationError,
)
from happy_probe.models.requests import ProbeRequest
from happy_probe.models.schemas import RunReport

logger = logging.getLogger(__name__)

EngineFactory = Callable[[RaceConfig], RaceEngine]


class RaceService:
    """Capacity-limited executor of probe requests.

    Parameters
    ----------
    settings:
        Service settings (capacity, target limits, address family).
    engine_factory:
        Builds a RaceEngine for a config; defaults to one using the
        configured address family.
    """

    def __init__(
        self,
        *,
        settings: ProbeSettings,
        engine_factory: EngineFactory | None = None,
    ) -> None:
        self._settings = settings
        self._engine_factory = engine_factory or self._default_engine

        self._active = 0
        self._completed = 0
        self._failed = 0
        self._total_duration_ms = 0.0
        self._endpoints_probed = 0
        self._samples = {"success": 0, "failure": 0, "timeout": 0}

    def _default_engine(self, config: RaceConfig) -> RaceEngine:
        return RaceEngine(config, resolver=Resolver(self._settings.address_family))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, request: ProbeRequest) -> RunReport:
        """Run one race and return its report.

        Raises
        ------
        ValidationError
            If the request expands to more targets than allowed.
        RaceCapacityError
            If ``max_concurrent_races`` races are already in flight.
        FatalProbeError
            If the race aborted on an environment failure.
        """
        target_count = len(request.hosts) * len(request.ports)
        if target_count > self._settings.max_targets_per_request:
            raise ValidationError(
                f"Request expands to {target_count} targets "
                f"(limit {self._settings.max_targets_per_request})",
                targets=target_count,
            )

        if self._active >= self._settings.max_concurrent_races:
            raise RaceCapacityError(
                f"{self._active} races in flight (limit {self._settings.max_concurrent_races})"
            )

        config = RaceConfig(
            query_count=request.query_count,
            timeout_ms=request.timeout_ms,
            delay_ms=request.delay_ms,
            throughput_enabled=request.throughput,
            throughput_timeout_ms=request.throughput_timeout_ms,
            throughput_request=self._settings.throughput_request,
        )

        self._active += 1
        start = time.monotonic()
        try:
            report = await asyncio.to_thread(self._race, config, request)
        except FatalProbeError:
            self._failed += 1
            raise
        finally:
            self._active -= 1

        duration_ms = (time.monotonic() - start) * 1000
        self._record(report, duration_ms)
        logger.info(
            "Race for %d targets completed in %.1f ms",
            target_count,
            duration_ms,
            extra={"duration_ms": round(duration_ms, 2)},
        )
        return report

    def get_stats(self) -> dict:
        """Return race statistics for the metrics endpoint."""
        avg_ms = (
            self._total_duration_ms / self._completed if self._completed > 0 else 0.0
        )
        return {
            "active_races": self._active,
            "completed_races": self._completed,
            "failed_races": self._failed,
            "avg_duration_ms": round(avg_ms, 2),
            "endpoints_probed": self._endpoints_probed,
            "samples": dict(self._samples),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _race(self, config: RaceConfig, request: ProbeRequest) -> RunReport:
        with self._engine_factory(config) as engine:
            engine.expand_all(request.hosts, request.ports)
            targets = engine.run()
            return RunReport.build(
                targets,
                query_count=config.query_count,
                timeout_ms=config.timeout_ms,
                delay_ms=config.delay_ms,
            )

    def _record(self, report: RunReport, duration_ms: float) -> None:
        self._completed += 1
        self._total_duration_ms += duration_ms
        for target in report.targets:
            self._endpoints_probed += len(target.endpoints)
            for endpoint in target.endpoints:
                for sample in endpoint.samples:
                    self._samples[sample.outcome] = self._samples.get(sample.outcome, 0) + 1
