"""Race engine: resolves targets and runs the repeated connection race.

A run is ``query_count`` sequential iterations. Each iteration starts one
paced attempt per active endpoint, drives them all to a terminal state
through the readiness loop and, when enabled, measures throughput on the
sockets that connected. Iteration i+1 only begins once every endpoint has
finished iteration i, so each endpoint gathers at most one sample per
iteration. Endpoints are ranked once all iterations are done.

Every socket opened by a run is closed on every exit path, including fatal
errors raised out of the readiness loop or the updater.
"""

from __future__ import annotations

import logging
import os
import selectors
import socket
import time
from collections.abc import Callable

from happy_probe.engine.context import RaceConfig, RaceContext
from happy_probe.engine.loop import ReadinessLoop
from happy_probe.engine.pacer import Pacer
from happy_probe.engine.ranker import rank
from happy_probe.engine.resolver import Resolver
from happy_probe.engine.scheduler import Scheduler, SocketFactory
from happy_probe.engine.throughput import ThroughputProber
from happy_probe.engine.updater import Updater
from happy_probe.middleware.error_handler import DescriptorLimitError, ValidationError
from happy_probe.models.target import Target

logger = logging.getLogger(__name__)

# Descriptors kept free for stdio, logging and the selector itself
_RESERVED_DESCRIPTORS = 16


def descriptor_limit() -> int | None:
    """Maximum descriptors this process may open, None if unknown."""
    try:
        limit = os.sysconf("SC_OPEN_MAX")
    except (AttributeError, ValueError, OSError):
        return None
    return limit if limit > 0 else None


class RaceEngine:
    """Facade over the scheduler, readiness loop, updater and ranker.

    Collaborators are injectable so that tests can substitute the resolver,
    clock, socket constructor or selector.
    """

    def __init__(
        self,
        config: RaceConfig,
        *,
        resolver: Resolver | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        socket_factory: SocketFactory = socket.socket,
        selector_factory: Callable[[], selectors.BaseSelector] = selectors.DefaultSelector,
    ) -> None:
        self.context = RaceContext(config=config)
        self._resolver = resolver or Resolver()
        self._clock = clock
        self._sleep = sleep
        self._socket_factory = socket_factory
        self._selector_factory = selector_factory
        self._ran = False

    @property
    def config(self) -> RaceConfig:
        return self.context.config

    @property
    def targets(self) -> list[Target]:
        return self.context.targets

    # ------------------------------------------------------------------
    # Target expansion
    # ------------------------------------------------------------------

    def expand(self, host: str, port: str) -> Target:
        """Resolve one host/port pair and append it to the run."""
        return self.context.add_target(self._resolver.resolve(host, port))

    def expand_all(self, hosts: list[str], ports: list[str]) -> None:
        for host in hosts:
            for port in ports:
                self.expand(host, port)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> list[Target]:
        """Run every iteration, rank the results and return the targets.

        Raises
        ------
        FatalProbeError
            On an unrecoverable environment failure. Sockets are closed
            before the error propagates.
        """
        if self._ran:
            raise ValidationError("A race engine can only run once")
        self._ran = True
        self._check_descriptor_budget()
        config = self.config

        updater = Updater(timeout=config.timeout, keep_connected=config.throughput_enabled)
        loop = ReadinessLoop(
            updater,
            timeout=config.timeout,
            clock=self._clock,
            selector=self._selector_factory(),
        )
        pacer = Pacer(loop, delay=config.delay, clock=self._clock, sleep=self._sleep)
        scheduler = Scheduler(
            loop, pacer, clock=self._clock, socket_factory=self._socket_factory
        )
        prober = None
        if config.throughput_enabled:
            prober = ThroughputProber(
                timeout=config.throughput_timeout_ms / 1000.0,
                request_template=config.throughput_request,
                clock=self._clock,
                selector_factory=self._selector_factory,
            )

        started = self._clock()
        try:
            for iteration in range(config.query_count):
                updater.iteration = iteration
                in_flight = scheduler.start_iteration(self.targets)
                logger.debug(
                    "Iteration %d/%d: %d attempts in flight",
                    iteration + 1,
                    config.query_count,
                    in_flight,
                    extra={"iteration": iteration},
                )
                loop.run()
                if prober is not None:
                    prober.probe(self.targets)
        finally:
            loop.close()
            self.context.release()

        rank(self.targets)
        duration_ms = (self._clock() - started) * 1000
        logger.info(
            "Race finished: %d targets, %d endpoints, %d iterations in %.1f ms",
            len(self.targets),
            self.context.endpoint_count,
            config.query_count,
            duration_ms,
            extra={"duration_ms": round(duration_ms, 2)},
        )
        return self.targets

    def close(self) -> None:
        """Release every socket still held by the run."""
        self.context.release()

    def __enter__(self) -> "RaceEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_descriptor_budget(self) -> None:
        limit = descriptor_limit()
        needed = self.context.endpoint_count
        if limit is not None and needed > limit - _RESERVED_DESCRIPTORS:
            raise DescriptorLimitError(
                f"{needed} endpoints exceed the descriptor limit of {limit}",
                endpoints=needed,
                limit=limit,
            )
