"""Scheduler: opens one non-blocking socket per endpoint and issues connect.

Attempts start in target-then-endpoint order, each one gated by the pacer.
Setup failures never raise: they are recorded as FAILURE samples and the
socket is closed immediately. An endpoint whose address family or protocol
is unsupported is excluded from every later iteration.
"""

from __future__ import annotations

import errno
import logging
import socket
import time
from collections.abc import Callable

from happy_probe.engine.loop import ReadinessLoop
from happy_probe.engine.pacer import Pacer
from happy_probe.models.endpoint import Endpoint
from happy_probe.models.target import Target

logger = logging.getLogger(__name__)

# connect_ex results that leave the attempt in flight
_IN_PROGRESS = frozenset({0, errno.EINPROGRESS})

_UNSUPPORTED = frozenset({errno.EAFNOSUPPORT, errno.EPROTONOSUPPORT})

SocketFactory = Callable[[int, int, int], socket.socket]


class Scheduler:
    """Starts connection attempts for every active endpoint of a run.

    Args:
        loop: Readiness loop that will collect the attempts.
        pacer: Inter-attempt delay enforcer.
        clock: Monotonic clock used to stamp attempt starts.
        socket_factory: Socket constructor, ``socket.socket`` by default.
    """

    def __init__(
        self,
        loop: ReadinessLoop,
        pacer: Pacer,
        *,
        clock: Callable[[], float] = time.monotonic,
        socket_factory: SocketFactory = socket.socket,
    ) -> None:
        self._loop = loop
        self._pacer = pacer
        self._clock = clock
        self._socket_factory = socket_factory

    def start_iteration(self, targets: list[Target]) -> int:
        """Start one attempt per non-excluded endpoint. Returns attempts in flight."""
        started = 0
        for target in targets:
            for endpoint in target.endpoints:
                if endpoint.excluded:
                    continue
                endpoint.reset()
                self._pacer.wait()
                if self.start(target, endpoint):
                    started += 1
        return started

    def start(self, target: Target, endpoint: Endpoint) -> bool:
        """Open, configure and connect one socket. Returns True if in flight."""
        try:
            sock = self._socket_factory(endpoint.family, endpoint.socktype, endpoint.protocol)
        except OSError as exc:
            unsupported = exc.errno in _UNSUPPORTED
            endpoint.fail(self._clock(), exc.errno, exclude=unsupported)
            if unsupported:
                logger.debug(
                    "socket: %s (excluding %s)", exc.strerror, endpoint.host_string()
                )
            else:
                self._log_skip("socket", target, endpoint, exc.errno)
            return False

        try:
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            endpoint.fail(self._clock(), exc.errno)
            self._log_skip("setblocking", target, endpoint, exc.errno)
            return False

        started_at = self._clock()
        try:
            result = sock.connect_ex(endpoint.address)
        except OSError as exc:
            result = exc.errno if exc.errno is not None else errno.EINVAL
        self._pacer.mark(started_at)

        if result not in _IN_PROGRESS:
            sock.close()
            endpoint.fail(self._clock(), result, started_at=started_at)
            self._log_skip("connect", target, endpoint, result)
            return False

        endpoint.begin(sock, started_at)
        self._loop.watch(endpoint)
        return True

    @staticmethod
    def _log_skip(call: str, target: Target, endpoint: Endpoint, error: int | None) -> None:
        reason = errno.errorcode.get(error, str(error)) if error is not None else "unknown"
        logger.info(
            "%s: %s (skipping %s for %s)",
            call,
            reason,
            endpoint.host_string(),
            target.label,
            extra={
                "target_host": target.host,
                "target_port": target.port,
                "address": endpoint.host_string(),
                "error_reason": reason,
            },
        )
