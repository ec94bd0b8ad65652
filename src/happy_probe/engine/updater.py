"""Updater: classifies finished or expired attempts and records samples.

Classification order for an endpoint handed over by the readiness loop:
1. elapsed >= timeout while still connecting → TIMEOUT sample, socket closed
2. socket reported ready → read SO_ERROR
   - zero → SUCCESS sample (socket kept only when throughput probing is on)
   - non-zero → FAILURE sample carrying the errno, socket closed

The sample outcome, not the state tag, is what reporting treats as the
success indicator: a refused connection also ends in CONNECTED.
"""

from __future__ import annotations

import errno
import logging
import socket

from happy_probe.middleware.error_handler import SocketErrorRetrievalError
from happy_probe.models.endpoint import Endpoint, EndpointState, Sample

logger = logging.getLogger(__name__)


class Updater:
    """Records exactly one sample per finished attempt.

    Args:
        timeout: Attempt timeout in seconds, or None to wait forever.
        keep_connected: Leave successful sockets open for throughput probing.
    """

    def __init__(self, *, timeout: float | None, keep_connected: bool = False) -> None:
        self._timeout = timeout
        self._keep_connected = keep_connected
        self.iteration = 0

    def is_expired(self, endpoint: Endpoint, now: float) -> bool:
        if self._timeout is None or endpoint.started_at is None:
            return False
        return now - endpoint.started_at >= self._timeout

    def update(self, endpoint: Endpoint, now: float, *, ready: bool) -> Sample | None:
        """Classify one endpoint. Returns None if it is neither ready nor expired."""
        if endpoint.state is not EndpointState.CONNECTING:
            return None

        if self.is_expired(endpoint, now):
            sample = endpoint.expire(now)
        elif ready:
            try:
                soerror = endpoint.sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
            except OSError as exc:
                raise SocketErrorRetrievalError(
                    f"getsockopt: {exc.strerror or exc}", errno=exc.errno
                ) from exc

            if soerror == 0:
                sample = endpoint.succeed(now)
                if not self._keep_connected:
                    endpoint.release()
            else:
                sample = endpoint.refuse(now, soerror)
        else:
            return None

        logger.debug(
            "%s %s after %d us",
            endpoint.host_string(),
            sample.outcome.value,
            sample.elapsed_us,
            extra={
                "address": endpoint.host_string(),
                "outcome": sample.outcome.value,
                "elapsed_us": sample.elapsed_us,
                "iteration": self.iteration,
                "error_reason": errno.errorcode.get(sample.error) if sample.error else None,
            },
        )
        return sample
