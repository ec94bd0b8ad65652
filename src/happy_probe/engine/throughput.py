"""Throughput prober: measures byte rates over freshly connected sockets.

Runs after the collection phase of an iteration. Each endpoint whose attempt
just succeeded still holds its socket; the prober sends one request payload
on it and then reads until the throughput timeout elapses, the peer closes,
or the socket fails. A failing socket ends only its own exchange. All
exchanges share a single selector, like the readiness loop. Every probed
socket is closed when the phase ends.
"""

from __future__ import annotations

import errno
import logging
import selectors
import time
from collections.abc import Callable
from dataclasses import dataclass

from happy_probe.middleware.error_handler import ReadinessWaitError
from happy_probe.models.endpoint import Endpoint, EndpointState
from happy_probe.models.target import Target

logger = logging.getLogger(__name__)


@dataclass
class _Exchange:
    """Per-endpoint progress of the request/response exchange."""

    target: Target
    endpoint: Endpoint
    pending: memoryview
    started_at: float


class ThroughputProber:
    """Drives one request/response exchange per connected endpoint.

    Args:
        timeout: Time budget in seconds for the whole phase.
        request_template: Payload sent first; ``{host}`` and ``{port}`` are
            replaced with the target's values. Empty means read only.
        clock: Monotonic clock.
        selector_factory: Builds the selector used for the phase.
        chunk_size: Maximum bytes read per ``recv`` call.
    """

    def __init__(
        self,
        *,
        timeout: float,
        request_template: str,
        clock: Callable[[], float] = time.monotonic,
        selector_factory: Callable[[], selectors.BaseSelector] = selectors.DefaultSelector,
        chunk_size: int = 65536,
    ) -> None:
        self._timeout = timeout
        self._template = request_template
        self._clock = clock
        self._selector_factory = selector_factory
        self._chunk_size = chunk_size

    def payload(self, target: Target) -> bytes:
        text = self._template.replace("{host}", target.host).replace("{port}", target.port)
        return text.encode("latin-1", errors="replace")

    @staticmethod
    def candidates(targets: list[Target]) -> list[tuple[Target, Endpoint]]:
        """Endpoints whose current attempt connected and whose socket is open."""
        found = []
        for target in targets:
            for endpoint in target.endpoints:
                sample = endpoint.last_sample
                if (
                    endpoint.sock is not None
                    and endpoint.state is EndpointState.CONNECTED
                    and sample is not None
                    and sample.ok
                ):
                    found.append((target, endpoint))
        return found

    def probe(self, targets: list[Target]) -> int:
        """Run the throughput phase. Returns the number of endpoints probed."""
        pairs = self.candidates(targets)
        if not pairs:
            return 0

        selector = self._selector_factory()
        started_at = self._clock()
        deadline = started_at + self._timeout

        try:
            for target, endpoint in pairs:
                exchange = _Exchange(
                    target=target,
                    endpoint=endpoint,
                    pending=memoryview(self.payload(target)),
                    started_at=started_at,
                )
                events = selectors.EVENT_WRITE if exchange.pending else selectors.EVENT_READ
                selector.register(endpoint.sock, events, exchange)

            while selector.get_map():
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break

                try:
                    ready = selector.select(remaining)
                except OSError as exc:
                    raise ReadinessWaitError(
                        f"select failed: {exc.strerror or exc}", errno=exc.errno
                    ) from exc

                for key, mask in ready:
                    exchange = key.data
                    try:
                        done = self._service(selector, key, mask)
                    except OSError as exc:
                        logger.debug(
                            "Throughput exchange with %s ended: %s",
                            exchange.endpoint.host_string(),
                            exc,
                            extra={
                                "target_host": exchange.target.host,
                                "address": exchange.endpoint.host_string(),
                                "error_reason": errno.errorcode.get(exc.errno) if exc.errno else None,
                            },
                        )
                        done = True
                    if done:
                        selector.unregister(key.fileobj)
                        self._finish(exchange)
        finally:
            mapping = selector.get_map()
            for key in list(mapping.values()) if mapping is not None else []:
                selector.unregister(key.fileobj)
                self._finish(key.data)
            selector.close()

        return len(pairs)

    def _service(self, selector: selectors.BaseSelector, key: selectors.SelectorKey, mask: int) -> bool:
        """Advance one exchange. Returns True once it is complete."""
        exchange: _Exchange = key.data
        endpoint = exchange.endpoint
        sock = endpoint.sock

        try:
            if exchange.pending and mask & selectors.EVENT_WRITE:
                sent = sock.send(exchange.pending)
                endpoint.bytes_sent += sent
                exchange.pending = exchange.pending[sent:]
                if not exchange.pending:
                    selector.modify(sock, selectors.EVENT_READ, exchange)
                return False

            if mask & selectors.EVENT_READ:
                data = sock.recv(self._chunk_size)
                if not data:
                    return True
                endpoint.bytes_received += len(data)
        except (BlockingIOError, InterruptedError):
            return False

        return False

    def _finish(self, exchange: _Exchange) -> None:
        endpoint = exchange.endpoint
        endpoint.throughput_seconds += self._clock() - exchange.started_at
        endpoint.release()
