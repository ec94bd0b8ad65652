"""Readiness loop: drives every in-flight connect to completion or timeout.

All CONNECTING endpoints are registered for writability on one selector.
Each wake-up blocks until a socket is ready or the earliest attempt deadline
(start + timeout) passes, then hands every ready or expired endpoint to the
Updater before waiting again. The loop is the only suspension point of a run.
"""

from __future__ import annotations

import logging
import selectors
import time
from collections.abc import Callable

from happy_probe.engine.updater import Updater
from happy_probe.middleware.error_handler import ReadinessWaitError
from happy_probe.models.endpoint import Endpoint

logger = logging.getLogger(__name__)


class ReadinessLoop:
    """Selector-driven multiplexer over in-flight connection attempts.

    Args:
        updater: Classifies endpoints that became ready or expired.
        timeout: Attempt timeout in seconds, or None to block until completion.
        clock: Monotonic clock, ``time.monotonic`` by default.
        selector: Selector instance; a ``selectors.DefaultSelector`` if omitted.
    """

    def __init__(
        self,
        updater: Updater,
        *,
        timeout: float | None,
        clock: Callable[[], float] = time.monotonic,
        selector: selectors.BaseSelector | None = None,
    ) -> None:
        self._updater = updater
        self._timeout = timeout
        self._clock = clock
        self._selector = selector if selector is not None else selectors.DefaultSelector()
        self.wakeups = 0

    @property
    def pending(self) -> int:
        """Number of attempts still outstanding."""
        mapping = self._selector.get_map()
        return len(mapping) if mapping is not None else 0

    def watch(self, endpoint: Endpoint) -> None:
        """Start tracking a CONNECTING endpoint."""
        self._selector.register(endpoint.sock, selectors.EVENT_WRITE, endpoint)

    def next_wait(self, now: float) -> float | None:
        """Seconds until the nearest attempt deadline, None for no deadline."""
        if self._timeout is None or not self.pending:
            return None
        earliest = min(key.data.started_at for key in self._selector.get_map().values())
        return max(0.0, earliest + self._timeout - now)

    def poll(self, max_wait: float | None = None) -> int:
        """Run a single wake-up. Returns the number of attempts finished.

        ``max_wait`` caps the blocking time (used by the pacer so that the
        next attempt can start on schedule).
        """
        if not self.pending:
            return 0

        wait = self.next_wait(self._clock())
        if max_wait is not None:
            wait = max_wait if wait is None else min(wait, max_wait)

        try:
            events = self._selector.select(wait)
        except OSError as exc:
            raise ReadinessWaitError(
                f"select failed: {exc.strerror or exc}", errno=exc.errno
            ) from exc

        self.wakeups += 1
        now = self._clock()
        ready = {key.data for key, _mask in events}

        finished = 0
        for key in list(self._selector.get_map().values()):
            endpoint: Endpoint = key.data
            is_ready = endpoint in ready
            if not is_ready and not self._updater.is_expired(endpoint, now):
                continue

            self._selector.unregister(key.fileobj)
            self._updater.update(endpoint, now, ready=is_ready)
            finished += 1

        return finished

    def run(self) -> None:
        """Wake up repeatedly until no attempt is outstanding."""
        while self.pending:
            self.poll()

    def close(self) -> None:
        """Release every still-registered socket and the selector itself."""
        mapping = self._selector.get_map()
        if mapping is not None:
            for key in list(mapping.values()):
                self._selector.unregister(key.fileobj)
                key.data.release()
        self._selector.close()
