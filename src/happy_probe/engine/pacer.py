"""Pacer: spaces out connection attempts so SYNs never leave in a burst.

Before each attempt the pacer waits until ``delay`` has elapsed since the
previous attempt started. While it waits, in-flight attempts keep being
serviced through the readiness loop; when nothing is in flight it simply
sleeps for the rest of the interval.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from happy_probe.engine.loop import ReadinessLoop


class Pacer:
    """Inter-attempt delay enforcer.

    Args:
        loop: Readiness loop used to service in-flight attempts while waiting.
        delay: Minimum seconds between attempt starts; 0 disables pacing.
        clock: Monotonic clock.
        sleep: Sleep function used when nothing is in flight.
    """

    def __init__(
        self,
        loop: ReadinessLoop,
        *,
        delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._loop = loop
        self._delay = delay
        self._clock = clock
        self._sleep = sleep
        self._last_start: float | None = None

    @property
    def last_start(self) -> float | None:
        return self._last_start

    def wait(self) -> None:
        """Block until the next attempt may start."""
        if self._delay <= 0 or self._last_start is None:
            return

        while True:
            remaining = self._last_start + self._delay - self._clock()
            if remaining <= 0:
                return
            if self._loop.pending:
                self._loop.poll(max_wait=remaining)
            else:
                self._sleep(remaining)

    def mark(self, started_at: float) -> None:
        """Record the start instant of the attempt just issued."""
        self._last_start = started_at
