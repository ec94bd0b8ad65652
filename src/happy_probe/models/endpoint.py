"""Endpoint model: one resolved address and its measurement history.

An endpoint is one concrete ``(family, type, proto, sockaddr)`` tuple returned
by name resolution. Its identity never changes after resolution; only the
transient attempt fields and the accumulated statistics do.

State machine (per iteration):
- NEW → CONNECTING: non-blocking connect issued, start time stamped
- NEW → FAILED: socket creation, option setting or immediate connect failed
- CONNECTING → CONNECTED: socket became writable (sample sign tells success)
- CONNECTING → TIMED_OUT: outstanding for at least the configured timeout
"""

from __future__ import annotations

import math
import socket
from dataclasses import dataclass, field
from enum import Enum


class EndpointState(str, Enum):
    """Connection attempt states."""

    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class Outcome(str, Enum):
    """Disposition of a single connection attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Sample:
    """One latency measurement: a tagged outcome plus elapsed time."""

    outcome: Outcome
    elapsed_us: int
    started_at: float  # time.monotonic() when connect was issued
    error: int | None = None  # errno for FAILURE outcomes, when known

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def signed_us(self) -> int:
        """Legacy signed form: positive for success, negative otherwise."""
        return self.elapsed_us if self.ok else -self.elapsed_us


@dataclass(eq=False)
class Endpoint:
    """A single resolved address of a target with its attempt state."""

    family: int
    socktype: int
    protocol: int
    address: tuple

    state: EndpointState = EndpointState.NEW
    sock: socket.socket | None = field(default=None, repr=False)
    started_at: float | None = None
    excluded: bool = False

    samples: list[Sample] = field(default_factory=list)
    attempts: int = 0
    success_count: int = 0
    success_sum_us: int = 0
    success_sq_sum_us: int = 0
    min_us: int | None = None
    max_us: int | None = None

    bytes_sent: int = 0
    bytes_received: int = 0
    throughput_seconds: float = 0.0

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin(self, sock: socket.socket, started_at: float) -> None:
        """Enter CONNECTING with an in-flight socket."""
        self.sock = sock
        self.started_at = started_at
        self.state = EndpointState.CONNECTING

    def succeed(self, now: float) -> Sample:
        """Record a successful connect and leave the socket to the caller."""
        sample = self._record(Outcome.SUCCESS, now)
        self.state = EndpointState.CONNECTED
        return sample

    def refuse(self, now: float, error: int) -> Sample:
        """Record a completed attempt whose socket reported an error."""
        sample = self._record(Outcome.FAILURE, now, error=error)
        self.state = EndpointState.CONNECTED
        self.release()
        return sample

    def expire(self, now: float) -> Sample:
        """Record a timed-out attempt and close its socket."""
        sample = self._record(Outcome.TIMEOUT, now)
        self.state = EndpointState.TIMED_OUT
        self.release()
        return sample

    def fail(
        self,
        now: float,
        error: int | None,
        *,
        started_at: float | None = None,
        exclude: bool = False,
    ) -> Sample:
        """Record a setup failure. ``exclude`` drops the endpoint from later iterations."""
        self.started_at = started_at if started_at is not None else now
        sample = self._record(Outcome.FAILURE, now, error=error)
        self.state = EndpointState.FAILED
        self.excluded = self.excluded or exclude
        self.release()
        return sample

    def reset(self) -> None:
        """Prepare for the next iteration."""
        self.release()
        self.state = EndpointState.NEW
        self.started_at = None

    def release(self) -> None:
        """Close the socket if one is held. Safe to call repeatedly."""
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _record(self, outcome: Outcome, now: float, error: int | None = None) -> Sample:
        start = self.started_at if self.started_at is not None else now
        elapsed_us = max(0, int(round((now - start) * 1_000_000)))
        sample = Sample(outcome=outcome, elapsed_us=elapsed_us, started_at=start, error=error)
        self.samples.append(sample)
        self.attempts += 1

        if outcome is Outcome.SUCCESS:
            self.success_count += 1
            self.success_sum_us += elapsed_us
            self.success_sq_sum_us += elapsed_us * elapsed_us
            if self.min_us is None or elapsed_us < self.min_us:
                self.min_us = elapsed_us
            if self.max_us is None or elapsed_us > self.max_us:
                self.max_us = elapsed_us

        return sample

    @property
    def last_sample(self) -> Sample | None:
        return self.samples[-1] if self.samples else None

    @property
    def mean_us(self) -> float | None:
        """Mean successful latency, or None without a successful sample."""
        if not self.success_count:
            return None
        return self.success_sum_us / self.success_count

    @property
    def stdev_us(self) -> float | None:
        """Population standard deviation of successful latencies."""
        if not self.success_count:
            return None
        n = self.success_count
        variance = (n * self.success_sq_sum_us - self.success_sum_us**2) / (n * n)
        return math.sqrt(variance)

    @property
    def failure_count(self) -> int:
        return self.attempts - self.success_count

    def host_string(self) -> str:
        """Numeric host form of the socket address."""
        try:
            host, _ = socket.getnameinfo(
                self.address, socket.NI_NUMERICHOST | socket.NI_NUMERICSERV
            )
        except (OSError, TypeError):
            return str(self.address[0])
        return host
