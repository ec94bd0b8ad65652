"""Serializable report models built from finished targets.

These are the shapes handed to reporting: the JSON output of the CLI and the
``data`` field of the probe API. Latencies are in microseconds; samples use
the signed form (positive = connected, negative = failed or timed out).
"""

from __future__ import annotations

import errno
import socket

from pydantic import BaseModel, Field

from happy_probe.models.endpoint import Endpoint
from happy_probe.models.target import Target

_FAMILY_NAMES = {
    socket.AF_INET: "inet",
    socket.AF_INET6: "inet6",
}


class SampleReport(BaseModel):
    outcome: str
    elapsed_us: int
    signed_us: int
    error: str | None = None


class EndpointReport(BaseModel):
    """Per-address result."""

    address: str
    family: str
    samples: list[SampleReport] = Field(default_factory=list)
    attempts: int = 0
    successes: int = 0
    min_us: int | None = None
    mean_us: float | None = None
    max_us: int | None = None
    stdev_us: float | None = None
    excluded: bool = False
    bytes_sent: int = 0
    bytes_received: int = 0
    tx_bytes_per_second: float | None = None
    rx_bytes_per_second: float | None = None

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "EndpointReport":
        tx_rate = rx_rate = None
        if endpoint.throughput_seconds > 0:
            tx_rate = endpoint.bytes_sent / endpoint.throughput_seconds
            rx_rate = endpoint.bytes_received / endpoint.throughput_seconds

        return cls(
            address=endpoint.host_string(),
            family=_FAMILY_NAMES.get(endpoint.family, str(endpoint.family)),
            samples=[
                SampleReport(
                    outcome=s.outcome.value,
                    elapsed_us=s.elapsed_us,
                    signed_us=s.signed_us,
                    error=_errno_name(s.error),
                )
                for s in endpoint.samples
            ],
            attempts=endpoint.attempts,
            successes=endpoint.success_count,
            min_us=endpoint.min_us,
            mean_us=endpoint.mean_us,
            max_us=endpoint.max_us,
            stdev_us=endpoint.stdev_us,
            excluded=endpoint.excluded,
            bytes_sent=endpoint.bytes_sent,
            bytes_received=endpoint.bytes_received,
            tx_bytes_per_second=tx_rate,
            rx_bytes_per_second=rx_rate,
        )


class TargetReport(BaseModel):
    """Per host/port result, endpoints in ranked order."""

    host: str
    port: str
    status: str  # "ok" or "fail" (resolution failed)
    error: str | None = None
    endpoints: list[EndpointReport] = Field(default_factory=list)

    @classmethod
    def from_target(cls, target: Target) -> "TargetReport":
        return cls(
            host=target.host,
            port=target.port,
            status="ok" if target.resolved else "fail",
            error=target.error,
            endpoints=[EndpointReport.from_endpoint(ep) for ep in target.endpoints],
        )


class RunReport(BaseModel):
    """Complete result of one race run."""

    query_count: int
    timeout_ms: int
    delay_ms: int
    targets: list[TargetReport] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        targets: list[Target],
        *,
        query_count: int,
        timeout_ms: int,
        delay_ms: int,
    ) -> "RunReport":
        return cls(
            query_count=query_count,
            timeout_ms=timeout_ms,
            delay_ms=delay_ms,
            targets=[TargetReport.from_target(t) for t in targets],
        )


def _errno_name(error: int | None) -> str | None:
    if error is None:
        return None
    return errno.errorcode.get(error, str(error))
