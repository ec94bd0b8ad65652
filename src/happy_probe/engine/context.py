"""Run context: the ordered target list plus the configuration of one run."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from happy_probe.config.settings import DEFAULT_THROUGHPUT_REQUEST, ProbeSettings
from happy_probe.middleware.error_handler import ValidationError
from happy_probe.models.endpoint import Endpoint
from happy_probe.models.target import Target


@dataclass(frozen=True)
class RaceConfig:
    """Values the race engine consumes. Times are in milliseconds."""

    query_count: int = 3
    timeout_ms: int = 2000
    delay_ms: int = 25
    throughput_enabled: bool = False
    throughput_timeout_ms: int = 1000
    throughput_request: str = DEFAULT_THROUGHPUT_REQUEST

    def __post_init__(self) -> None:
        if self.query_count <= 0:
            raise ValidationError("query_count must be > 0", query_count=self.query_count)
        if self.timeout_ms < 0:
            raise ValidationError("timeout_ms must be >= 0", timeout_ms=self.timeout_ms)
        if self.delay_ms < 0:
            raise ValidationError("delay_ms must be >= 0", delay_ms=self.delay_ms)
        if self.throughput_timeout_ms <= 0:
            raise ValidationError(
                "throughput_timeout_ms must be > 0",
                throughput_timeout_ms=self.throughput_timeout_ms,
            )

    @property
    def timeout(self) -> float | None:
        """Attempt timeout in seconds, None when disabled."""
        return self.timeout_ms / 1000.0 if self.timeout_ms > 0 else None

    @property
    def delay(self) -> float:
        return self.delay_ms / 1000.0

    @classmethod
    def from_settings(cls, settings: ProbeSettings, **overrides: object) -> "RaceConfig":
        values = {
            "query_count": settings.query_count,
            "timeout_ms": settings.timeout_ms,
            "delay_ms": settings.delay_ms,
            "throughput_enabled": settings.throughput_enabled,
            "throughput_timeout_ms": settings.throughput_timeout_ms,
            "throughput_request": settings.throughput_request,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


@dataclass
class RaceContext:
    """Everything one run owns: its configuration and its targets, in order."""

    config: RaceConfig
    targets: list[Target] = field(default_factory=list)

    def add_target(self, target: Target) -> Target:
        self.targets.append(target)
        return target

    def endpoints(self) -> Iterator[Endpoint]:
        for target in self.targets:
            yield from target.endpoints

    @property
    def endpoint_count(self) -> int:
        return sum(len(t.endpoints) for t in self.targets)

    def release(self) -> None:
        """Close every socket still held by any endpoint of the run."""
        for target in self.targets:
            target.release()
