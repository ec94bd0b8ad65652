"""Target model: one (host, port) pair and the endpoints it resolved to."""

from __future__ import annotations

from dataclasses import dataclass, field

from happy_probe.models.endpoint import Endpoint


@dataclass(eq=False)
class Target:
    """A host/port pair owning its resolved endpoints.

    An empty endpoint list is a valid result meaning resolution failed;
    ``error`` then carries the resolver's message.
    """

    host: str
    port: str
    endpoints: list[Endpoint] = field(default_factory=list)
    error: str | None = None

    @property
    def resolved(self) -> bool:
        return bool(self.endpoints)

    @property
    def label(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def release(self) -> None:
        """Close every socket still held by this target's endpoints."""
        for endpoint in self.endpoints:
            endpoint.release()
