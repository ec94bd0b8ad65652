"""Ranker: orders each target's endpoints by mean successful latency.

The sort is stable. Endpoints without any successful sample sort after all
endpoints that have one and keep their relative order among themselves.
"""

from __future__ import annotations

from happy_probe.models.endpoint import Endpoint
from happy_probe.models.target import Target


def rank_key(endpoint: Endpoint) -> tuple[bool, float]:
    mean = endpoint.mean_us
    return (mean is None, mean if mean is not None else 0.0)


def rank_endpoints(target: Target) -> None:
    target.endpoints.sort(key=rank_key)


def rank(targets: list[Target]) -> None:
    """Reorder endpoints within every target. Targets keep their order."""
    for target in targets:
        rank_endpoints(target)
