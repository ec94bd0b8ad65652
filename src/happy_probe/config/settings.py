"""Pydantic Settings for the happy eyeballs prober.

All environment variables use the HAPPY_ prefix.
Example: HAPPY_QUERY_COUNT=5, HAPPY_TIMEOUT_MS=1500
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_THROUGHPUT_REQUEST = (
    "GET / HTTP/1.1\r\n"
    "Host: {host}\r\n"
    "User-Agent: happy-probe\r\n"
    "Connection: close\r\n"
    "\r\n"
)


class ProbeSettings(BaseSettings):
    """Prober configuration validated from environment variables."""

    # Race engine
    query_count: int = Field(default=3, ge=1)
    timeout_ms: int = Field(default=2000, ge=0)  # 0 = wait for completion
    delay_ms: int = Field(default=25, ge=0)  # 0 = no pacing
    default_ports: list[str] = ["80"]
    address_family: Literal["any", "inet", "inet6"] = "any"

    # Throughput probing
    throughput_enabled: bool = False
    throughput_timeout_ms: int = Field(default=1000, ge=1)
    throughput_request: str = DEFAULT_THROUGHPUT_REQUEST

    # Logging
    log_level: str = "WARNING"
    log_json: bool = False

    # Service
    port: int = 8001
    max_concurrent_races: int = Field(default=4, ge=1)
    max_targets_per_request: int = Field(default=64, ge=1)

    # Target import
    targets_path: str | None = None

    model_config = {"env_prefix": "HAPPY_"}
