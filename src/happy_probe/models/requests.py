"""Pydantic request models for the probe API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ProbeRequest(BaseModel):
    """Request model for a synchronous connection race."""

    hosts: list[str] = Field(..., min_length=1, max_length=64)
    ports: list[str] = Field(default_factory=lambda: ["80"], min_length=1, max_length=16)
    query_count: int = Field(default=3, ge=1, le=20)
    timeout_ms: int = Field(default=2000, ge=0, le=30000)
    delay_ms: int = Field(default=25, ge=0, le=5000)
    throughput: bool = False
    throughput_timeout_ms: int = Field(default=1000, ge=1, le=30000)

    @field_validator("hosts", "ports")
    @classmethod
    def _strip_blank(cls, values: list[str]) -> list[str]:
        cleaned = [v.strip() for v in values]
        if any(not v for v in cleaned):
            raise ValueError("entries must be non-empty")
        return cleaned
