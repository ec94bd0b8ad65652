"""JSON envelope shared by every probe API response.

{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for probe API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None

    @classmethod
    def ok(cls, data: T, meta: dict | None = None) -> "ApiResponse[T]":
        return cls(success=True, data=data, meta=meta)
