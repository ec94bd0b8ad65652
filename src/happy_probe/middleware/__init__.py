"""Middleware package: error hierarchy and request ID."""

from happy_probe.middleware.error_handler import (
    DescriptorLimitError,
    FatalProbeError,
    ProbeError,
    RaceCapacityError,
    ReadinessWaitError,
    SocketErrorRetrievalError,
    TargetFileError,
    ValidationError,
    register_error_handlers,
)
from happy_probe.middleware.request_id import RequestIdFilter, RequestIdMiddleware

__all__ = [
    "DescriptorLimitError",
    "FatalProbeError",
    "ProbeError",
    "RaceCapacityError",
    "ReadinessWaitError",
    "RequestIdFilter",
    "RequestIdMiddleware",
    "SocketErrorRetrievalError",
    "TargetFileError",
    "ValidationError",
    "register_error_handlers",
]
