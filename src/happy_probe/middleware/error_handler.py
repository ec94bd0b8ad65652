"""Global error hierarchy and FastAPI exception handlers.

All probe-specific errors extend ProbeError. Per-endpoint outcomes (timeouts,
refused connections, unsupported address families) are never raised; they are
recorded as samples on the endpoint. Only per-run conditions and fatal
environment failures travel as exceptions.

The FastAPI exception handlers catch these errors (plus Pydantic's
RequestValidationError and unhandled exceptions) and return a consistent JSON
envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class ProbeError(Exception):
    """Base error for all probe-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ValidationError(ProbeError):
    """Invalid probe parameters."""

    status_code = 422
    message = "Validation error"


class TargetFileError(ProbeError):
    """Target file missing or malformed."""

    status_code = 400
    message = "Target file could not be loaded"


class RaceCapacityError(ProbeError):
    """Too many races in flight."""

    status_code = 503
    message = "Race capacity exhausted, try again later"


class FatalProbeError(ProbeError):
    """Unrecoverable environment failure: aborts the whole run."""

    status_code = 500
    message = "Fatal probe error"


class ReadinessWaitError(FatalProbeError):
    """The readiness-multiplexing wait itself failed."""

    message = "Readiness wait failed"


class SocketErrorRetrievalError(FatalProbeError):
    """Reading SO_ERROR from a completed socket failed."""

    message = "Socket error retrieval failed"


class DescriptorLimitError(FatalProbeError):
    """More endpoints than the process may open descriptors for."""

    status_code = 503
    message = "Out of socket descriptors"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _probe_error_handler(_request: Request, exc: ProbeError) -> JSONResponse:
    """Handle ProbeError subclasses."""
    if isinstance(exc, FatalProbeError):
        logger.error("Race aborted: %s", exc.message)
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log traceback, return generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(ProbeError, _probe_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
