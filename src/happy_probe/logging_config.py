"""Logging configuration for the prober.

Two renderings of the same records: a plain one-line format for interactive
CLI use and a structured JSON format for the service. JSON entries always
carry timestamp, level, logger, message and request_id; probe fields are
attached contextually through ``extra`` (target_host, target_port, address,
outcome, elapsed_us, iteration, error_reason).

Logs go to stderr so that reports written to stdout stay machine readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from happy_probe.middleware.request_id import RequestIdFilter

_PROBE_FIELDS = (
    "target_host",
    "target_port",
    "address",
    "outcome",
    "elapsed_us",
    "iteration",
    "error_reason",
    "duration_ms",
)


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }

        for name in _PROBE_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(level: str = "WARNING", json_output: bool = False) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    json_output:
        Emit JSON entries instead of plain text lines.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RequestIdFilter())
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    root.addHandler(handler)
