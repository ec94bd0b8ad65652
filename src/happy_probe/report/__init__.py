"""Report rendering and output locking."""

from happy_probe.report.formatter import format_json, format_semicolon, format_text
from happy_probe.report.lock import emit, locked_output

__all__ = [
    "emit",
    "format_json",
    "format_semicolon",
    "format_text",
    "locked_output",
]
