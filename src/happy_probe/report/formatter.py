"""Report rendering for finished runs.

Three renderings of the ranked targets:

- text: a table per target with MIN/AVG/MAX connect times in ms
- semicolon: one ``HAPPY.0`` record per target, meant for other programs
- json: the ``RunReport`` model

Times are printed as ``ms.usec`` from the integer microsecond statistics.
"""

from __future__ import annotations

import time

from happy_probe.engine.context import RaceConfig
from happy_probe.models.endpoint import Endpoint
from happy_probe.models.schemas import RunReport
from happy_probe.models.target import Target

RECORD_TAG = "HAPPY.0"
_COLUMN = 48


def _ms(us: int | float) -> str:
    value = int(us)
    return f"{value // 1000}.{value % 1000:03d}"


def _stats(endpoint: Endpoint) -> tuple[str, str, str] | None:
    if not endpoint.success_count:
        return None
    return _ms(endpoint.min_us), _ms(endpoint.mean_us), _ms(endpoint.max_us)


def _has_throughput(targets: list[Target]) -> bool:
    return any(ep.throughput_seconds > 0 for t in targets for ep in t.endpoints)


def format_text(targets: list[Target]) -> str:
    """Human readable table, endpoints in ranked order."""
    throughput = _has_throughput(targets)
    blocks: list[str] = []

    for target in targets:
        lines = []
        label = target.label
        if not target.resolved:
            reason = target.error or "no addresses"
            lines.append(f"{label.ljust(_COLUMN)}  (resolution failed: {reason})")
            blocks.append("\n".join(lines))
            continue

        header = f"{label.ljust(_COLUMN)}  MIN ms   AVG ms   MAX ms"
        if throughput:
            header += "     TX B/s     RX B/s"
        lines.append(header)

        for endpoint in target.endpoints:
            row = f" {endpoint.host_string()}".ljust(_COLUMN)
            stats = _stats(endpoint)
            if stats is None:
                row += f"{'-':>8} {'-':>8} {'-':>8}"
            else:
                row += " ".join(f"{value:>8}" for value in stats)
            if throughput:
                row += _rates(endpoint)
            lines.append(row)

        blocks.append("\n".join(lines))

    return "\n\n".join(blocks) + ("\n" if blocks else "")


def _rates(endpoint: Endpoint) -> str:
    if endpoint.throughput_seconds <= 0:
        return f"{'-':>11}{'-':>11}"
    tx = endpoint.bytes_sent / endpoint.throughput_seconds
    rx = endpoint.bytes_received / endpoint.throughput_seconds
    return f"{tx:11.0f}{rx:11.0f}"


def format_semicolon(targets: list[Target], now: int | None = None) -> str:
    """One ``HAPPY.0;<ts>;OK;<host>;<port>;<addr>;<min>;<avg>;<max>...`` line per target."""
    stamp = int(time.time()) if now is None else now
    lines = []

    for target in targets:
        if not target.resolved:
            lines.append(f"{RECORD_TAG};{stamp};FAIL;{target.host};{target.port}")
            continue

        fields = [RECORD_TAG, str(stamp), "OK", target.host, target.port]
        for endpoint in target.endpoints:
            fields.append(endpoint.host_string())
            fields.extend(_stats(endpoint) or ("", "", ""))
        lines.append(";".join(fields))

    return "".join(f"{line}\n" for line in lines)


def format_json(targets: list[Target], config: RaceConfig) -> str:
    report = RunReport.build(
        targets,
        query_count=config.query_count,
        timeout_ms=config.timeout_ms,
        delay_ms=config.delay_ms,
    )
    return report.model_dump_json(indent=2) + "\n"
