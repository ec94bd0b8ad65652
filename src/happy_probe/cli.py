"""Command line interface: ``happy [options] hostname...``.

Races TCP connections to every address of every hostname/port pair and
prints the ranked results, either as a table, as semicolon separated
``HAPPY.0`` records or as JSON. Option defaults come from ``ProbeSettings``
(``HAPPY_*`` environment variables).
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from typing import TextIO

from pydantic import ValidationError as SettingsValidationError

from happy_probe.config.settings import ProbeSettings
from happy_probe.config.targets import load_targets
from happy_probe.engine.context import RaceConfig
from happy_probe.engine.race import RaceEngine
from happy_probe.engine.resolver import Resolver
from happy_probe.logging_config import configure_logging
from happy_probe.middleware.error_handler import FatalProbeError, TargetFileError
from happy_probe.report.formatter import format_json, format_semicolon, format_text
from happy_probe.report.lock import emit

logger = logging.getLogger(__name__)

PROG = "happy"

EngineFactory = Callable[[RaceConfig, str], RaceEngine]


def _parse_decimal(value: str) -> int | None:
    digits = value.strip().lstrip("+")
    if not (digits.isascii() and digits.isdigit()):
        return None
    return int(digits, 10)


def _positive_int(option: str) -> Callable[[str], int]:
    def parse(value: str) -> int:
        number = _parse_decimal(value)
        if number is None or number <= 0:
            raise argparse.ArgumentTypeError(f"invalid argument '{value}' for option {option}")
        return number

    return parse


def _non_negative_int(option: str) -> Callable[[str], int]:
    def parse(value: str) -> int:
        number = _parse_decimal(value)
        if number is None:
            raise argparse.ArgumentTypeError(f"invalid argument '{value}' for option {option}")
        return number

    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Probe which addresses a happy eyeballs client would connect to.",
    )
    parser.add_argument("hosts", nargs="*", metavar="hostname")
    parser.add_argument(
        "-p", "--port", dest="ports", action="append", metavar="PORT",
        help="port or service to probe (repeatable, default from settings)",
    )
    parser.add_argument(
        "-q", "--queries", type=_positive_int("-q"), metavar="N",
        help="connection attempts per endpoint",
    )
    parser.add_argument(
        "-t", "--timeout", type=_non_negative_int("-t"), metavar="MS",
        help="attempt timeout in milliseconds (0 waits for completion)",
    )
    parser.add_argument(
        "-d", "--delay", type=_non_negative_int("-d"), metavar="MS",
        help="delay between attempt starts in milliseconds (0 disables pacing)",
    )
    fmt = parser.add_mutually_exclusive_group()
    fmt.add_argument("-s", "--semicolon", action="store_true", help="semicolon separated output")
    fmt.add_argument("-j", "--json", action="store_true", help="JSON output")
    parser.add_argument(
        "-T", "--throughput", action="store_true",
        help="send a request on connected sockets and measure byte rates",
    )
    parser.add_argument(
        "--throughput-timeout", type=_positive_int("--throughput-timeout"), metavar="MS",
        help="time budget of the throughput phase in milliseconds",
    )
    family = parser.add_mutually_exclusive_group()
    family.add_argument("-4", dest="family", action="store_const", const="inet", help="IPv4 only")
    family.add_argument("-6", dest="family", action="store_const", const="inet6", help="IPv6 only")
    parser.add_argument("-f", "--file", metavar="FILE", help="YAML file with additional targets")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging")
    return parser


def _default_engine(config: RaceConfig, family: str) -> RaceEngine:
    return RaceEngine(config, resolver=Resolver(family))


def main(
    argv: list[str] | None = None,
    *,
    stdout: TextIO | None = None,
    engine_factory: EngineFactory = _default_engine,
) -> int:
    """Run the prober. Returns the process exit status."""
    out = stdout if stdout is not None else sys.stdout
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ProbeSettings()
    except SettingsValidationError as exc:
        print(f"{PROG}: invalid settings: {exc}", file=sys.stderr)
        return 2

    level = settings.log_level
    if args.verbose == 1:
        level = "INFO"
    elif args.verbose >= 2:
        level = "DEBUG"
    configure_logging(level, json_output=settings.log_json)

    ports = args.ports or list(settings.default_ports)
    pairs = [(host, port) for host in args.hosts for port in ports]

    targets_path = args.file or settings.targets_path
    if targets_path:
        try:
            for spec in load_targets(targets_path):
                pairs.extend(spec.pairs(ports))
        except TargetFileError as exc:
            print(f"{PROG}: {exc.message}", file=sys.stderr)
            return 1

    if not pairs:
        parser.print_usage(sys.stderr)
        print(f"{PROG}: no hostname given", file=sys.stderr)
        return 2
    logger.debug("Probing %d host/port pairs", len(pairs))

    config = RaceConfig.from_settings(
        settings,
        query_count=args.queries,
        timeout_ms=args.timeout,
        delay_ms=args.delay,
        throughput_enabled=True if args.throughput else None,
        throughput_timeout_ms=args.throughput_timeout,
    )

    try:
        with engine_factory(config, args.family or settings.address_family) as engine:
            for host, port in pairs:
                engine.expand(host, port)
            targets = engine.run()
    except FatalProbeError as exc:
        print(f"{PROG}: {exc.message}", file=sys.stderr)
        return 1

    if args.json:
        text = format_json(targets, config)
    elif args.semicolon:
        text = format_semicolon(targets)
    else:
        text = format_text(targets)

    emit(out, text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
