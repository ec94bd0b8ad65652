"""Shared test fixtures for the prober test suite."""

from __future__ import annotations

import os
import socket
from collections.abc import Callable, Iterator

import pytest

from happy_probe.config.settings import ProbeSettings
from happy_probe.engine.resolver import Resolver


# ---------------------------------------------------------------------------
# Keep HAPPY_* variables from the developer's shell out of the tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("HAPPY_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> ProbeSettings:
    """Test settings with fast defaults."""
    return ProbeSettings(
        query_count=1,
        timeout_ms=2000,
        delay_ms=0,
        max_concurrent_races=2,
        max_targets_per_request=8,
    )


# ---------------------------------------------------------------------------
# Loopback peers
# ---------------------------------------------------------------------------

@pytest.fixture
def listener() -> Iterator[tuple[str, int]]:
    """A listening loopback socket that never accepts; the kernel completes handshakes."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(128)
    try:
        yield server.getsockname()
    finally:
        server.close()


@pytest.fixture
def closed_port() -> int:
    """A loopback port with nothing listening on it."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


# ---------------------------------------------------------------------------
# Resolver and socket helpers
# ---------------------------------------------------------------------------

def _static_resolver(table: dict[str, list[tuple[str, int]]]) -> Resolver:
    """Resolver answering from ``table``; unknown hosts fail like getaddrinfo."""

    def getaddrinfo(host, port, family=0, socktype=0):
        if host not in table:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        infos = []
        for address, addr_port in table[host]:
            if ":" in address:
                infos.append(
                    (socket.AF_INET6, socket.SOCK_STREAM, socket.IPPROTO_TCP, "",
                     (address, addr_port, 0, 0))
                )
            else:
                infos.append(
                    (socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, "",
                     (address, addr_port))
                )
        return infos

    return Resolver(getaddrinfo=getaddrinfo)


@pytest.fixture
def resolver_for() -> Callable[[dict[str, list[tuple[str, int]]]], Resolver]:
    """Build a resolver from ``{host: [(address, port), ...]}``."""
    return _static_resolver


class SocketTracker:
    """Socket factory that remembers every socket it created."""

    def __init__(self) -> None:
        self.created: list[socket.socket] = []

    def __call__(self, family: int, socktype: int, protocol: int) -> socket.socket:
        sock = socket.socket(family, socktype, protocol)
        self.created.append(sock)
        return sock

    @property
    def open_count(self) -> int:
        return sum(1 for s in self.created if s.fileno() != -1)


@pytest.fixture
def socket_tracker() -> SocketTracker:
    return SocketTracker()
