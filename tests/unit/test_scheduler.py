"""Unit tests for attempt start-up and setup failure handling."""

from __future__ import annotations

import errno
import socket
from unittest.mock import MagicMock

import pytest

from happy_probe.engine.scheduler import Scheduler
from happy_probe.models.endpoint import Endpoint, EndpointState, Outcome
from happy_probe.models.target import Target


class FakeSocket:
    """Socket double with a scripted ``connect_ex`` result."""

    def __init__(self, connect_result: int = errno.EINPROGRESS, blocking_error: int | None = None):
        self.connect_result = connect_result
        self.blocking_error = blocking_error
        self.closed = False
        self.connected_to = None

    def setblocking(self, flag: bool) -> None:
        if self.blocking_error is not None:
            raise OSError(self.blocking_error, "setblocking failed")

    def connect_ex(self, address: tuple) -> int:
        self.connected_to = address
        return self.connect_result

    def close(self) -> None:
        self.closed = True


def _target(*addresses: str) -> Target:
    endpoints = [
        Endpoint(
            family=socket.AF_INET,
            socktype=socket.SOCK_STREAM,
            protocol=socket.IPPROTO_TCP,
            address=(address, 80),
        )
        for address in addresses
    ]
    return Target(host="example.com", port="80", endpoints=endpoints)


def _scheduler(factory, now: float = 50.0) -> tuple[Scheduler, MagicMock, MagicMock]:
    loop = MagicMock()
    pacer = MagicMock()
    scheduler = Scheduler(loop, pacer, clock=lambda: now, socket_factory=factory)
    return scheduler, loop, pacer


class TestScheduler:
    """Tests for the Scheduler class."""

    def test_in_progress_connect_is_watched(self) -> None:
        sock = FakeSocket(connect_result=errno.EINPROGRESS)
        scheduler, loop, pacer = _scheduler(lambda *a: sock)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        assert scheduler.start(target, ep) is True

        assert ep.state is EndpointState.CONNECTING
        assert ep.sock is sock
        assert ep.started_at == 50.0
        assert sock.connected_to == ("192.0.2.1", 80)
        loop.watch.assert_called_once_with(ep)
        pacer.mark.assert_called_once_with(50.0)
        assert ep.samples == []

    def test_immediate_connect_counts_as_in_flight(self) -> None:
        sock = FakeSocket(connect_result=0)
        scheduler, loop, _pacer = _scheduler(lambda *a: sock)
        target = _target("192.0.2.1")

        assert scheduler.start(target, target.endpoints[0]) is True
        loop.watch.assert_called_once()

    def test_immediate_connect_error_records_failure(self) -> None:
        sock = FakeSocket(connect_result=errno.ENETUNREACH)
        scheduler, loop, pacer = _scheduler(lambda *a: sock)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        assert scheduler.start(target, ep) is False

        assert ep.state is EndpointState.FAILED
        assert [s.outcome for s in ep.samples] == [Outcome.FAILURE]
        assert ep.samples[0].error == errno.ENETUNREACH
        assert ep.excluded is False
        assert sock.closed is True
        loop.watch.assert_not_called()
        pacer.mark.assert_called_once_with(50.0)

    @pytest.mark.parametrize("result", [errno.EAGAIN, errno.EWOULDBLOCK, errno.EALREADY])
    def test_would_block_connect_is_a_failure(self, result: int) -> None:
        sock = FakeSocket(connect_result=result)
        scheduler, loop, _pacer = _scheduler(lambda *a: sock)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        assert scheduler.start(target, ep) is False

        assert ep.state is EndpointState.FAILED
        assert [s.outcome for s in ep.samples] == [Outcome.FAILURE]
        assert ep.samples[0].error == result
        assert ep.samples[0].signed_us <= 0
        assert sock.closed is True
        loop.watch.assert_not_called()

    def test_setblocking_error_records_failure(self) -> None:
        sock = FakeSocket(blocking_error=errno.EINVAL)
        scheduler, loop, pacer = _scheduler(lambda *a: sock)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        assert scheduler.start(target, ep) is False

        assert ep.state is EndpointState.FAILED
        assert ep.samples[0].error == errno.EINVAL
        assert sock.closed is True
        assert sock.connected_to is None
        pacer.mark.assert_not_called()

    def test_unsupported_family_excludes_endpoint(self) -> None:
        def factory(*_args):
            raise OSError(errno.EAFNOSUPPORT, "Address family not supported by protocol")

        scheduler, loop, _pacer = _scheduler(factory)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        assert scheduler.start(target, ep) is False

        assert ep.excluded is True
        assert ep.state is EndpointState.FAILED
        assert [s.outcome for s in ep.samples] == [Outcome.FAILURE]
        assert ep.samples[0].elapsed_us == 0

    def test_descriptor_exhaustion_is_retried(self) -> None:
        def factory(*_args):
            raise OSError(errno.EMFILE, "Too many open files")

        scheduler, _loop, _pacer = _scheduler(factory)
        target = _target("192.0.2.1")
        ep = target.endpoints[0]

        scheduler.start(target, ep)
        assert ep.excluded is False

    def test_iteration_skips_excluded_endpoints(self) -> None:
        created = []

        def factory(*_args):
            sock = FakeSocket()
            created.append(sock)
            return sock

        scheduler, loop, pacer = _scheduler(factory)
        target = _target("192.0.2.1", "192.0.2.2", "192.0.2.3")
        target.endpoints[1].excluded = True

        started = scheduler.start_iteration([target])

        assert started == 2
        assert len(created) == 2
        assert [sock.connected_to[0] for sock in created] == ["192.0.2.1", "192.0.2.3"]
        assert pacer.wait.call_count == 2
        assert target.endpoints[1].samples == []

    def test_iteration_resets_previous_attempt(self) -> None:
        scheduler, _loop, _pacer = _scheduler(lambda *a: FakeSocket())
        target = _target("192.0.2.1")
        ep = target.endpoints[0]
        previous = MagicMock()
        ep.begin(previous, 1.0)
        ep.succeed(1.001)

        scheduler.start_iteration([target])

        previous.close.assert_called_once()
        assert ep.state is EndpointState.CONNECTING

    def test_targets_then_endpoints_order(self) -> None:
        order = []

        def factory(*_args):
            sock = FakeSocket()
            original = sock.connect_ex

            def connect_ex(address):
                order.append(address[0])
                return original(address)

            sock.connect_ex = connect_ex
            return sock

        scheduler, _loop, _pacer = _scheduler(factory)
        first = _target("192.0.2.1", "192.0.2.2")
        second = _target("198.51.100.1")

        scheduler.start_iteration([first, second])

        assert order == ["192.0.2.1", "192.0.2.2", "198.51.100.1"]
