"""Name resolution: turn a (host, port) pair into a Target with endpoints."""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable

from happy_probe.models.endpoint import Endpoint
from happy_probe.models.target import Target

logger = logging.getLogger(__name__)

FAMILIES = {
    "any": socket.AF_UNSPEC,
    "inet": socket.AF_INET,
    "inet6": socket.AF_INET6,
}

GetAddrInfo = Callable[..., list]


class Resolver:
    """Resolves targets through ``getaddrinfo`` for stream sockets.

    Args:
        family: One of ``any``, ``inet``, ``inet6``.
        getaddrinfo: Lookup function, ``socket.getaddrinfo`` by default.
    """

    def __init__(
        self,
        family: str = "any",
        getaddrinfo: GetAddrInfo = socket.getaddrinfo,
    ) -> None:
        self._family = FAMILIES[family]
        self._getaddrinfo = getaddrinfo

    def resolve(self, host: str, port: str) -> Target:
        """Resolve one host/port pair.

        A lookup failure does not raise: the returned Target has no
        endpoints and carries the resolver message in ``error``.
        """
        target = Target(host=host, port=str(port))

        try:
            infos = self._getaddrinfo(host, str(port), self._family, socket.SOCK_STREAM)
        except socket.gaierror as exc:
            target.error = exc.strerror or str(exc)
            logger.warning(
                "getaddrinfo: %s (skipping %s)",
                target.error,
                target.label,
                extra={"target_host": host, "target_port": target.port},
            )
            return target
        except UnicodeError as exc:
            target.error = f"invalid host name: {exc}"
            logger.warning("Invalid host name %r (skipping)", host)
            return target

        for family, socktype, protocol, _canonname, sockaddr in infos:
            target.endpoints.append(
                Endpoint(
                    family=family,
                    socktype=socktype,
                    protocol=protocol,
                    address=tuple(sockaddr),
                )
            )

        logger.debug("Resolved %s to %d endpoints", target.label, len(target.endpoints))
        return target
