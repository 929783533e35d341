"""Single-shot readiness checks for TCP endpoints and filesystem paths."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import os
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

logger = logging.getLogger("readygate")


class ProbeKind(Enum):
    """Classification of a single probe attempt."""

    CONNECTED = "connected"
    FOUND = "found"
    REFUSED = "refused"
    TIMED_OUT = "timed-out"
    MISSING = "missing"
    ERROR = "error"
    CANCELLED = "cancelled"


READY_KINDS = frozenset({ProbeKind.CONNECTED, ProbeKind.FOUND})
TRANSIENT_KINDS = frozenset({ProbeKind.REFUSED, ProbeKind.TIMED_OUT, ProbeKind.MISSING})


@dataclass(frozen=True)
class ProbeResult:
    kind: ProbeKind
    detail: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.kind in READY_KINDS

    def describe(self) -> str:
        if self.detail:
            return f"{self.kind.value}: {self.detail}"
        return self.kind.value


class TcpProbe:
    """Attempt one non-blocking connection to ``host:port``.

    The connect is awaited on the running event loop, whose selector reports
    when the socket becomes writable or fails. The socket is closed once the
    attempt is classified; it is never reused for traffic.

    ``connect_timeout`` bounds name resolution and the connect together. A
    lookup that outlives it keeps its executor thread until the system
    resolver returns; literal addresses never touch the executor.
    """

    def __init__(self, host: str, port: int, connect_timeout: float = 1.0) -> None:
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout

    async def attempt(self) -> ProbeResult:
        try:
            await asyncio.wait_for(self._connect(), timeout=self.connect_timeout)
        except ConnectionRefusedError as exc:
            return ProbeResult(ProbeKind.REFUSED, exc.strerror or str(exc))
        except asyncio.TimeoutError:
            return ProbeResult(ProbeKind.TIMED_OUT, f"no response within {self.connect_timeout:g}s")
        except OSError as exc:
            return ProbeResult(ProbeKind.ERROR, exc.strerror or str(exc))
        return ProbeResult(ProbeKind.CONNECTED)

    async def _resolve(self) -> Tuple[int, int, int, Tuple[Any, ...]]:
        try:
            literal = ipaddress.ip_address(self.host)
        except ValueError:
            loop = asyncio.get_running_loop()
            infos = await loop.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
            family, sock_type, proto, _, address = infos[0]
            return family, sock_type, proto, address
        if literal.version == 6:
            return socket.AF_INET6, socket.SOCK_STREAM, socket.IPPROTO_TCP, (self.host, self.port, 0, 0)
        return socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, (self.host, self.port)

    async def _connect(self) -> None:
        family, sock_type, proto, address = await self._resolve()
        sock = socket.socket(family, sock_type, proto)
        try:
            sock.setblocking(False)
            await asyncio.get_running_loop().sock_connect(sock, address)
        finally:
            sock.close()

    def __repr__(self) -> str:
        return f"TcpProbe({self.host!r}, {self.port})"


class FileProbe:
    """Check whether a path exists right now."""

    def __init__(self, path: str) -> None:
        self.path = path

    def check(self) -> bool:
        try:
            os.stat(self.path)
        except OSError as exc:
            # permission problems and races count as "not there yet"
            logger.debug("stat failed", extra={"path": self.path, "error": str(exc)})
            return False
        return True

    async def attempt(self) -> ProbeResult:
        if self.check():
            return ProbeResult(ProbeKind.FOUND)
        return ProbeResult(ProbeKind.MISSING)

    def __repr__(self) -> str:
        return f"FileProbe({self.path!r})"
