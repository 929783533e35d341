"""Name resolution for TCP targets, with an optional hosts-file override."""

from __future__ import annotations

import ipaddress
import logging
import socket
from pathlib import Path
from typing import Dict, Optional

from .errors import MisconfigurationError
from .targets import TcpTarget

logger = logging.getLogger("readygate")


def parse_hosts_file(text: str) -> Dict[str, str]:
    """Parse ``/etc/hosts`` style content into a name -> address mapping.

    The first entry for a name wins, matching the system resolver.
    """

    mapping: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        address, *names = line.split()
        try:
            ipaddress.ip_address(address)
        except ValueError:
            logger.warning("Ignoring hosts entry with invalid address '%s'", address)
            continue
        for name in names:
            mapping.setdefault(name.lower(), address)
    return mapping


def is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class HostResolver:
    """Resolve target host names before probing.

    Names that cannot be resolved yet are kept as-is and resolved again by the
    probe. A resolver failure there is an ``error`` result, fatal unless
    ``retry_on`` includes it; containers often start before DNS knows them.
    """

    def __init__(self, hosts_file: Optional[str] = None) -> None:
        self._overrides: Dict[str, str] = {}
        if hosts_file:
            path = Path(hosts_file)
            if not path.is_file():
                raise MisconfigurationError(f"Hosts file not found: {hosts_file}")
            self._overrides = parse_hosts_file(path.read_text(encoding="utf-8"))

    def resolve(self, host: str) -> str:
        if is_ip_literal(host):
            return host
        override = self._overrides.get(host.lower())
        if override:
            logger.info("Resolved %s from hosts file --> %s", host, override)
            return override
        try:
            address = socket.gethostbyname(host)
        except OSError as exc:
            logger.warning("Could not resolve %s yet (%s); deferring to the probe", host, exc)
            return host
        logger.info("Resolved %s --> %s", host, address)
        return address

    def resolve_target(self, target: TcpTarget) -> TcpTarget:
        return TcpTarget(host=self.resolve(target.host), port=target.port)
