"""Targets the gate waits on, and parsing of their command-line form."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Union

from .errors import MisconfigurationError

_ENV_REF = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


@dataclass(frozen=True)
class TcpTarget:
    """A TCP endpoint that must accept a connection."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not self.host:
            raise MisconfigurationError("Host must not be empty")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise MisconfigurationError(f"Invalid port: {self.port!r}")
        if not 1 <= self.port <= 65535:
            raise MisconfigurationError(f"Invalid port: {self.port}")

    @property
    def label(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class FileTarget:
    """A filesystem path that must exist."""

    path: str

    def __post_init__(self) -> None:
        if not self.path:
            raise MisconfigurationError("File path must not be empty")

    @property
    def label(self) -> str:
        return f"file:{self.path}"

    def __str__(self) -> str:
        return self.label


Target = Union[TcpTarget, FileTarget]


def expand_env(value: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Expand ``$VAR`` and ``${VAR}`` references, failing on unset variables."""

    env = os.environ if environ is None else environ

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1) or match.group(2)
        if name not in env:
            raise MisconfigurationError(f"Environment variable not set: {name}")
        return env[name]

    return _ENV_REF.sub(_replace, value)


def parse_host_port(spec: str) -> TcpTarget:
    """Parse ``host:port`` (or ``[v6addr]:port``) into a :class:`TcpTarget`."""

    spec = spec.strip()
    host, sep, port = spec.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise MisconfigurationError(f"Invalid host specification: {spec}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return TcpTarget(host=host, port=int(port))


def parse_targets(
    hosts: Iterable[str],
    files: Iterable[str],
    environ: Optional[Mapping[str, str]] = None,
) -> List[Target]:
    """Build the ordered target list from raw ``-h`` and ``-f`` arguments."""

    targets: List[Target] = []
    for raw in hosts:
        targets.append(parse_host_port(expand_env(raw, environ)))
    for raw in files:
        targets.append(FileTarget(path=expand_env(raw, environ)))
    if not targets:
        raise MisconfigurationError("At least one host or file must be specified.")
    # repeated targets are probed once
    return list(dict.fromkeys(targets))
