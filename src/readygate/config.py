"""Wait settings sourced from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, FrozenSet, Iterable, Optional, Tuple

from .errors import MisconfigurationError
from .probes import READY_KINDS, TRANSIENT_KINDS, ProbeKind

logger = logging.getLogger("readygate")

# probe kinds a user may escalate from "retry" to "abort"
FAIL_FAST_CHOICES = tuple(
    kind.value for kind in ProbeKind if kind not in READY_KINDS and kind is not ProbeKind.CANCELLED
)
# fatal-by-default kinds a user may downgrade to "retry"
RETRY_ON_CHOICES = tuple(value for value in FAIL_FAST_CHOICES if ProbeKind(value) not in TRANSIENT_KINDS)


def _parse_kinds(values: Iterable[str], choices: Tuple[str, ...], label: str) -> FrozenSet[ProbeKind]:
    kinds = set()
    for raw in values:
        value = raw.strip().lower()
        if not value:
            continue
        if value not in choices:
            raise MisconfigurationError(f"Invalid {label} kind '{raw}'; expected one of: {', '.join(choices)}")
        kinds.add(ProbeKind(value))
    return frozenset(kinds)


def parse_fail_fast(values: Iterable[str]) -> FrozenSet[ProbeKind]:
    return _parse_kinds(values, FAIL_FAST_CHOICES, "fail-fast")


def parse_retry_on(values: Iterable[str]) -> FrozenSet[ProbeKind]:
    return _parse_kinds(values, RETRY_ON_CHOICES, "retry-on")


@dataclass
class WaitSettings:
    """Tunables for one wait, with defaults matching the classic wait-for-it."""

    timeout: int = 10
    interval: float = 1.0
    connect_timeout: float = 1.0
    status_interval: float = 5.0
    fail_fast_on: FrozenSet[ProbeKind] = field(default_factory=frozenset)
    retry_on: FrozenSet[ProbeKind] = field(default_factory=frozenset)
    hosts_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.timeout < 1:
            raise MisconfigurationError(f"Timeout must be a positive integer, got {self.timeout}")
        if self.interval < 0:
            raise MisconfigurationError(f"Retry interval must not be negative, got {self.interval}")
        if self.connect_timeout <= 0:
            raise MisconfigurationError(f"Connect timeout must be positive, got {self.connect_timeout}")
        if self.status_interval < 0:
            raise MisconfigurationError(f"Status interval must not be negative, got {self.status_interval}")

    @classmethod
    def from_env(cls) -> "WaitSettings":
        """Create settings from ``READYGATE_*`` environment variables."""

        def _get_number(key: str, default: str, convert: Any) -> Any:
            raw = os.getenv(key, default).strip()
            try:
                return convert(raw)
            except ValueError as exc:
                raise MisconfigurationError(f"Invalid value for {key}: {raw!r}") from exc

        return cls(
            timeout=_get_number("READYGATE_TIMEOUT", "10", int),
            interval=_get_number("READYGATE_INTERVAL", "1", float),
            connect_timeout=_get_number("READYGATE_CONNECT_TIMEOUT", "1", float),
            status_interval=_get_number("READYGATE_STATUS_INTERVAL", "5", float),
            fail_fast_on=parse_fail_fast(os.getenv("READYGATE_FAIL_FAST_ON", "").split(",")),
            retry_on=parse_retry_on(os.getenv("READYGATE_RETRY_ON", "").split(",")),
            hosts_file=os.getenv("READYGATE_HOSTS_FILE") or None,
        )

    def override(self, **changes: Any) -> "WaitSettings":
        """Return a copy with every non-``None`` keyword applied."""

        applied = {key: value for key, value in changes.items() if value is not None}
        if applied:
            logger.debug("Applying setting overrides", extra={"overrides": sorted(applied)})
        return replace(self, **applied)
