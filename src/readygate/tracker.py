"""Per-target status bookkeeping and status rendering."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from .probes import ProbeKind
from .targets import Target

logger = logging.getLogger("readygate")


class TargetState(Enum):
    WAITING = auto()
    RETRYING = auto()
    READY = auto()
    FAILED = auto()


TERMINAL_STATES = frozenset({TargetState.READY, TargetState.FAILED})


@dataclass(frozen=True)
class TargetStatus:
    """Human-visible status of one target."""

    state: TargetState
    attempt: int = 0
    last_error: Optional[ProbeKind] = None
    reason: Optional[str] = None

    @classmethod
    def waiting(cls) -> "TargetStatus":
        return cls(TargetState.WAITING)

    @classmethod
    def retrying(cls, attempt: int, last_error: Optional[ProbeKind] = None) -> "TargetStatus":
        return cls(TargetState.RETRYING, attempt=attempt, last_error=last_error)

    @classmethod
    def ready(cls, attempt: int = 1) -> "TargetStatus":
        return cls(TargetState.READY, attempt=attempt)

    @classmethod
    def failed(cls, reason: str, attempt: int = 0) -> "TargetStatus":
        return cls(TargetState.FAILED, attempt=attempt, reason=reason)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def message(self) -> str:
        if self.state is TargetState.WAITING:
            return "Waiting"
        if self.state is TargetState.RETRYING:
            last = self.last_error.value if self.last_error else "unknown"
            return f"Retrying (attempt {self.attempt}, last: {last})"
        if self.state is TargetState.READY:
            return "OK"
        return f"Failed: {self.reason}"


def render_line(target: Target, status: TargetStatus) -> str:
    return f"{target} | {status.message}"


class TargetTracker:
    """Thread-safe registry of the latest status for every target.

    Registration order is preserved so snapshots and reports are stable.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._statuses: Dict[Target, TargetStatus] = {}

    def register(self, target: Target) -> None:
        with self._lock:
            self._statuses.setdefault(target, TargetStatus.waiting())

    def update(self, target: Target, status: TargetStatus) -> bool:
        """Store ``status`` for ``target``; return whether anything changed."""

        with self._lock:
            previous = self._statuses.get(target)
            self._statuses[target] = status
        changed = previous != status
        if changed:
            logger.debug(
                "Target status changed",
                extra={"target": str(target), "status": status.message},
            )
        return changed

    def get(self, target: Target) -> Optional[TargetStatus]:
        with self._lock:
            return self._statuses.get(target)

    def snapshot(self) -> List[Tuple[Target, TargetStatus]]:
        with self._lock:
            return list(self._statuses.items())

    def unready(self) -> Tuple[Target, ...]:
        return tuple(target for target, status in self.snapshot() if status.state is not TargetState.READY)

    def render_table(self) -> str:
        return "\n".join(render_line(target, status) for target, status in self.snapshot())
