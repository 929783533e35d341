"""Fixed-interval retrying of a single probe until it resolves or is cancelled."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Protocol

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_when_event_set, wait_fixed

from .errors import ErrorKind, classify
from .probes import ProbeKind, ProbeResult
from .targets import Target
from .tracker import TargetStatus, TargetTracker

logger = logging.getLogger("readygate")

StatusCallback = Callable[[Target, TargetStatus], None]


class Probe(Protocol):
    async def attempt(self) -> ProbeResult:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class Resolution:
    """Final result of one scheduler run."""

    target: Target
    result: ProbeResult
    attempts: int
    fatal: bool = False

    @property
    def ready(self) -> bool:
        return self.result.ready

    @property
    def cancelled(self) -> bool:
        return self.result.kind is ProbeKind.CANCELLED


_CANCELLED = ProbeResult(ProbeKind.CANCELLED)


class RetryScheduler:
    """Drive repeated attempts of ``probe`` for one target.

    Transient results are retried every ``interval`` seconds with no attempt
    cap. Other OS errors, and any kind in ``fail_fast_on``, resolve the
    scheduler as fatal; kinds in ``retry_on`` are retried instead. After
    :meth:`cancel` no further probe attempt is started and any result still
    in flight is discarded.
    """

    def __init__(
        self,
        target: Target,
        probe: Probe,
        tracker: TargetTracker,
        *,
        interval: float = 1.0,
        fail_fast_on: Iterable[ProbeKind] = (),
        retry_on: Iterable[ProbeKind] = (),
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self.target = target
        self.probe = probe
        self.tracker = tracker
        self.interval = interval
        self.fail_fast_on: FrozenSet[ProbeKind] = frozenset(fail_fast_on)
        self.retry_on: FrozenSet[ProbeKind] = frozenset(retry_on)
        self.attempts = 0
        self._on_status = on_status
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def _is_fatal(self, result: ProbeResult) -> bool:
        if result.ready or result.kind is ProbeKind.CANCELLED:
            return False
        return classify(result.kind, self.fail_fast_on, self.retry_on) is ErrorKind.FATAL

    def _should_retry(self, result: ProbeResult) -> bool:
        if result.ready or result.kind is ProbeKind.CANCELLED:
            return False
        return not self._is_fatal(result)

    def _record(self, result: ProbeResult) -> None:
        if result.ready:
            status = TargetStatus.ready(self.attempts)
        elif self._is_fatal(result):
            status = TargetStatus.failed(result.describe(), self.attempts)
        else:
            status = TargetStatus.retrying(self.attempts, result.kind)
        if self.tracker.update(self.target, status) and self._on_status is not None:
            self._on_status(self.target, status)

    async def _attempt_once(self) -> ProbeResult:
        if self.cancelled:
            return _CANCELLED
        self.attempts += 1
        result = await self.probe.attempt()
        if self.cancelled:
            logger.debug(
                "Discarding probe result after cancellation",
                extra={"target": str(self.target), "result": result.describe()},
            )
            return _CANCELLED
        logger.debug(
            "Probe attempt finished",
            extra={"target": str(self.target), "attempt": self.attempts, "result": result.describe()},
        )
        self._record(result)
        return result

    @staticmethod
    def _stopped(retry_state: RetryCallState) -> ProbeResult:
        return _CANCELLED

    async def run(self) -> Resolution:
        retrying = AsyncRetrying(
            retry=retry_if_result(self._should_retry),
            wait=wait_fixed(self.interval),
            stop=stop_when_event_set(self._cancelled),
            retry_error_callback=self._stopped,
        )
        result = await retrying(self._attempt_once)
        return Resolution(self.target, result, self.attempts, fatal=self._is_fatal(result))
