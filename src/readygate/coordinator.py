"""Concurrent waiting on every target under one global deadline."""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import MisconfigurationError
from .probes import FileProbe, ProbeKind, TcpProbe
from .retry import Probe, Resolution, RetryScheduler
from .targets import FileTarget, Target
from .tracker import TargetStatus, TargetTracker, render_line

logger = logging.getLogger("readygate")

ProbeFactory = Callable[[Target], Probe]
Echo = Callable[[str], None]


class CoordinatorState(Enum):
    RUNNING = auto()
    ALL_READY = auto()
    TIMED_OUT = auto()
    FATALLY_FAILED = auto()


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class Timeout:
    unfinished: Tuple[Target, ...]


@dataclass(frozen=True)
class Fatal:
    target: Target
    reason: str


Outcome = Union[Success, Timeout, Fatal]

_STATE_FOR_OUTCOME = {
    Success: CoordinatorState.ALL_READY,
    Timeout: CoordinatorState.TIMED_OUT,
    Fatal: CoordinatorState.FATALLY_FAILED,
}


class WaitSession:
    """Targets, deadline and the write-once outcome of one invocation."""

    def __init__(self, targets: Iterable[Target], timeout: float) -> None:
        self.targets: Tuple[Target, ...] = tuple(dict.fromkeys(targets))
        if not self.targets:
            raise MisconfigurationError("At least one target is required")
        if timeout <= 0:
            raise MisconfigurationError(f"Timeout must be positive, got {timeout}")
        self.timeout = timeout
        self.started_at: Optional[float] = None
        self.deadline: Optional[float] = None
        self._lock = threading.Lock()
        self._outcome: Optional[Outcome] = None

    def start(self, now: float) -> None:
        self.started_at = now
        self.deadline = now + self.timeout

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    @property
    def finished(self) -> bool:
        return self._outcome is not None

    @property
    def state(self) -> CoordinatorState:
        outcome = self._outcome
        if outcome is None:
            return CoordinatorState.RUNNING
        return _STATE_FOR_OUTCOME[type(outcome)]

    def commit(self, outcome: Outcome) -> bool:
        """Record ``outcome`` unless one is already set; report whether it was taken."""

        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            return True


class WaitCoordinator:
    """Run one retry scheduler per target and resolve to a single outcome.

    The coordinator finishes when every target is ready, when a scheduler
    resolves fatally (an OS error not listed in ``retry_on``, or a kind listed
    in ``fail_fast_on``), or when the global deadline fires. Whichever happens
    first wins; every scheduler is then cancelled and later results are
    ignored.
    """

    def __init__(
        self,
        targets: Sequence[Target],
        timeout: float = 10,
        *,
        interval: float = 1.0,
        connect_timeout: float = 1.0,
        fail_fast_on: Iterable[ProbeKind] = (),
        retry_on: Iterable[ProbeKind] = (),
        status_interval: float = 5.0,
        echo: Optional[Echo] = None,
        probe_factory: Optional[ProbeFactory] = None,
    ) -> None:
        self.session = WaitSession(targets, timeout)
        self.tracker = TargetTracker()
        self.interval = interval
        self.connect_timeout = connect_timeout
        self.fail_fast_on = frozenset(fail_fast_on)
        self.retry_on = frozenset(retry_on)
        self.status_interval = status_interval
        self._echo = echo
        self._probe_factory = probe_factory or self._default_probe
        self._schedulers: List[RetryScheduler] = []
        self._pending = 0
        self._finished: Optional[asyncio.Event] = None

    @property
    def state(self) -> CoordinatorState:
        return self.session.state

    def _default_probe(self, target: Target) -> Probe:
        if isinstance(target, FileTarget):
            return FileProbe(target.path)
        return TcpProbe(target.host, target.port, self.connect_timeout)

    def _emit(self, text: str) -> None:
        if self._echo is not None:
            self._echo(text)

    def _on_status(self, target: Target, status: TargetStatus) -> None:
        self._emit(render_line(target, status))

    def _finish(self, outcome: Outcome) -> bool:
        if not self.session.commit(outcome):
            return False
        for scheduler in self._schedulers:
            scheduler.cancel()
        logger.info("Wait finished", extra={"state": self.state.name})
        if self._finished is not None:
            self._finished.set()
        return True

    def _on_resolved(self, resolution: Resolution) -> None:
        if resolution.cancelled or self.session.finished:
            return
        if resolution.fatal:
            logger.error(
                "Target failed fatally",
                extra={"target": str(resolution.target), "reason": resolution.result.describe()},
            )
            self._finish(Fatal(resolution.target, resolution.result.describe()))
            return
        if resolution.ready:
            self._pending -= 1
            if self._pending == 0:
                self._finish(Success())

    def _on_deadline(self) -> None:
        unfinished = self.tracker.unready()
        if not self._finish(Timeout(unfinished)):
            return
        logger.warning("Global timeout reached", extra={"unfinished": [str(t) for t in unfinished]})
        for target in unfinished:
            status = TargetStatus.failed("timed out", self.tracker.get(target).attempt)
            if self.tracker.update(target, status):
                self._on_status(target, status)

    def _on_task_done(self, scheduler: RetryScheduler, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(
            "Scheduler crashed",
            exc_info=exc,
            extra={"target": str(scheduler.target)},
        )
        self._finish(Fatal(scheduler.target, f"{type(exc).__name__}: {exc}"))

    async def _drive(self, scheduler: RetryScheduler) -> None:
        self._on_resolved(await scheduler.run())

    async def _report_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.status_interval)
            self._emit(self.tracker.render_table())

    async def run(self) -> Outcome:
        if self._finished is not None:
            raise RuntimeError("WaitCoordinator.run() may only be called once")
        loop = asyncio.get_running_loop()
        self._finished = asyncio.Event()
        self.session.start(loop.time())

        for target in self.session.targets:
            self.tracker.register(target)
            self._emit(render_line(target, TargetStatus.waiting()))
            self._schedulers.append(
                RetryScheduler(
                    target,
                    self._probe_factory(target),
                    self.tracker,
                    interval=self.interval,
                    fail_fast_on=self.fail_fast_on,
                    retry_on=self.retry_on,
                    on_status=self._on_status,
                )
            )
        self._pending = len(self._schedulers)
        logger.info(
            "Waiting for targets",
            extra={"targets": [str(t) for t in self.session.targets], "timeout": self.session.timeout},
        )

        tasks: List[asyncio.Task] = []
        for scheduler in self._schedulers:
            task = asyncio.create_task(self._drive(scheduler), name=f"readygate:{scheduler.target}")
            task.add_done_callback(functools.partial(self._on_task_done, scheduler))
            tasks.append(task)
        deadline = loop.call_at(self.session.deadline, self._on_deadline)
        if self._echo is not None and self.status_interval > 0:
            tasks.append(asyncio.create_task(self._report_periodically(), name="readygate:status"))

        try:
            await self._finished.wait()
        finally:
            deadline.cancel()
            for scheduler in self._schedulers:
                scheduler.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        self._emit(self.tracker.render_table())
        return self.session.outcome


def wait_for(targets: Sequence[Target], timeout: float = 10, **options) -> Outcome:
    """Blocking wrapper around :meth:`WaitCoordinator.run`."""

    return asyncio.run(WaitCoordinator(targets, timeout, **options).run())
