"""Turn the final outcome into a success callback or a terminating error."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import click

from .coordinator import Fatal, Outcome, Success, Timeout
from .errors import EXIT_OK, FatalProbeError, WaitTimeoutError

logger = logging.getLogger("readygate")

SuccessCallback = Callable[[], Optional[int]]


class CompletionHandler:
    """Act on an :data:`Outcome` exactly once."""

    def __init__(
        self,
        on_success: Optional[SuccessCallback] = None,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self._on_success = on_success or self._all_clear
        self._echo = echo
        self._lock = threading.Lock()
        self._handled = False

    def _all_clear(self) -> int:
        self._echo("All targets are ready.")
        return EXIT_OK

    def handle(self, outcome: Outcome) -> int:
        with self._lock:
            if self._handled:
                raise RuntimeError("Outcome has already been handled")
            self._handled = True

        if isinstance(outcome, Success):
            logger.info("All targets ready; running success callback")
            code = self._on_success()
            return EXIT_OK if code is None else code
        if isinstance(outcome, Timeout):
            names = ", ".join(str(target) for target in outcome.unfinished)
            raise WaitTimeoutError(f"Timeout occurred; still waiting for: {names}")
        if isinstance(outcome, Fatal):
            raise FatalProbeError(f"Connection to {outcome.target} failed: {outcome.reason}")
        raise TypeError(f"Unknown outcome: {outcome!r}")
