"""Hand control to a user command once every target is ready."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Callable, Optional, Sequence

import click

from .errors import MisconfigurationError, ReadyGateError

logger = logging.getLogger("readygate")


def _announce(argv: Sequence[str]) -> None:
    click.echo(f"Running: {argv[0]} [{' '.join(argv[1:])}]")


def _cannot_run(argv: Sequence[str], exc: OSError) -> ReadyGateError:
    return ReadyGateError(f"Cannot run {argv[0]}: {exc.strerror or exc}")


def replace_process(argv: Sequence[str]) -> None:
    """Replace the current process image with ``argv``. Does not return on success."""

    _announce(argv)
    logger.debug("exec", extra={"argv": list(argv)})
    try:
        os.execvp(argv[0], list(argv))
    except OSError as exc:
        raise _cannot_run(argv, exc) from exc


def spawn_process(argv: Sequence[str]) -> int:
    """Run ``argv`` as a child process and return its exit code."""

    _announce(argv)
    logger.debug("spawn", extra={"argv": list(argv)})
    try:
        completed = subprocess.run(list(argv), check=False)
    except OSError as exc:
        raise _cannot_run(argv, exc) from exc
    return completed.returncode


def make_handoff(argv: Sequence[str], spawn: bool = False) -> Callable[[], Optional[int]]:
    """Build the zero-argument success callback for a trailing command."""

    if not argv:
        raise MisconfigurationError("No command given after '--'")
    command = tuple(argv)
    if spawn or not hasattr(os, "execvp"):
        return lambda: spawn_process(command)

    def _exec() -> Optional[int]:
        replace_process(command)
        return None  # pragma: no cover - execvp does not return

    return _exec
