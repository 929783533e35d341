"""Error taxonomy and process exit codes."""

from __future__ import annotations

from enum import Enum, auto
from typing import Iterable

import click

from .probes import TRANSIENT_KINDS, ProbeKind

EXIT_OK = 0
EXIT_MISCONFIGURATION = 2
EXIT_RUNTIME = 3
EXIT_TIMEOUT = 4


class ErrorKind(Enum):
    """How a failure is surfaced to the caller."""

    MISCONFIGURATION = auto()
    TRANSIENT = auto()
    FATAL = auto()
    TIMEOUT = auto()


def classify(
    kind: ProbeKind,
    fail_fast_on: Iterable[ProbeKind] = (),
    retry_on: Iterable[ProbeKind] = (),
) -> ErrorKind:
    """Map a non-ready probe result kind onto the error taxonomy.

    Refusals, per-attempt timeouts and missing files are transient; any other
    OS-level error is fatal unless listed in ``retry_on``. ``fail_fast_on``
    escalates a kind to fatal and takes precedence.
    """

    if kind in set(fail_fast_on):
        return ErrorKind.FATAL
    if kind in TRANSIENT_KINDS or kind in set(retry_on):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


class ReadyGateError(click.ClickException):
    """Base class for failures that terminate the gate with a distinct exit code."""

    kind: ErrorKind = ErrorKind.FATAL
    exit_code = EXIT_RUNTIME


class MisconfigurationError(click.UsageError):
    """Raised for invalid targets or settings, before any probing starts."""

    kind = ErrorKind.MISCONFIGURATION
    exit_code = EXIT_MISCONFIGURATION


class FatalProbeError(ReadyGateError):
    """A probe hit an unrecoverable error and waiting was abandoned."""

    kind = ErrorKind.FATAL
    exit_code = EXIT_RUNTIME


class WaitTimeoutError(ReadyGateError):
    """The global deadline passed with targets still unready."""

    kind = ErrorKind.TIMEOUT
    exit_code = EXIT_TIMEOUT
