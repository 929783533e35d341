"""CLI entry point for the readygate readiness gate."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import click
from dotenv import load_dotenv

from .__about__ import __version__
from .completion import CompletionHandler
from .config import FAIL_FAST_CHOICES, RETRY_ON_CHOICES, WaitSettings, parse_fail_fast, parse_retry_on
from .coordinator import Fatal, Outcome, Success, Timeout, WaitCoordinator, wait_for
from .errors import MisconfigurationError
from .handoff import make_handoff
from .resolve import HostResolver
from .targets import FileTarget, TcpTarget, parse_targets

logger = logging.getLogger("readygate")


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _load_env_file(env_file: Optional[str]) -> None:
    if env_file:
        path = Path(env_file)
        if path.exists():
            load_dotenv(path)
            return
        raise click.BadParameter(f"Environment file not found: {env_file}")
    default = Path.cwd() / ".env"
    if default.exists():
        load_dotenv(default)


@click.command(context_settings={"help_option_names": ["--help"]})
@click.option("-h", "--host", "hosts", multiple=True, metavar="HOST:PORT", help="TCP endpoint to wait for (repeatable)")
@click.option("-f", "--file", "files", multiple=True, metavar="PATH", help="Path that must exist (repeatable)")
@click.option("-t", "--timeout", type=click.IntRange(min=1), help="Global timeout in seconds  [default: 10]")
@click.option("--interval", type=click.FloatRange(min=0), help="Seconds between attempts per target  [default: 1]")
@click.option(
    "--connect-timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds a single TCP connect may take  [default: 1]",
)
@click.option(
    "--status-interval",
    type=click.FloatRange(min=0),
    help="Seconds between full status tables, 0 disables  [default: 5]",
)
@click.option(
    "--fail-fast-on",
    multiple=True,
    type=click.Choice(FAIL_FAST_CHOICES),
    help="Abort immediately when a probe reports this kind (repeatable)",
)
@click.option(
    "--retry-on",
    multiple=True,
    type=click.Choice(RETRY_ON_CHOICES),
    help="Keep retrying a kind that is fatal by default, e.g. DNS not ready yet (repeatable)",
)
@click.option("--hosts-file", type=str, help="hosts(5) style file consulted before DNS")
@click.option("--env-file", type=str, help="Path to a .env file with READYGATE_* settings")
@click.option("--spawn", is_flag=True, help="Run the command as a child instead of replacing this process")
@click.option("-q", "--quiet", is_flag=True, help="Do not print status lines")
@click.option("-v", "--verbose", count=True, help="Increase logging verbosity")
@click.version_option(__version__, prog_name="readygate")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(
    ctx: click.Context,
    hosts: Tuple[str, ...],
    files: Tuple[str, ...],
    timeout: Optional[int],
    interval: Optional[float],
    connect_timeout: Optional[float],
    status_interval: Optional[float],
    fail_fast_on: Tuple[str, ...],
    retry_on: Tuple[str, ...],
    hosts_file: Optional[str],
    env_file: Optional[str],
    spawn: bool,
    quiet: bool,
    verbose: int,
    command: Tuple[str, ...],
) -> None:
    """Wait until every HOST:PORT accepts connections and every PATH exists.

    Anything after `--` is run once all targets are ready.
    """

    _configure_logging(verbose)
    _load_env_file(env_file)
    try:
        settings = WaitSettings.from_env().override(
            timeout=timeout,
            interval=interval,
            connect_timeout=connect_timeout,
            status_interval=status_interval,
            fail_fast_on=parse_fail_fast(fail_fast_on) if fail_fast_on else None,
            retry_on=parse_retry_on(retry_on) if retry_on else None,
            hosts_file=hosts_file,
        )
        targets = parse_targets(hosts, files)
        resolver = HostResolver(settings.hosts_file)
        targets = [resolver.resolve_target(t) if isinstance(t, TcpTarget) else t for t in targets]
        on_success = make_handoff(command, spawn=spawn) if command else None
    except MisconfigurationError as exc:
        exc.ctx = ctx
        raise

    echo = None if quiet else click.echo
    coordinator = WaitCoordinator(
        targets,
        settings.timeout,
        interval=settings.interval,
        connect_timeout=settings.connect_timeout,
        fail_fast_on=settings.fail_fast_on,
        retry_on=settings.retry_on,
        status_interval=settings.status_interval,
        echo=echo,
    )
    if not quiet:
        click.echo(f"All targets set up. Timeout: {settings.timeout}.")
    outcome = asyncio.run(coordinator.run())
    ctx.exit(CompletionHandler(on_success).handle(outcome))


__all__ = [
    "cli",
    "__version__",
    "FileTarget",
    "TcpTarget",
    "WaitCoordinator",
    "wait_for",
    "Outcome",
    "Success",
    "Timeout",
    "Fatal",
]
