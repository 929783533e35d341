"""Module entrypoint for `python -m readygate`."""

from __future__ import annotations

from . import cli


def main() -> None:
    """Invoke the Click CLI when executed as a module."""

    cli(prog_name="readygate")


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
