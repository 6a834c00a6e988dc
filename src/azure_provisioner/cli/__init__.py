"""``azure-provisioner`` command line entry point."""

from __future__ import annotations

import logging
import os
import sys
from typing import Annotated

import typer

from azure_provisioner import __version__

app = typer.Typer(
    name="azure-provisioner",
    help="Plan and apply Azure role definitions and PostgreSQL administrators.",
    no_args_is_help=True,
    add_completion=False,
)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
_LEVEL_NAMES = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")


def _level_from_env(raw: str) -> int:
    name = raw.strip().upper()
    if name in _LEVEL_NAMES:
        return getattr(logging, name)
    print(
        f"WARNING: invalid ARM_LOG level '{name}', "
        f"expected one of {', '.join(_LEVEL_NAMES)}; defaulting to INFO",
        file=sys.stderr,
    )
    return logging.INFO


def _configure_logging(verbose: int) -> None:
    """Enable package logging from ``ARM_LOG`` or the ``-v`` count.

    ``ARM_LOG`` wins over the flags. Without either, logging is left alone.
    The root logger stays at WARNING so the Azure SDK does not flood stderr.
    """
    raw = os.environ.get("ARM_LOG", "")
    if raw.strip():
        level = _level_from_env(raw)
    elif verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
    else:
        return
    logging.basicConfig(level=logging.WARNING, format=_LOG_FORMAT, stream=sys.stderr, force=True)
    logging.getLogger("azure_provisioner").setLevel(level)


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"azure-provisioner {__version__}")
    raise typer.Exit


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=_print_version,
            is_eager=True,
            help="Print the version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="-v for INFO logs, -vv for DEBUG."),
    ] = 0,
) -> None:
    del version
    _configure_logging(verbose)


from azure_provisioner.cli import commands as _commands  # noqa: E402, F401
