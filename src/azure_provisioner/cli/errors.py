"""Turn engine and config exceptions into one-line CLI messages."""

from __future__ import annotations

import typer

from azure_provisioner.config.loader import ConfigError
from azure_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    ResourceImportError,
    StalePlanError,
    StateSubscriptionMismatchError,
    StateUpgradeError,
    ValidationError,
)

# First match wins; the message is "<prefix><exception text>".
_PREFIXES: tuple[tuple[type[Exception] | tuple[type[Exception], ...], str], ...] = (
    (ConfigError, "Configuration error: "),
    (StalePlanError, "Plan is stale: "),
    ((StateSubscriptionMismatchError, StateUpgradeError), "State error: "),
    (ResourceImportError, "Import failed: "),
    (ApplyError, "Apply failed: "),
)


def _partial_result(exc: ApplyError) -> str | None:
    counts = exc.result.summary()
    done = [
        f"{counts[action]} {verb}"
        for action, verb in (("create", "added"), ("update", "changed"), ("delete", "destroyed"))
        if counts[action]
    ]
    return f"  Partial result: {', '.join(done)}." if done else None


def _lines(exc: Exception) -> list[str]:
    if isinstance(exc, ValidationError):
        return ["Validation failed:", *(f"  - {e}" for e in exc.errors)]
    if isinstance(exc, ApplyCanceled):
        return ["Apply canceled."]
    prefix = next((p for types, p in _PREFIXES if isinstance(exc, types)), "Error: ")
    lines = [f"{prefix}{exc}"]
    if isinstance(exc, ApplyError) and (partial := _partial_result(exc)):
        lines.append(partial)
    return lines


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Print *exc* to stderr without a traceback and return the exit code (always 1)."""
    fg = typer.colors.RED if color else None
    for line in _lines(exc):
        typer.echo(typer.style(line, fg=fg), err=True)
    return 1
