"""CLI command implementations."""

from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from azure_provisioner import config as api
from azure_provisioner.cli import app
from azure_provisioner.cli.errors import handle_error
from azure_provisioner.cli.formatting import (
    _ACTION_STYLES,
    changes_summary,
    format_apply_summary,
    format_changes,
    format_import,
    format_plan,
    format_plan_summary,
    has_actionable_changes,
    styler,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from azure_provisioner.config.schema import Config
    from azure_provisioner.engine.types import ApplyResult, Plan, ResourceChange

DEFAULT_CONFIG = Path("azure-provisioner.yaml")

ConfigPath = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]
NoColor = Annotated[bool, typer.Option("--no-color", help="Disable colored output.")]
AutoApprove = Annotated[bool, typer.Option("--auto-approve", help="Skip interactive approval.")]
NoRefresh = Annotated[
    bool,
    typer.Option("--no-refresh", help="Plan against the state file without reading Azure."),
]


def _use_color(no_color: bool) -> bool:
    return not no_color and not os.environ.get("NO_COLOR")


@contextlib.contextmanager
def _exit_on_error(color: bool) -> Iterator[None]:
    """Report any exception raised in the block and exit with its code."""
    try:
        yield
    except typer.Exit:
        raise
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc


def _confirm(prompt: str, canceled: str) -> None:
    try:
        typer.confirm(prompt, abort=True)
    except typer.Abort as e:
        typer.echo(canceled, err=True)
        raise typer.Exit(1) from e


def _apply_with_progress(plan_obj: Plan, cfg: Config, *, color: bool) -> ApplyResult:
    """Apply *plan_obj*, showing a rich progress bar and one line per finished change."""
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

    total = sum(1 for c in plan_obj.changes if c.action.value != "no-op")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=Console(no_color=not color),
    ) as progress:
        task = progress.add_task("Applying", total=total)

        def report(change: ResourceChange, event: Literal["start", "done"]) -> None:
            s = _ACTION_STYLES[change.action.value]
            if event == "start":
                progress.update(task, description=f"{change.address}: {s.progress_verb}...")
            else:
                progress.console.print(f"  {change.address}: {s.done_verb}")
                progress.advance(task)

        return api.apply(plan_obj, cfg, progress=report)


def _show_and_apply(
    plan_obj: Plan,
    cfg: Config,
    *,
    color: bool,
    auto_approve: bool,
    prompt: str,
    nothing_to_do: str,
) -> None:
    """Print the plan, ask for approval, apply it and print the summary."""
    if not has_actionable_changes(plan_obj):
        typer.echo(nothing_to_do)
        raise typer.Exit(0)

    typer.echo(f"{format_plan(plan_obj, color=color)}\n")
    typer.echo(f"{format_plan_summary(plan_obj.summary(), color=color)}\n")
    if not auto_approve:
        _confirm(prompt, "Apply canceled.")

    with _exit_on_error(color):
        result = _apply_with_progress(plan_obj, cfg, color=color)
    typer.echo()
    typer.echo(format_apply_summary(result.summary(), color=color))


@app.command()
def plan(
    config: ConfigPath = DEFAULT_CONFIG,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Write the plan to a file for `apply PLAN_FILE`."),
    ] = None,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Show changes required by the current configuration (exit 2 when there are any)."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        plan_obj = api.plan(api.load(config), refresh=not no_refresh)

    typer.echo(f"{format_plan(plan_obj, color=color)}\n")
    typer.echo(format_plan_summary(plan_obj.summary(), color=color))
    if out is not None:
        plan_obj.save(out)
        typer.echo(f"\nPlan saved to {out}")

    if has_actionable_changes(plan_obj):
        raise typer.Exit(2)


@app.command(name="apply")
def apply_cmd(
    plan_file: Annotated[
        Path | None,
        typer.Argument(help="Saved plan file to apply."),
    ] = None,
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Apply a saved plan, or plan and apply the current configuration."""
    from azure_provisioner.engine.types import Plan

    color = _use_color(no_color)
    with _exit_on_error(color):
        cfg = api.load(config)
        if plan_file is not None:
            plan_obj = Plan.load(plan_file)
        else:
            plan_obj = api.plan(cfg, refresh=not no_refresh)

    _show_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        prompt="Do you want to apply these changes?",
        nothing_to_do="No changes. Resources are up-to-date.",
    )


@app.command()
def destroy(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Delete every resource recorded in state."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        cfg = api.load(config)
        plan_obj = api.plan(cfg, destroy=True)

    _show_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        prompt="Do you really want to destroy all resources?",
        nothing_to_do="No resources to destroy.",
    )


@app.command(name="refresh")
def refresh_cmd(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Re-read every tracked object from Azure and update the state file."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        cfg = api.load(config)
        changes, state = api.refresh(cfg)

    if not changes:
        typer.echo("No changes. State is up-to-date with Azure.")
        raise typer.Exit(0)

    typer.echo(f"{format_changes(changes, color=color)}\n")
    typer.echo(
        format_plan_summary(changes_summary(changes), color=color, header="Refresh") + "\n"
    )
    if not auto_approve:
        _confirm("Do you want to update the state file?", "Refresh canceled.")

    with _exit_on_error(color):
        api.save_state(cfg, state)
    n = len(state.resources)
    typer.echo(f"State refreshed. {n} resource{'' if n == 1 else 's'} tracked.")


@app.command()
def drift(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Show objects changed or deleted outside azure-provisioner (read-only)."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        changes = api.drift(api.load(config))

    if not changes:
        typer.echo("No drift detected. State is up-to-date with Azure.")
        raise typer.Exit(0)
    typer.echo("Drift detected:\n")
    typer.echo(format_changes(changes, color=color))


@app.command(name="import")
def import_cmd(
    address: Annotated[
        str,
        typer.Argument(help="Resource address, e.g. azurerm_role_definition.reader."),
    ],
    resource_id: Annotated[
        str,
        typer.Argument(metavar="ID", help="Azure identifier of the existing object."),
    ],
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Bring an existing Azure object under management."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        inst = api.import_resource(api.load(config), address, resource_id)
    typer.echo(format_import(inst, color=color))


@app.command()
def validate(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Check the configuration without contacting Azure."""
    color = _use_color(no_color)
    with _exit_on_error(color):
        api.plan(api.load(config), refresh=False)
    typer.echo(styler(color)("Configuration is valid.", fg="green"))
