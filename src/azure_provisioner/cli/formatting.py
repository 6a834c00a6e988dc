"""Terraform-style rendering of plans, drift and apply results."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, NamedTuple

import typer

from azure_provisioner.engine.types import Action

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from azure_provisioner.core.state import ResourceInstance
    from azure_provisioner.engine.types import Plan, ResourceChange


class _ActionStyle(NamedTuple):
    color: str
    symbol: str
    description: str
    progress_verb: str
    done_verb: str


_ACTION_STYLES: dict[str, _ActionStyle] = {
    Action.CREATE.value: _ActionStyle(
        "green", "+", "will be created", "Creating", "Creation complete"
    ),
    Action.UPDATE.value: _ActionStyle(
        "yellow", "~", "will be updated in-place", "Updating", "Update complete"
    ),
    Action.DELETE.value: _ActionStyle(
        "red", "-", "will be destroyed", "Destroying", "Destroy complete"
    ),
    Action.NOOP.value: _ActionStyle("bright_black", " ", "is up-to-date", "", ""),
}

NO_CHANGES = "No changes. Resources are up-to-date."


def styler(color: bool) -> Callable[..., str]:
    """``typer.style`` when *color* is on, otherwise a function returning the text as-is."""
    return typer.style if color else (lambda text, **_kw: text)


def has_actionable_changes(plan: Plan) -> bool:
    return any(c.action != Action.NOOP for c in plan.changes)


def _format_value(value: Any) -> str:
    """Render one attribute value: strings quoted, ``None`` as ``null``, containers as JSON."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, (list, dict)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _attribute_lines(change: ResourceChange) -> dict[str, str]:
    if change.action == Action.UPDATE:
        return {
            key: f"{_format_value(d['from'])} -> {_format_value(d['to'])}"
            for key, d in (change.diff or {}).items()
        }
    if change.action == Action.CREATE:
        return {key: _format_value(v) for key, v in (change.planned or {}).items()}
    return {}


def format_change(change: ResourceChange, *, color: bool = True) -> str:
    """Render one change as a ``resource "<type>" "<name>" { ... }`` block."""
    style = styler(color)
    s = _ACTION_STYLES[change.action.value]
    name = change.address.partition(".")[2] or change.address
    attrs = _attribute_lines(change)
    width = max(map(len, attrs), default=0)

    lines = [
        style(f"  # {change.address} {s.description}", fg=s.color, bold=True),
        style(f'  {s.symbol} resource "{change.resource_type}" "{name}" {{', fg=s.color),
    ]
    lines += [style(f"      {s.symbol} {k:<{width}} = {v}", fg=s.color) for k, v in attrs.items()]
    lines.append(style("    }", fg=s.color))
    return "\n".join(lines)


def format_changes(changes: Iterable[ResourceChange], *, color: bool = True) -> str:
    """Render every actionable change, separated by blank lines."""
    blocks = [format_change(c, color=color) for c in changes if c.action != Action.NOOP]
    return "\n\n".join(blocks) if blocks else NO_CHANGES


def format_plan(plan: Plan, *, color: bool = True) -> str:
    return format_changes(plan.changes, color=color)


def format_import(inst: ResourceInstance, *, color: bool = True) -> str:
    """``<address>: Import complete (id=<id>)``."""
    return styler(color)(f"{inst.address}: Import complete (id={inst.resource_id})", fg="green")


def changes_summary(changes: Iterable[ResourceChange]) -> dict[str, int]:
    """Count create/update/delete changes; no-ops are not counted."""
    summary = {"create": 0, "update": 0, "delete": 0}
    for c in changes:
        if c.action.value in summary:
            summary[c.action.value] += 1
    return summary


def _counts(summary: Mapping[str, int], verbs: tuple[str, str, str], *, color: bool) -> str:
    style = styler(color)
    parts = []
    for action, verb, fg in zip(
        ("create", "update", "delete"), verbs, ("green", "yellow", "red"), strict=True
    ):
        n = summary.get(action, 0)
        parts.append(style(f"{n} {verb}", fg=fg) if n else f"{n} {verb}")
    return ", ".join(parts)


def format_plan_summary(
    summary: Mapping[str, int], *, color: bool = True, header: str = "Plan"
) -> str:
    """``Plan: 2 to add, 1 to change, 0 to destroy.`` (``header`` replaces ``Plan``)."""
    return f"{header}: {_counts(summary, ('to add', 'to change', 'to destroy'), color=color)}."


def format_apply_summary(summary: Mapping[str, int], *, color: bool = True) -> str:
    header = styler(color)("Apply complete!", fg="green", bold=True)
    counts = _counts(summary, ("added", "changed", "destroyed"), color=color)
    return f"{header} Resources: {counts}."
