"""Apply-time operation graph.

``apply`` does not walk the plan's change list directly: every actionable
change becomes an :class:`Operation` node and the nodes are ordered by a
:class:`~azure_provisioner.engine.graph.DependencyGraph`. Creates and updates
follow ``depends_on``; deletes run in the reverse direction and only after a
barrier that waits for every create/update.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from azure_provisioner.core.state import ResourceInstance
from azure_provisioner.engine.types import Action

if TYPE_CHECKING:
    from collections.abc import Iterable

    from azure_provisioner.core.state import State
    from azure_provisioner.engine.handlers import EngineContext
    from azure_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
    from azure_provisioner.engine.types import ResourceChange
    from azure_provisioner.resources.base import Resource

BARRIER_KEY = "__engine__.apply_barrier"


def _rebuild_desired(change: ResourceChange, reg: ResourceTypeRegistration) -> Resource:
    """Turn the plan's serialised model back into a resource object."""
    if change.desired is None:
        raise ValueError(f"Plan has no desired config for {change.action.value}: {change.address}")
    desired = reg.model.model_validate(change.desired)
    if desired.address != change.address:
        raise ValueError(f"Plan address {change.address} does not match {desired.address}")
    return desired


@dataclass
class Operation:
    """One node of the apply graph. A node without a change is an ordering barrier."""

    key: str
    change: ResourceChange | None = None
    deps: list[str] = field(default_factory=list)

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        """Call the handler and record the outcome in *state*.

        Returns True when *state* changed and must be persisted.
        """
        change = self.change
        if change is None:
            return False

        reg = registry.get(change.resource_type)
        if change.action == Action.DELETE:
            reg.handler.delete(ctx, state.resources[change.address])
            del state.resources[change.address]
            return True

        desired = _rebuild_desired(change, reg)
        if change.action == Action.CREATE:
            inst = ResourceInstance(
                address=change.address,
                resource_type=change.resource_type,
                name=desired.name,
                schema_version=reg.model.schema_version,
            )
            inst.set_attributes(reg.handler.create(ctx, desired))
            state.resources[change.address] = inst
        else:
            inst = state.resources[change.address]
            inst.set_attributes(reg.handler.update(ctx, desired, inst))
        inst.dependencies = list(desired.depends_on)
        return True


def build_operations(changes: Iterable[ResourceChange], state: State) -> dict[str, Operation]:
    """Create one operation per actionable change and wire their dependencies."""
    ops: dict[str, Operation] = {}
    writes: set[str] = set()
    deletes: set[str] = set()

    for change in changes:
        if change.action == Action.NOOP:
            continue
        if change.address in ops:
            raise ValueError(f"Duplicate operation key in plan: {change.address}")
        ops[change.address] = Operation(key=change.address, change=change)
        (deletes if change.action == Action.DELETE else writes).add(change.address)

    for addr in writes:
        desired = ops[addr].change.desired if ops[addr].change else None
        deps = (desired or {}).get("depends_on") or []
        if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
            raise ValueError(f"Invalid depends_on for {addr}: expected list[str]")
        ops[addr].deps.extend(d for d in deps if d in writes)

    for addr in deletes:
        inst = state.resources.get(addr)
        if inst is None:
            raise ValueError(f"Missing state for delete operation: {addr}")
        # A dependency is deleted only after everything that needed it.
        for dep in inst.dependencies:
            if dep in deletes:
                ops[dep].deps.append(addr)

    if writes and deletes:
        if BARRIER_KEY in ops:
            raise ValueError(f"Barrier operation key conflicts with plan: {BARRIER_KEY}")
        ops[BARRIER_KEY] = Operation(key=BARRIER_KEY, deps=sorted(writes))
        for addr in deletes:
            ops[addr].deps.append(BARRIER_KEY)

    return ops
