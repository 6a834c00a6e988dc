"""Plan/apply engine.

The engine owns the state file. ``plan`` compares declared resources against
state (optionally refreshed from Azure first), ``apply`` executes a plan
through the registered handlers and writes state after every successful
operation, so an interrupted apply leaves an accurate record of what exists.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

from azure_provisioner import __version__
from azure_provisioner.core.state import ResourceInstance, State, compute_state_digest
from azure_provisioner.engine.diff import config_digest, diff_attributes, planned_attributes
from azure_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    DuplicateAddressError,
    EngineError,
    ResourceImportError,
    StalePlanError,
    StateSubscriptionMismatchError,
    StateUpgradeError,
    ValidationError,
)
from azure_provisioner.engine.graph import DependencyGraph
from azure_provisioner.engine.handlers import EngineContext, PlanContext, Timeouts
from azure_provisioner.engine.lock import StateLock
from azure_provisioner.engine.operations import build_operations
from azure_provisioner.engine.types import Action, ApplyResult, Plan, PlanMetadata, ResourceChange
from azure_provisioner.resources.markers import collect_compare_strategies

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from azure_provisioner.engine.operations import Operation
    from azure_provisioner.engine.registry import ResourceTypeRegistry
    from azure_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ResourceChange, Literal["start", "done"]], None]


def _error_message(exc: BaseException) -> str:
    """``str(exc)`` prefixed by the notes handlers attached, outermost first.

    A handler that wraps a failed Azure call with ``exc.add_note("creating X")``
    produces ``"creating X: <azure message>"``.
    """
    notes = getattr(exc, "__notes__", None) or []
    return ": ".join([*reversed(notes), str(exc)])


class AzureEngine:
    """Terraform-like plan/apply engine bound to one subscription and one state file."""

    def __init__(
        self,
        *,
        subscription_id: str,
        state_path: Path,
        registry: ResourceTypeRegistry,
        require_import: bool = True,
        timeouts: Timeouts | None = None,
    ) -> None:
        self._subscription_id = subscription_id
        self._state_path = state_path
        self._registry = registry
        self._require_import = require_import
        self._timeouts = timeouts or Timeouts()

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def state_path(self) -> Path:
        return self._state_path

    def _ctx(self) -> EngineContext:
        return EngineContext(
            subscription_id=self._subscription_id,
            require_import=self._require_import,
            timeouts=self._timeouts,
        )

    def _priority(self, resource_type: str) -> int:
        return self._registry.get(resource_type).model.plan_priority

    # ------------------------------------------------------------------
    # State loading
    # ------------------------------------------------------------------

    def _upgrade_instance(self, inst: ResourceInstance) -> bool:
        """Migrate *inst* to the model's schema version one step at a time."""
        reg = self._registry.get(inst.resource_type)
        target = reg.model.schema_version
        if inst.schema_version >= target:
            return False

        attrs = dict(inst.attributes)
        for version in range(inst.schema_version, target):
            try:
                attrs = reg.handler.upgrade_state(attrs, version)
            except (ValueError, EngineError) as e:
                raise StateUpgradeError(inst.address, version, str(e)) from e
            logger.debug("Upgraded %s from schema version %d", inst.address, version)

        inst.set_attributes(attrs, touch=False)
        inst.schema_version = target
        return True

    def _check_subscription(self, state: State) -> None:
        if state.subscription_id != self._subscription_id:
            raise StateSubscriptionMismatchError(self._subscription_id, state.subscription_id)

    def _load_state(self) -> State:
        state = State.load_or_create(self._state_path, subscription_id=self._subscription_id)
        self._check_subscription(state)
        upgraded = sum(self._upgrade_instance(inst) for inst in state.resources.values())
        if upgraded:
            logger.info("Upgraded %d resource(s) to the current schema", upgraded)
        logger.debug("State serial=%d holds %d resources", state.serial, len(state.resources))
        return state

    def current_state(self) -> State:
        """Load the state file, migrated to the current schema, without contacting Azure."""
        return self._load_state()

    # ------------------------------------------------------------------
    # Refresh / import
    # ------------------------------------------------------------------

    def _refresh_state_in_place(self, state: State) -> bool:
        """Re-read every tracked object; drop the ones Azure no longer has."""
        ctx = self._ctx()
        changed = False
        for address, inst in list(state.resources.items()):
            attrs = self._registry.get(inst.resource_type).handler.read(ctx, inst)
            if attrs is None:
                logger.info("%s no longer exists in Azure; removing it from state", address)
                del state.resources[address]
                changed = True
            elif inst.set_attributes(attrs):
                logger.debug("%s changed outside azure-provisioner", address)
                changed = True
        return changed

    def refresh(self, *, persist: bool = False) -> State:
        """Refresh state from Azure and return it, optionally writing it back."""
        with StateLock(self._state_path):
            state = self._load_state()
            if self._refresh_state_in_place(state) and persist:
                state.commit(self._state_path)
            return state

    def import_resource(self, address: str, resource_id: str) -> ResourceInstance:
        """Attach the existing Azure object *resource_id* to *address* in state."""
        reg, name = self._registry.resolve_address(address)
        try:
            reg.handler.validate_import_id(resource_id)
        except EngineError as e:
            raise ResourceImportError(f"Invalid import ID for {address}: {e}") from e

        with StateLock(self._state_path):
            state = self._load_state()
            if address in state.resources:
                raise ResourceImportError(
                    f"Resource already managed: {address}. Remove it from state to re-import."
                )

            inst = ResourceInstance(
                address=address,
                resource_type=reg.resource_type,
                name=name,
                attributes={"id": resource_id},
                schema_version=reg.model.schema_version,
            )
            attrs = reg.handler.read(self._ctx(), inst)
            if attrs is None:
                raise ResourceImportError(
                    f"Cannot import non-existent remote object {resource_id!r} into {address}"
                )
            inst.set_attributes(attrs)
            state.resources[address] = inst
            state.commit(self._state_path)
            logger.info("Imported %s as %s", resource_id, address)
            return inst

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def _index_desired(self, resources: Sequence[Resource]) -> dict[str, Resource]:
        desired: dict[str, Resource] = {}
        for r in resources:
            if r.address in desired:
                raise DuplicateAddressError(r.address)
            self._registry.get(r.resource_type)
            desired[r.address] = r
        return desired

    def _validate(self, desired: dict[str, Resource], state: State) -> None:
        ctx = self._ctx()
        plan_ctx = PlanContext(desired, state)
        errors: list[str] = []
        for r in desired.values():
            handler = self._registry.get(r.resource_type).handler
            errors.extend(handler.validate(ctx, r))
            errors.extend(handler.validate_plan(ctx, r, plan_ctx))
            errors.extend(
                f"Resource '{r.address}' depends on unknown address '{dep}'"
                for dep in r.depends_on
                if not plan_ctx.address_exists(dep)
            )
        if errors:
            raise ValidationError(errors)

    def _classify_change(self, resource: Resource, state: State) -> ResourceChange:
        """CREATE when untracked, otherwise UPDATE or NOOP depending on the diff."""
        change = ResourceChange(
            address=resource.address,
            resource_type=resource.resource_type,
            action=Action.CREATE,
            desired=resource.model_dump(exclude_none=True, exclude={"address"}),
            planned=planned_attributes(resource),
        )
        prior_inst = state.resources.get(resource.address)
        if prior_inst is not None:
            assert change.planned is not None
            change.prior = dict(prior_inst.attributes)
            diff = diff_attributes(
                change.planned, change.prior, collect_compare_strategies(resource)
            )
            change.action = Action.UPDATE if diff else Action.NOOP
            change.diff = diff or None
        logger.debug("Classified %s as %s", change.address, change.action.value)
        return change

    def _plan_deletes(self, state: State, addresses: set[str]) -> list[ResourceChange]:
        """DELETE changes for *addresses*, dependents before their dependencies."""
        graph = DependencyGraph(
            addresses,
            {a: state.resources[a].dependencies for a in addresses},
            priorities={a: self._priority(state.resources[a].resource_type) for a in addresses},
        )
        return [
            ResourceChange(
                address=addr,
                resource_type=state.resources[addr].resource_type,
                action=Action.DELETE,
                prior=dict(state.resources[addr].attributes),
            )
            for addr in graph.reverse_topological_order()
        ]

    def plan(
        self, resources: Sequence[Resource], *, destroy: bool = False, refresh: bool = True
    ) -> Plan:
        """Compute the changes that bring Azure in line with *resources*.

        With ``refresh`` the state is re-read from Azure first and written
        back if anything moved, so the plan's fingerprint matches the file.
        With ``destroy`` every tracked resource is planned for deletion.
        """
        logger.info(
            "Planning %d resources (destroy=%s, refresh=%s)", len(resources), destroy, refresh
        )
        # Only refresh writes state, so only refresh needs the lock.
        with StateLock(self._state_path) if refresh else contextlib.nullcontext():
            state = self._load_state()
            if refresh and self._refresh_state_in_place(state):
                state.commit(self._state_path)

            desired = self._index_desired(resources)
            if destroy:
                changes = self._plan_deletes(state, set(state.resources))
            else:
                self._validate(desired, state)
                order = DependencyGraph(
                    desired,
                    {a: r.depends_on for a, r in desired.items()},
                    priorities={a: r.plan_priority for a, r in desired.items()},
                ).topological_order()
                changes = [self._classify_change(desired[a], state) for a in order]
                changes += self._plan_deletes(state, set(state.resources) - set(desired))

            return Plan(
                metadata=PlanMetadata(
                    subscription_id=self._subscription_id,
                    destroy=destroy,
                    refresh=refresh,
                    state_lineage=state.lineage,
                    state_serial=state.serial,
                    state_digest=compute_state_digest(state),
                    config_digest=config_digest([] if destroy else resources),
                    engine_version=__version__,
                ),
                changes=changes,
            )

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def _load_state_for_apply(self, plan: Plan) -> State:
        if self._state_path.exists():
            return self._load_state()
        # A saved plan against a fresh directory: adopt the plan's lineage.
        return State(
            subscription_id=self._subscription_id,
            lineage=plan.metadata.state_lineage,
            serial=plan.metadata.state_serial,
        )

    @staticmethod
    def _check_fresh(plan: Plan, state: State) -> None:
        meta = plan.metadata
        if state.lineage != meta.state_lineage:
            raise StalePlanError("State lineage changed; re-run plan")
        if state.serial != meta.state_serial:
            raise StalePlanError("State serial changed; re-run plan")
        if compute_state_digest(state) != meta.state_digest:
            raise StalePlanError("State digest changed; re-run plan")

    def _operation_order(self, plan: Plan, state: State) -> list[Operation]:
        ops = build_operations(plan.changes, state)
        priorities = {
            key: self._priority(op.change.resource_type)
            for key, op in ops.items()
            if op.change is not None
        }
        graph = DependencyGraph(ops, {k: op.deps for k, op in ops.items()}, priorities=priorities)
        return [ops[k] for k in graph.topological_order()]

    def apply(self, plan: Plan, *, progress: ProgressCallback | None = None) -> ApplyResult:
        """Execute *plan*, persisting state after each completed operation.

        Raises:
            StalePlanError: state changed since the plan was computed.
            ApplyError: an operation failed; carries the changes that did
                complete before it.
        """
        with StateLock(self._state_path):
            state = self._load_state_for_apply(plan)
            self._check_subscription(state)
            self._check_fresh(plan, state)

            ctx = self._ctx()
            ops = self._operation_order(plan, state)
            logger.info("Applying %d operations", len(ops))

            applied: list[ResourceChange] = []
            current = ""
            try:
                for op in ops:
                    current = op.key
                    if progress and op.change is not None:
                        progress(op.change, "start")
                    if not op.run(ctx=ctx, state=state, registry=self._registry):
                        continue
                    assert op.change is not None
                    state.commit(self._state_path)
                    applied.append(op.change)
                    if progress:
                        progress(op.change, "done")
            except KeyboardInterrupt as e:  # pragma: no cover
                raise ApplyCanceled("Apply canceled") from e
            except Exception as e:
                raise ApplyError(applied=applied, address=current, message=_error_message(e)) from e

            return ApplyResult(applied=applied)
