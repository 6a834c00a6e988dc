"""Role definition handler implementing CRUD via the Azure authorization API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.authorization.v2022_04_01.models import Permission as AzurePermission
from azure.mgmt.authorization.v2022_04_01.models import RoleDefinition

from azure_provisioner.engine.convergence import ConvergenceObservation, ConvergenceWaiter
from azure_provisioner.engine.errors import MalformedResponseError, ResourceAlreadyExistsError
from azure_provisioner.engine.handlers import ResourceHandler
from azure_provisioner.engine.ids import RoleDefinitionId, parse_role_definition_id
from azure_provisioner.resources.role_definition import (
    RoleDefinitionResource,
    expand_assignable_scopes,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from azure.mgmt.authorization import AuthorizationManagementClient

    from azure_provisioner.core.state import ResourceInstance
    from azure_provisioner.engine.handlers import EngineContext, PlanContext
    from azure_provisioner.resources.role_definition import Permission

logger = logging.getLogger(__name__)

ROLE_TYPE = "CustomRole"


def expand_permissions(permissions: Iterable[Permission]) -> list[AzurePermission]:
    """Build SDK permission objects from resource permissions."""
    return [
        AzurePermission(
            actions=list(p.actions),
            not_actions=list(p.not_actions),
            data_actions=list(p.data_actions),
            not_data_actions=list(p.not_data_actions),
        )
        for p in permissions
    ]


def flatten_permissions(permissions: Iterable[AzurePermission] | None) -> list[dict[str, Any]]:
    """Convert SDK permissions to the stored shape (data actions as sorted sets)."""
    return [
        {
            "actions": list(p.actions or []),
            "not_actions": list(p.not_actions or []),
            "data_actions": sorted(set(p.data_actions or [])),
            "not_data_actions": sorted(set(p.not_data_actions or [])),
        }
        for p in permissions or []
    ]


class RoleDefinitionHandler(ResourceHandler["RoleDefinitionResource"]):
    """CRUD handler for Azure custom role definitions.

    Updates are followed by a convergence poll: Azure recreates the role on
    update and only reconciles the timestamps a few seconds later.
    """

    def __init__(
        self,
        client: AuthorizationManagementClient,
        *,
        poll_interval: float = 10.0,
        continuous_target_occurrence: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.continuous_target_occurrence = continuous_target_occurrence
        self._sleep = sleep

    def _get(self, scope: str, role_id: str, *, timeout: float) -> RoleDefinition | None:
        try:
            return self.client.role_definitions.get(scope, role_id, timeout=timeout)
        except ResourceNotFoundError:
            return None

    def _build_definition(self, desired: RoleDefinitionResource) -> RoleDefinition:
        return RoleDefinition(
            role_name=desired.role_name,
            description=desired.description,
            role_type=ROLE_TYPE,
            permissions=expand_permissions(desired.permissions),
            assignable_scopes=expand_assignable_scopes(desired.scope, desired.assignable_scopes),
        )

    def _read_attrs(
        self, rid: RoleDefinitionId, role: RoleDefinition, *, label: str
    ) -> dict[str, Any]:
        """Attributes in the shape of ``RoleDefinitionResource.model_dump``.

        *label* is the address label; Azure only knows ``role_name``.
        """
        return {
            "id": str(rid),
            "name": label,
            "role_name": role.role_name or "",
            "scope": rid.scope,
            "role_definition_id": rid.role_id,
            "role_definition_resource_id": rid.resource_id,
            "description": role.description or "",
            "permissions": flatten_permissions(role.permissions),
            "assignable_scopes": list(role.assignable_scopes or []),
        }

    def validate_plan(
        self,
        ctx: EngineContext,
        desired: RoleDefinitionResource,
        plan_ctx: PlanContext,
    ) -> list[str]:
        _ = ctx
        if desired.role_definition_id is None:
            return []
        errors: list[str] = []
        for other in plan_ctx.others_of_type(desired.resource_type, exclude=desired.address):
            if (
                plan_ctx.get_attr(other, "role_definition_id") == desired.role_definition_id
                and plan_ctx.get_attr(other, "scope") == desired.scope
            ):
                errors.append(
                    f"Role definition '{desired.role_name}' reuses role_definition_id "
                    f"'{desired.role_definition_id}' at scope '{desired.scope}' "
                    f"(also used by {other.address})"
                )
        return errors

    def validate_import_id(self, resource_id: str) -> None:
        parse_role_definition_id(resource_id)

    def upgrade_state(self, attributes: dict[str, Any], from_version: int) -> dict[str, Any]:
        match from_version:
            case 0:
                return self._upgrade_composite_id(attributes)
            case 1:
                # v1 kept the Azure role name in `name`, which was also the label.
                role_name = attributes.get("role_name") or attributes.get("name") or ""
                return {**attributes, "role_name": role_name}
        return attributes

    @staticmethod
    def _upgrade_composite_id(attributes: dict[str, Any]) -> dict[str, Any]:
        """v0 stored the bare resource ID; v1 appends the scope."""
        old_id = attributes.get("id") or ""
        scope = attributes.get("scope") or ""
        if not old_id:
            raise ValueError("stored ID is empty")
        if not scope:
            raise ValueError("stored scope is empty")
        logger.debug("Migrating Role Definition ID %s from v0 to v1 format", old_id)
        return {**attributes, "id": f"{old_id}|{scope}"}

    def create(self, ctx: EngineContext, desired: RoleDefinitionResource) -> dict[str, Any]:
        """Create a custom role definition, failing if the ID is already taken."""
        timeout = ctx.timeouts.create.total_seconds()
        scope = desired.scope
        role_id = desired.role_definition_id or str(uuid.uuid4())

        try:
            existing = self._get(scope, role_id, timeout=timeout)
        except Exception as exc:
            msg = (
                f"Error checking for presence of existing Role Definition ID for "
                f"'{desired.role_name}' (Scope '{scope}'): {exc}"
            )
            raise RuntimeError(msg) from exc
        if existing is not None and existing.id:
            raise ResourceAlreadyExistsError(desired.resource_type, f"{existing.id}|{scope}")

        logger.info(
            "Creating Role Definition '%s' (%s) at scope %s", desired.role_name, role_id, scope
        )
        self.client.role_definitions.create_or_update(
            scope, role_id, self._build_definition(desired), timeout=timeout
        )

        read = self._get(scope, role_id, timeout=timeout)
        if read is None or not read.id:
            msg = f"Role Definition '{desired.role_name}' (Scope '{scope}') not found after create"
            raise RuntimeError(msg)
        return self._read_attrs(RoleDefinitionId.build(read.id, scope), read, label=desired.name)

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        """Read a role definition. Returns None if it was deleted out-of-band."""
        rid = parse_role_definition_id(prior.attributes.get("id", ""))
        role = self._get(rid.scope, rid.role_id, timeout=ctx.timeouts.read.total_seconds())
        if role is None:
            logger.debug("Role Definition %s was not found - removing from state", rid)
            return None
        return self._read_attrs(rid, role, label=prior.name)

    def update(
        self, ctx: EngineContext, desired: RoleDefinitionResource, prior: ResourceInstance
    ) -> dict[str, Any]:
        """Update a role definition and wait for Azure to reconcile it."""
        rid = parse_role_definition_id(prior.attributes.get("id", ""))
        if desired.scope != rid.scope:
            msg = (
                f"Cannot change 'scope' on role definition '{desired.role_name}' "
                f"(from {rid.scope} to {desired.scope}). "
                f"Delete and recreate the role definition to change this setting."
            )
            raise RuntimeError(msg)
        if desired.role_definition_id is not None and desired.role_definition_id != rid.role_id:
            msg = (
                f"Cannot change 'role_definition_id' on role definition '{desired.role_name}' "
                f"(from {rid.role_id} to {desired.role_definition_id}). "
                f"Delete and recreate the role definition to change this setting."
            )
            raise RuntimeError(msg)

        timeout = ctx.timeouts.update.total_seconds()
        label = f"Role Definition '{rid.role_id}' (Scope '{rid.scope}')"
        try:
            resp = self.client.role_definitions.create_or_update(
                rid.scope, rid.role_id, self._build_definition(desired), timeout=timeout
            )
        except Exception as exc:
            exc.add_note(f"updating {label}")
            raise
        if resp is None:
            raise MalformedResponseError(f"updating {label}: `properties` was empty")
        updated_on = resp.updated_on
        if updated_on is None:
            raise MalformedResponseError(f"updating {label}: `properties.updated_on` was empty")

        logger.debug("Waiting for %s to settle down", label)
        waiter = ConvergenceWaiter(
            observe=lambda: self._observe(rid, timeout=ctx.timeouts.read.total_seconds()),
            expected_updated_on=updated_on,
            timeout=timeout,
            delay=self.poll_interval,
            poll_interval=self.poll_interval,
            continuous_target_occurrence=self.continuous_target_occurrence,
            sleep=self._sleep,
        )
        try:
            waiter.wait()
        except Exception as exc:
            exc.add_note(f"waiting for {label} to settle down")
            raise

        attrs = self.read(ctx, prior)
        if attrs is None:
            raise RuntimeError(f"{label} not found after update")
        return attrs

    def _observe(self, rid: RoleDefinitionId, *, timeout: float) -> ConvergenceObservation:
        role = self.client.role_definitions.get(rid.scope, rid.role_id, timeout=timeout)
        if role is None:
            raise MalformedResponseError("`properties` was empty in the response")
        return ConvergenceObservation(created_on=role.created_on, updated_on=role.updated_on)

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        """Delete a role definition. Already-deleted is not an error."""
        rid = parse_role_definition_id(prior.attributes.get("id", ""))
        try:
            self.client.role_definitions.delete(
                rid.scope, rid.role_id, timeout=ctx.timeouts.delete.total_seconds()
            )
        except ResourceNotFoundError:
            logger.debug("Role Definition %s already deleted", rid)
