"""PostgreSQL Azure AD administrator handler.

The administrator is a singleton child of the server, so create and update
are the same PUT. Both are long-running operations and are waited on within
the configured timeout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.rdbms.postgresql.models import ServerAdministratorResource

from azure_provisioner.engine.errors import ConvergenceTimeoutError, ResourceAlreadyExistsError
from azure_provisioner.engine.handlers import ResourceHandler
from azure_provisioner.engine.ids import parse_server_child_id
from azure_provisioner.resources.postgresql_administrator import (
    PostgreSQLAdministratorResource,
    canonical_uuid,
)

if TYPE_CHECKING:
    from azure.core.polling import LROPoller
    from azure.mgmt.rdbms.postgresql import PostgreSQLManagementClient

    from azure_provisioner.core.state import ResourceInstance
    from azure_provisioner.engine.handlers import EngineContext, PlanContext

logger = logging.getLogger(__name__)

ADMINISTRATOR_TYPE = "ActiveDirectory"


def wait_for_poller(poller: LROPoller[Any], timeout: float) -> Any:
    """Block on a long-running operation for at most *timeout* seconds."""
    result = poller.result(timeout=timeout)
    if not poller.done():
        raise ConvergenceTimeoutError("Succeeded", poller.status(), timeout)
    return result


class PostgreSQLAdministratorHandler(ResourceHandler["PostgreSQLAdministratorResource"]):
    """CRUD handler binding an Azure AD principal as PostgreSQL server administrator."""

    def __init__(self, client: PostgreSQLManagementClient) -> None:
        self.client = client

    def _read_attrs(
        self, name: str, resource_id: str, admin: ServerAdministratorResource
    ) -> dict[str, Any]:
        sid = parse_server_child_id(resource_id)
        return {
            "id": resource_id,
            "name": name,
            "server_name": sid.server_name,
            "resource_group_name": sid.resource_group,
            "login": admin.login or "",
            "object_id": canonical_uuid(admin.sid or "", strict=False),
            "tenant_id": canonical_uuid(admin.tenant_id or "", strict=False),
        }

    def validate_plan(
        self,
        ctx: EngineContext,
        desired: PostgreSQLAdministratorResource,
        plan_ctx: PlanContext,
    ) -> list[str]:
        _ = ctx
        errors: list[str] = []
        for other in plan_ctx.others_of_type(desired.resource_type, exclude=desired.address):
            if (
                plan_ctx.get_attr(other, "server_name") == desired.server_name
                and plan_ctx.get_attr(other, "resource_group_name") == desired.resource_group_name
            ):
                errors.append(
                    f"Server '{desired.server_name}' (Resource Group "
                    f"'{desired.resource_group_name}') already has an administrator "
                    f"binding: {other.address}"
                )
        return errors

    def validate_import_id(self, resource_id: str) -> None:
        parse_server_child_id(resource_id)

    def _create_update(
        self,
        ctx: EngineContext,
        desired: PostgreSQLAdministratorResource,
        *,
        is_new: bool,
        timeout: float,
    ) -> dict[str, Any]:
        rg = desired.resource_group_name
        server = desired.server_name
        ops = self.client.server_administrators

        if is_new and ctx.require_import:
            try:
                existing = ops.get(rg, server, timeout=timeout)
            except ResourceNotFoundError:
                existing = None
            except Exception as exc:
                msg = (
                    f"Error checking for presence of existing PostgreSQL AD Administrator "
                    f"(Server '{server}', Resource Group '{rg}'): {exc}"
                )
                raise RuntimeError(msg) from exc
            if existing is not None and existing.id:
                raise ResourceAlreadyExistsError(desired.resource_type, existing.id)

        parameters = ServerAdministratorResource(
            administrator_type=ADMINISTRATOR_TYPE,
            login=desired.login,
            sid=desired.object_id,
            tenant_id=desired.tenant_id,
        )
        logger.info(
            "Setting AD administrator of PostgreSQL server %s/%s to %s", rg, server, desired.login
        )
        poller = ops.begin_create_or_update(rg, server, parameters)
        wait_for_poller(poller, timeout)

        admin = ops.get(rg, server, timeout=timeout)
        if not admin.id:
            msg = (
                f"Cannot read PostgreSQL AD Administrator (Server '{server}', "
                f"Resource Group '{rg}'): ID was empty"
            )
            raise RuntimeError(msg)
        return self._read_attrs(desired.name, admin.id, admin)

    def create(
        self, ctx: EngineContext, desired: PostgreSQLAdministratorResource
    ) -> dict[str, Any]:
        return self._create_update(
            ctx, desired, is_new=True, timeout=ctx.timeouts.create.total_seconds()
        )

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        resource_id = prior.attributes.get("id", "")
        sid = parse_server_child_id(resource_id)
        try:
            admin = self.client.server_administrators.get(
                sid.resource_group, sid.server_name, timeout=ctx.timeouts.read.total_seconds()
            )
        except ResourceNotFoundError:
            logger.info("PostgreSQL AD Administrator %s was not found - removing from state", sid)
            return None
        return self._read_attrs(prior.name, resource_id, admin)

    def update(
        self,
        ctx: EngineContext,
        desired: PostgreSQLAdministratorResource,
        prior: ResourceInstance,
    ) -> dict[str, Any]:
        sid = parse_server_child_id(prior.attributes.get("id", ""))
        for field, current in (
            ("server_name", sid.server_name),
            ("resource_group_name", sid.resource_group),
        ):
            wanted = getattr(desired, field)
            if wanted != current:
                msg = (
                    f"Cannot change '{field}' on PostgreSQL AD Administrator '{desired.name}' "
                    f"(from {current} to {wanted}). "
                    f"Delete and recreate the administrator binding to change this setting."
                )
                raise RuntimeError(msg)
        return self._create_update(
            ctx, desired, is_new=False, timeout=ctx.timeouts.update.total_seconds()
        )

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        """Remove the administrator. Errors, including not-found, propagate."""
        sid = parse_server_child_id(prior.attributes.get("id", ""))
        timeout = ctx.timeouts.delete.total_seconds()
        logger.info(
            "Removing AD administrator of PostgreSQL server %s/%s",
            sid.resource_group,
            sid.server_name,
        )
        poller = self.client.server_administrators.begin_delete(sid.resource_group, sid.server_name)
        wait_for_poller(poller, timeout)
