"""Parsing of the identifiers stored in state for each resource type."""

from __future__ import annotations

from dataclasses import dataclass

from azure.mgmt.core.tools import parse_resource_id

from azure_provisioner.engine.errors import ResourceIdParseError

_ROLE_DEFINITIONS_SEGMENT = "/roleDefinitions/"


@dataclass(frozen=True)
class RoleDefinitionId:
    """Composite ``<role definition resource id>|<scope>`` identifier.

    The scope is kept next to the resource ID because role definitions
    created at a management-group or resource-group scope are still returned
    with a subscription-rooted ID.
    """

    resource_id: str
    scope: str
    role_id: str

    def __str__(self) -> str:
        return f"{self.resource_id}|{self.scope}"

    @classmethod
    def build(cls, resource_id: str, scope: str) -> RoleDefinitionId:
        return parse_role_definition_id(f"{resource_id}|{scope}")


def parse_role_definition_id(value: str) -> RoleDefinitionId:
    if not value:
        raise ResourceIdParseError(value, "Role Definition ID is empty")

    parts = value.split("|")
    if len(parts) != 2:
        raise ResourceIdParseError(value, "expected '<role definition resource id>|<scope>'")
    resource_id, scope = parts
    if not scope:
        raise ResourceIdParseError(value, "scope is empty")

    _, sep, role_id = resource_id.rpartition(_ROLE_DEFINITIONS_SEGMENT)
    if not sep or not role_id or "/" in role_id:
        raise ResourceIdParseError(value, "resource id has no 'roleDefinitions/<id>' segment")

    return RoleDefinitionId(resource_id=resource_id, scope=scope, role_id=role_id)


@dataclass(frozen=True)
class ServerChildId:
    """Resource group and server name of a child resource of a database server."""

    resource_group: str
    server_name: str


def parse_server_child_id(value: str) -> ServerChildId:
    """Parse a database server child ID into resource group and server name.

    Accepts IDs of the form
    ``/subscriptions/.../resourceGroups/rg/providers/Microsoft.DBforPostgreSQL/servers/srv/...``.
    """
    if not value:
        raise ResourceIdParseError(value, "resource ID is empty")

    parts = parse_resource_id(value)
    if "subscription" not in parts:
        raise ResourceIdParseError(value, "expected an ID starting with '/subscriptions/'")
    resource_group = parts.get("resource_group")
    if not resource_group:
        raise ResourceIdParseError(value, "no 'resourceGroups' segment")
    if parts.get("type", "").lower() != "servers" or not parts.get("name"):
        raise ResourceIdParseError(value, "no 'servers' segment")

    return ServerChildId(resource_group=resource_group, server_name=parts["name"])
