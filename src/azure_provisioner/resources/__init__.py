"""Azure resource definitions."""

from azure_provisioner.resources.base import Resource
from azure_provisioner.resources.postgresql_administrator import PostgreSQLAdministratorResource
from azure_provisioner.resources.role_definition import (
    Permission,
    RoleDefinitionResource,
    expand_assignable_scopes,
)

__all__ = [
    "Permission",
    "PostgreSQLAdministratorResource",
    "Resource",
    "RoleDefinitionResource",
    "expand_assignable_scopes",
]
