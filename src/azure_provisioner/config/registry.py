"""Default resource type registry factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from azure_provisioner.engine.postgresql_administrator_handler import (
    PostgreSQLAdministratorHandler,
)
from azure_provisioner.engine.registry import ResourceTypeRegistry
from azure_provisioner.engine.role_definition_handler import RoleDefinitionHandler
from azure_provisioner.resources.postgresql_administrator import PostgreSQLAdministratorResource
from azure_provisioner.resources.role_definition import RoleDefinitionResource

if TYPE_CHECKING:
    from azure_provisioner.core.provider import AzureProvider


def default_registry(provider: AzureProvider) -> ResourceTypeRegistry:
    """Create a fresh registry with all built-in resource types and handlers.

    Each handler gets the management client it talks to from *provider*.
    Building a client does not authenticate; the first API call does.
    """
    registry = ResourceTypeRegistry()

    registry.register(RoleDefinitionResource, RoleDefinitionHandler(provider.authorization))
    registry.register(
        PostgreSQLAdministratorResource, PostgreSQLAdministratorHandler(provider.postgresql)
    )

    return registry
