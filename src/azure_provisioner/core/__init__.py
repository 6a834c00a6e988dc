"""Core infrastructure components for Azure Provisioner."""

from azure_provisioner.core.provider import AzureProvider, ClientSecretAuth
from azure_provisioner.core.state import ResourceInstance, State

__all__ = ["AzureProvider", "ClientSecretAuth", "ResourceInstance", "State"]
