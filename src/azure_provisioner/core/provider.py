"""Azure Provider - Credentials and management clients for one subscription."""

from functools import cached_property
from typing import Any, Self

from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.authorization import AuthorizationManagementClient
from azure.mgmt.rdbms.postgresql import PostgreSQLManagementClient
from pydantic import BaseModel, ConfigDict, SecretStr


class ClientSecretAuth(BaseModel):
    """Service principal authentication with a client secret."""

    tenant_id: str
    client_id: str
    client_secret: SecretStr


class AzureProvider(BaseModel):
    """Connection configuration for an Azure subscription.

    Without ``auth`` the provider falls back to ``DefaultAzureCredential``
    (environment, managed identity, Azure CLI login, ...). For testing, use
    `from_clients` to inject pre-built management clients.

    Examples:
        # Service principal
        provider = AzureProvider(
            subscription_id="00000000-0000-0000-0000-000000000000",
            auth=ClientSecretAuth(
                tenant_id="...", client_id="...", client_secret=SecretStr("...")
            ),
        )

        # Whatever `az login` or the managed identity provides
        provider = AzureProvider(subscription_id="00000000-0000-0000-0000-000000000000")
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    subscription_id: str
    auth: ClientSecretAuth | None = None

    # Injected clients (for testing)
    _injected_authorization: Any = None
    _injected_postgresql: Any = None

    @classmethod
    def from_clients(
        cls,
        subscription_id: str,
        *,
        authorization: Any = None,
        postgresql: Any = None,
    ) -> Self:
        """Create a provider with injected management clients.

        Args:
            subscription_id: Subscription the clients are bound to
            authorization: Stand-in for ``AuthorizationManagementClient``
            postgresql: Stand-in for ``PostgreSQLManagementClient``
        """
        provider = cls.model_construct(subscription_id=subscription_id)
        provider._injected_authorization = authorization
        provider._injected_postgresql = postgresql
        return provider

    @cached_property
    def credential(self) -> ClientSecretCredential | DefaultAzureCredential:
        """Get the token credential used by the management clients."""
        if self.auth is None:
            return DefaultAzureCredential()
        return ClientSecretCredential(
            tenant_id=self.auth.tenant_id,
            client_id=self.auth.client_id,
            client_secret=self.auth.client_secret.get_secret_value(),
        )

    @cached_property
    def authorization(self) -> AuthorizationManagementClient:
        """Client for role definitions (Microsoft.Authorization)."""
        if self._injected_authorization is not None:
            return self._injected_authorization
        return AuthorizationManagementClient(self.credential, self.subscription_id)

    @cached_property
    def postgresql(self) -> PostgreSQLManagementClient:
        """Client for PostgreSQL single servers (Microsoft.DBforPostgreSQL)."""
        if self._injected_postgresql is not None:
            return self._injected_postgresql
        return PostgreSQLManagementClient(self.credential, self.subscription_id)
