"""Configuration models for YAML-based provisioning."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, BeforeValidator, computed_field
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from azure_provisioner.engine.handlers import Timeouts
from azure_provisioner.resources.base import Resource  # noqa: TC001
from azure_provisioner.resources.postgresql_administrator import (
    PostgreSQLAdministratorResource,  # noqa: TC001
)
from azure_provisioner.resources.role_definition import (
    RoleDefinitionResource,  # noqa: TC001
)

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

STRICT_VARIABLE = "ARM_PROVIDER_STRICT"


class _ProviderEnvSource(EnvSettingsSource):
    """``ARM_*`` variables, except that ``require_import`` reads ``ARM_PROVIDER_STRICT``."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        if field_name != "require_import":
            return super().get_field_value(field, field_name)
        name = STRICT_VARIABLE if self.case_sensitive else STRICT_VARIABLE.lower()
        return self.env_vars.get(name) or None, field_name, False


class ProviderConfig(BaseSettings):
    """Azure provider connection settings.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``ARM_`` prefix.  Constructor kwargs take precedence.

    ``client_secret`` is typically provided via the ``ARM_CLIENT_SECRET``
    environment variable rather than YAML to avoid committing secrets to
    version control. Without a secret, ``DefaultAzureCredential`` is used.

    ``require_import`` (env ``ARM_PROVIDER_STRICT`` only; ``ARM_REQUIRE_IMPORT``
    is not read) makes creates fail when the remote object already exists
    instead of silently adopting it.
    """

    model_config = SettingsConfigDict(env_prefix="ARM_")

    subscription_id: str
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    require_import: bool = True

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            _ProviderEnvSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


class Config(BaseModel):
    """Provisioning configuration, validated directly from YAML."""

    provider: ProviderConfig
    state_path: Path = Path(".azure-state.json")
    timeouts: Timeouts = Timeouts()
    role_definitions: Annotated[
        list[RoleDefinitionResource], BeforeValidator(_none_to_list)
    ] = []
    postgresql_administrators: Annotated[
        list[PostgreSQLAdministratorResource], BeforeValidator(_none_to_list)
    ] = []
    config_dir: Path = Path()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resources(self) -> list[Resource]:
        """All declared resources. Ordering is not significant."""
        return [*self.role_definitions, *self.postgresql_administrators]
