"""Custom role definition resource model."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from azure_provisioner.resources.base import Resource
from azure_provisioner.resources.markers import Compare

if TYPE_CHECKING:
    from collections.abc import Iterable


def expand_assignable_scopes(scope: str, assignable_scopes: Iterable[str]) -> list[str]:
    """Return the scopes to send to Azure, with *scope* always first.

    The role's own scope is never echoed back by the API unless it is listed,
    so it is prepended here and dropped from the caller's entries.
    """
    return [scope, *(s for s in assignable_scopes if s != scope)]


class Permission(BaseModel):
    """One permission block of a role definition.

    ``actions``/``not_actions`` keep their order; the data-action lists are
    sets on the Azure side and are stored sorted and de-duplicated.
    """

    model_config = ConfigDict(extra="forbid")

    actions: list[str] = Field(default_factory=list)
    not_actions: list[str] = Field(default_factory=list)
    data_actions: list[str] = Field(default_factory=list)
    not_data_actions: list[str] = Field(default_factory=list)

    @field_validator("data_actions", "not_data_actions")
    @classmethod
    def _as_sorted_set(cls, v: list[str]) -> list[str]:
        return sorted(set(v))


class RoleDefinitionResource(Resource):
    """Azure custom role definition.

    ``name`` is only the address label. ``role_name`` is the name shown in the
    portal and defaults to ``name``; renaming it updates the role in place.
    ``scope`` and ``role_definition_id`` are fixed once created; when
    ``role_definition_id`` is omitted a random UUID is generated at create.
    """

    resource_type: ClassVar[str] = "azurerm_role_definition"
    plan_priority: ClassVar[int] = 10
    schema_version: ClassVar[int] = 2

    role_name: str = Field(min_length=1)
    scope: str = Field(min_length=1)
    role_definition_id: str | None = None
    description: str = ""
    permissions: list[Permission] = Field(default_factory=list)
    assignable_scopes: Annotated[list[str], Compare("set")] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_role_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("role_name") is None and "name" in data:
            return {**data, "role_name": data["name"]}
        return data

    @field_validator("role_definition_id")
    @classmethod
    def _validate_role_definition_id(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            return str(uuid.UUID(v))
        except ValueError as exc:
            raise ValueError(f"role_definition_id must be a UUID, got {v!r}") from exc

    @model_validator(mode="after")
    def _expand_assignable_scopes(self) -> Self:
        self.assignable_scopes = expand_assignable_scopes(self.scope, self.assignable_scopes)
        return self
