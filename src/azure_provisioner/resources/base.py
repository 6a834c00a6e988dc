"""Pydantic base model shared by every declared Azure resource."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Resource(BaseModel):
    """Desired configuration of one Azure object, addressed as ``<resource_type>.<name>``.

    Models carry no behaviour; the matching ResourceHandler talks to Azure.
    """

    model_config = ConfigDict(extra="forbid")

    resource_type: ClassVar[str]
    plan_priority: ClassVar[int] = 100
    # Bumped whenever the stored attribute layout changes; see ResourceHandler.upgrade_state.
    schema_version: ClassVar[int] = 0

    name: str = Field(pattern=r"^[a-zA-Z0-9_-]+$")

    depends_on: list[str] = []

    @computed_field
    @property
    def address(self) -> str:
        """Unique address for this resource (e.g., 'azurerm_role_definition.reader')."""
        return f"{self.resource_type}.{self.name}"
