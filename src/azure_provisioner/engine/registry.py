"""Maps Terraform-style type names to their model and handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from azure_provisioner.engine.errors import UnknownResourceTypeError

if TYPE_CHECKING:
    from azure_provisioner.engine.handlers import ResourceHandler
    from azure_provisioner.resources.base import Resource


def split_address(address: str) -> tuple[str, str]:
    """``"azurerm_role_definition.reader"`` -> ``("azurerm_role_definition", "reader")``.

    Only the first dot separates; role names may contain further dots.
    """
    resource_type, _, name = address.partition(".")
    if not resource_type or not name:
        raise ValueError(f"Invalid resource address {address!r}: expected '<type>.<name>'")
    return resource_type, name


@dataclass(frozen=True)
class ResourceTypeRegistration:
    resource_type: str
    model: type[Resource]
    handler: ResourceHandler[Any]


class ResourceTypeRegistry:
    """One handler per resource type; the engine dispatches every call through here."""

    def __init__(self) -> None:
        self._by_type: dict[str, ResourceTypeRegistration] = {}

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._by_type

    @property
    def resource_types(self) -> list[str]:
        return sorted(self._by_type)

    def register(self, model: type[Resource], handler: ResourceHandler[Any]) -> None:
        resource_type: Any = getattr(model, "resource_type", None)
        if not resource_type or not isinstance(resource_type, str):
            raise ValueError(f"{model.__name__} must set a non-empty `resource_type` ClassVar")
        if "." in resource_type:
            # Addresses are split on the first dot.
            raise ValueError(f"Resource type must not contain '.': {resource_type}")
        if resource_type in self:
            raise ValueError(f"Resource type already registered: {resource_type}")
        self._by_type[resource_type] = ResourceTypeRegistration(resource_type, model, handler)

    def get(self, resource_type: str) -> ResourceTypeRegistration:
        registration = self._by_type.get(resource_type)
        if registration is None:
            raise UnknownResourceTypeError(resource_type)
        return registration

    def resolve_address(self, address: str) -> tuple[ResourceTypeRegistration, str]:
        """Look up the registration for *address* and return it with the name part."""
        resource_type, name = split_address(address)
        return self.get(resource_type), name
