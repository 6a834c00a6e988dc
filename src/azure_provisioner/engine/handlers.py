"""Engine-facing handler interfaces."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

from azure_provisioner.core.state import ResourceInstance
from azure_provisioner.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from azure_provisioner.core.state import State

R = TypeVar("R", bound=Resource)

_DURATION_RE = re.compile(r"^(?:(?P<h>\d+)h)?(?:(?P<m>\d+)m)?(?:(?P<s>\d+)s)?$")


def parse_duration(value: Any) -> Any:
    """Accept ``"1h30m"``-style strings in addition to what pydantic parses natively."""
    if not isinstance(value, str):
        return value
    match = _DURATION_RE.match(value.strip())
    if match is None or not any(match.groupdict().values()):
        return value
    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    return timedelta(hours=parts.get("h", 0), minutes=parts.get("m", 0), seconds=parts.get("s", 0))


class Timeouts(BaseModel):
    """Per-operation deadlines applied to handler calls that wait on Azure."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    create: timedelta = timedelta(minutes=30)
    read: timedelta = timedelta(minutes=5)
    update: timedelta = timedelta(minutes=30)
    delete: timedelta = timedelta(minutes=30)

    @field_validator("create", "read", "update", "delete", mode="before")
    @classmethod
    def _parse_duration(cls, v: Any) -> Any:
        return parse_duration(v)


@dataclass(frozen=True)
class EngineContext:
    """Per-run settings every handler call receives."""

    subscription_id: str
    require_import: bool = True
    timeouts: Timeouts = field(default_factory=Timeouts)


class PlanContext:
    """Merged view of desired and existing resources for plan-level validation.

    Desired resources shadow state instances at the same address, so a
    resource being reconfigured is only seen once.
    """

    def __init__(self, all_desired: Mapping[str, Resource], state: State) -> None:
        self._items: dict[str, Resource | ResourceInstance] = dict(state.resources)
        self._items.update(all_desired)

    def address_exists(self, address: str) -> bool:
        """True if *address* is declared or tracked in state."""
        return address in self._items

    def others_of_type(
        self, resource_type: str, *, exclude: str
    ) -> list[Resource | ResourceInstance]:
        """All resources of *resource_type* other than the one at *exclude*."""
        return [
            item
            for address, item in sorted(self._items.items())
            if address != exclude and item.resource_type == resource_type
        ]

    @staticmethod
    def get_attr(item: Resource | ResourceInstance, attr: str) -> Any:
        """Read an attribute from either a desired resource or a stored instance."""
        if isinstance(item, ResourceInstance):
            return item.attributes.get(attr)
        return getattr(item, attr, None)


class ResourceHandler(Generic[R]):
    """Translates one resource type into Azure management calls.

    ``create``, ``read``, ``update`` and ``delete`` must be overridden. The
    dicts they return become the instance's stored attributes. The
    validation hooks and ``upgrade_state`` default to no-ops.
    """

    def validate(self, ctx: EngineContext, desired: R) -> list[str]:
        """Checks that need nothing but *desired*; returns error messages."""
        _ = ctx, desired
        return []

    def validate_plan(
        self,
        ctx: EngineContext,
        desired: R,
        plan_ctx: PlanContext,
    ) -> list[str]:
        """Checks against every other desired or stored resource; returns error messages."""
        _ = ctx, desired, plan_ctx
        return []

    def validate_import_id(self, resource_id: str) -> None:
        """Raise if *resource_id* cannot name an object of this type."""
        _ = resource_id

    def upgrade_state(self, attributes: dict[str, Any], from_version: int) -> dict[str, Any]:
        """Migrate stored attributes one step, from *from_version* to ``from_version + 1``."""
        _ = from_version
        return attributes

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        """Current attributes, or None once the object is gone from Azure."""
        raise NotImplementedError

    def create(self, ctx: EngineContext, desired: R) -> dict[str, Any]:
        raise NotImplementedError

    def update(self, ctx: EngineContext, desired: R, prior: ResourceInstance) -> dict[str, Any]:
        raise NotImplementedError

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        raise NotImplementedError
