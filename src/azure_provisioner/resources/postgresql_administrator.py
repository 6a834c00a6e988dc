"""PostgreSQL Active Directory administrator resource model."""

from __future__ import annotations

import re
import uuid
from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, Field, field_validator

from azure_provisioner.resources.base import Resource

_RESOURCE_GROUP_RE = re.compile(r"^[-\w._()]+$")


def canonical_uuid(value: Any, *, strict: bool = True) -> str:
    """Lower-case hyphenated form of *value*.

    Anything that is not a UUID raises ``ValueError``, or is returned as a plain
    string when *strict* is false (Azure responses are stored as sent).
    """
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        if not strict:
            return str(value)
        raise ValueError(f"expected a UUID, got {value!r}") from exc


UUIDStr = Annotated[str, AfterValidator(canonical_uuid)]


class PostgreSQLAdministratorResource(Resource):
    """Azure AD administrator of a PostgreSQL single server (one per server).

    ``object_id`` is the principal (user or group) that becomes administrator
    and ``tenant_id`` the directory it lives in. Changing ``server_name`` or
    ``resource_group_name`` requires deleting and recreating the resource.
    """

    resource_type: ClassVar[str] = "azurerm_postgresql_active_directory_administrator"
    plan_priority: ClassVar[int] = 20

    server_name: str = Field(min_length=1)
    resource_group_name: str = Field(min_length=1, max_length=90)
    login: str = Field(min_length=1)
    object_id: UUIDStr
    tenant_id: UUIDStr

    @field_validator("resource_group_name")
    @classmethod
    def _validate_resource_group_name(cls, v: str) -> str:
        if not _RESOURCE_GROUP_RE.match(v):
            raise ValueError(
                "resource_group_name may only contain alphanumeric characters, dash, "
                "underscore, parentheses and periods"
            )
        if v.endswith("."):
            raise ValueError("resource_group_name cannot end with a period")
        return v
