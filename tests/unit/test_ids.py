"""Tests for resource identifier parsing."""

from __future__ import annotations

import pytest

from azure_provisioner.engine.errors import ResourceIdParseError
from azure_provisioner.engine.ids import (
    RoleDefinitionId,
    parse_role_definition_id,
    parse_server_child_id,
)

SUB = "/subscriptions/00000000-0000-0000-0000-000000000000"
ROLE_ID = "11111111-2222-3333-4444-555555555555"
ROLE_RESOURCE_ID = f"{SUB}/providers/Microsoft.Authorization/roleDefinitions/{ROLE_ID}"
ADMIN_ID = (
    f"{SUB}/resourceGroups/rg-data/providers/Microsoft.DBforPostgreSQL"
    "/servers/pg-main/administrators/activeDirectory"
)


class TestRoleDefinitionId:
    def test_parse_subscription_scope(self) -> None:
        rid = parse_role_definition_id(f"{ROLE_RESOURCE_ID}|{SUB}")

        assert rid.resource_id == ROLE_RESOURCE_ID
        assert rid.scope == SUB
        assert rid.role_id == ROLE_ID

    def test_parse_management_group_scope(self) -> None:
        scope = "/providers/Microsoft.Management/managementGroups/platform"
        rid = parse_role_definition_id(f"{ROLE_RESOURCE_ID}|{scope}")

        assert rid.scope == scope
        assert rid.role_id == ROLE_ID

    def test_str_round_trips(self) -> None:
        value = f"{ROLE_RESOURCE_ID}|{SUB}"
        assert str(parse_role_definition_id(value)) == value

    def test_build(self) -> None:
        rid = RoleDefinitionId.build(ROLE_RESOURCE_ID, SUB)
        assert str(rid) == f"{ROLE_RESOURCE_ID}|{SUB}"

    @pytest.mark.parametrize(
        ("value", "reason"),
        [
            ("", "empty"),
            (ROLE_RESOURCE_ID, "expected"),
            (f"{ROLE_RESOURCE_ID}|{SUB}|extra", "expected"),
            (f"{ROLE_RESOURCE_ID}|", "scope is empty"),
            (f"{SUB}/providers/Microsoft.Authorization|{SUB}", "roleDefinitions"),
            (f"{SUB}/providers/Microsoft.Authorization/roleDefinitions/|{SUB}", "roleDefinitions"),
        ],
    )
    def test_rejects_malformed(self, value: str, reason: str) -> None:
        with pytest.raises(ResourceIdParseError, match=reason):
            parse_role_definition_id(value)


class TestServerChildId:
    def test_parse_administrator_id(self) -> None:
        sid = parse_server_child_id(ADMIN_ID)

        assert sid.resource_group == "rg-data"
        assert sid.server_name == "pg-main"

    def test_rejects_empty(self) -> None:
        with pytest.raises(ResourceIdParseError, match="empty"):
            parse_server_child_id("")

    def test_rejects_missing_subscription(self) -> None:
        with pytest.raises(ResourceIdParseError):
            parse_server_child_id("not-an-azure-id")

    def test_rejects_non_server_parent(self) -> None:
        value = (
            f"{SUB}/resourceGroups/rg-data/providers/Microsoft.Storage"
            "/storageAccounts/acct/blobServices/default"
        )
        with pytest.raises(ResourceIdParseError, match="servers"):
            parse_server_child_id(value)
