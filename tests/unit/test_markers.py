"""Tests for declarative field markers and introspection helpers."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field

from azure_provisioner.resources.markers import Compare, collect_compare_strategies
from azure_provisioner.resources.postgresql_administrator import PostgreSQLAdministratorResource
from azure_provisioner.resources.role_definition import RoleDefinitionResource


class TestCollectCompareStrategies:
    def test_collects_marked_fields(self) -> None:
        class M(BaseModel):
            scopes: Annotated[list[str], Compare("set")] = Field(default_factory=list)
            config: Annotated[dict[str, Any], Compare("partial")] = Field(default_factory=dict)
            name: str = ""

        assert collect_compare_strategies(M) == {"scopes": "set", "config": "partial"}

    def test_accepts_instances(self) -> None:
        class M(BaseModel):
            body: Annotated[dict[str, Any], Compare("exact")] = Field(default_factory=dict)

        assert collect_compare_strategies(M()) == {"body": "exact"}

    def test_unmarked_model(self) -> None:
        assert collect_compare_strategies(PostgreSQLAdministratorResource) == {}

    def test_role_definition_assignable_scopes_use_set_strategy(self) -> None:
        assert collect_compare_strategies(RoleDefinitionResource)["assignable_scopes"] == "set"
