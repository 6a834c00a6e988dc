from __future__ import annotations

import re

from azure_provisioner.cli.formatting import (
    changes_summary,
    format_apply_summary,
    format_change,
    format_changes,
    format_import,
    format_plan,
    format_plan_summary,
    has_actionable_changes,
)
from azure_provisioner.core.state import ResourceInstance
from azure_provisioner.engine.types import Action, Plan, PlanMetadata, ResourceChange

SUB = "/subscriptions/00000000-0000-0000-0000-000000000000"

_META = PlanMetadata(
    subscription_id="00000000-0000-0000-0000-000000000000",
    destroy=False,
    refresh=True,
    state_lineage="lineage-1",
    state_serial=0,
    state_digest="digest",
    config_digest="cdigest",
    engine_version="0.1.0",
)


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


class TestFormatPlanSummary:
    def test_all_zeros(self) -> None:
        result = format_plan_summary({"create": 0, "update": 0, "delete": 0}, color=False)
        assert result == "Plan: 0 to add, 0 to change, 0 to destroy."

    def test_with_counts(self) -> None:
        result = format_plan_summary({"create": 2, "update": 1, "delete": 3}, color=False)
        assert result == "Plan: 2 to add, 1 to change, 3 to destroy."

    def test_custom_header(self) -> None:
        result = format_plan_summary({"update": 1}, color=False, header="Refresh")
        assert result == "Refresh: 0 to add, 1 to change, 0 to destroy."

    def test_color_mode_contains_ansi(self) -> None:
        result = format_plan_summary({"create": 1, "update": 0, "delete": 0}, color=True)
        assert "\x1b[" in result
        assert "1 to add" in _strip_ansi(result)


class TestFormatApplySummary:
    def test_all_zeros(self) -> None:
        result = format_apply_summary({"create": 0, "update": 0, "delete": 0}, color=False)
        assert result == "Apply complete! Resources: 0 added, 0 changed, 0 destroyed."

    def test_color_mode_contains_ansi(self) -> None:
        result = format_apply_summary({"create": 1, "update": 0, "delete": 0}, color=True)
        assert "\x1b[" in result


class TestFormatChange:
    def test_create_block(self) -> None:
        change = ResourceChange(
            address="azurerm_role_definition.storage_reader",
            resource_type="azurerm_role_definition",
            action=Action.CREATE,
            planned={"scope": SUB, "assignable_scopes": [SUB], "description": None},
        )

        lines = format_change(change, color=False).splitlines()

        assert lines[0] == "  # azurerm_role_definition.storage_reader will be created"
        assert lines[1] == '  + resource "azurerm_role_definition" "storage_reader" {'
        width = len("assignable_scopes")
        assert f'      + {"scope":<{width}} = "{SUB}"' in lines
        assert f'      + assignable_scopes = ["{SUB}"]' in lines
        assert f"      + {'description':<{width}} = null" in lines
        assert lines[-1] == "    }"

    def test_update_block_shows_from_and_to(self) -> None:
        change = ResourceChange(
            address="azurerm_postgresql_active_directory_administrator.main",
            resource_type="azurerm_postgresql_active_directory_administrator",
            action=Action.UPDATE,
            diff={"login": {"from": "dba", "to": "new-dba"}},
        )

        text = format_change(change, color=False)

        assert "will be updated in-place" in text
        assert '~ login = "dba" -> "new-dba"' in text

    def test_dict_values_rendered_as_sorted_json(self) -> None:
        change = ResourceChange(
            address="azurerm_role_definition.r",
            resource_type="azurerm_role_definition",
            action=Action.CREATE,
            planned={"permissions": [{"not_actions": [], "actions": ["*/read"]}]},
        )

        text = format_change(change, color=False)

        assert '[{"actions": ["*/read"], "not_actions": []}]' in text

    def test_delete_block(self) -> None:
        change = ResourceChange(
            address="azurerm_role_definition.old",
            resource_type="azurerm_role_definition",
            action=Action.DELETE,
            prior={"scope": SUB},
        )

        text = format_change(change, color=False)

        assert "will be destroyed" in text
        assert '- resource "azurerm_role_definition" "old"' in text


class TestFormatPlan:
    def test_noop_plan(self) -> None:
        plan = Plan(
            metadata=_META,
            changes=[
                ResourceChange(
                    address="azurerm_role_definition.ok",
                    resource_type="azurerm_role_definition",
                    action=Action.NOOP,
                )
            ],
        )

        assert format_plan(plan, color=False) == "No changes. Resources are up-to-date."
        assert has_actionable_changes(plan) is False

    def test_blocks_separated_by_blank_line(self) -> None:
        changes = [
            ResourceChange(
                address=f"azurerm_role_definition.r{i}",
                resource_type="azurerm_role_definition",
                action=Action.DELETE,
            )
            for i in range(2)
        ]

        assert "}\n\n  # azurerm_role_definition.r1" in format_changes(changes, color=False)


class TestChangesSummary:
    def test_counts_ignore_noop(self) -> None:
        changes = [
            ResourceChange(address="a.x", resource_type="a", action=Action.UPDATE),
            ResourceChange(address="a.y", resource_type="a", action=Action.DELETE),
            ResourceChange(address="a.z", resource_type="a", action=Action.NOOP),
        ]

        assert changes_summary(changes) == {"create": 0, "update": 1, "delete": 1}


class TestFormatImport:
    def test_import_line(self) -> None:
        inst = ResourceInstance(
            address="azurerm_postgresql_active_directory_administrator.main",
            resource_type="azurerm_postgresql_active_directory_administrator",
            name="main",
            attributes={"id": "/subscriptions/x/administrators/activeDirectory"},
        )

        assert format_import(inst, color=False) == (
            "azurerm_postgresql_active_directory_administrator.main: Import complete "
            "(id=/subscriptions/x/administrators/activeDirectory)"
        )
