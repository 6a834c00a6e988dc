"""Tests for config convenience API and engine wiring."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from azure_provisioner.config import (
    _build_drift_changes,
    _engine_from_config,
    _provider_from_config,
    import_resource,
    plan,
    plan_and_apply,
    refresh,
    save_state,
)
from azure_provisioner.config.loader import ConfigError
from azure_provisioner.config.schema import Config, ProviderConfig
from azure_provisioner.core.state import ResourceInstance, State
from azure_provisioner.engine.handlers import Timeouts
from azure_provisioner.engine.types import Action

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"

_YAML = f"""\
provider:
  subscription_id: {SUBSCRIPTION_ID}

role_definitions:
  - name: reader
    scope: /subscriptions/{SUBSCRIPTION_ID}
"""


def _config(**provider: object) -> Config:
    return Config(provider=ProviderConfig(subscription_id=SUBSCRIPTION_ID, **provider))


def _inst(address: str, attrs: dict[str, object]) -> ResourceInstance:
    resource_type, _, name = address.partition(".")
    return ResourceInstance(
        address=address, resource_type=resource_type, name=name, attributes=attrs
    )


class TestProviderFromConfig:
    def test_default_credential_without_secret(self) -> None:
        provider = _provider_from_config(_config())
        assert provider.auth is None
        assert isinstance(provider.credential, DefaultAzureCredential)

    def test_client_secret(self) -> None:
        provider = _provider_from_config(
            _config(tenant_id="t", client_id="c", client_secret="s3cret")
        )
        assert provider.auth is not None
        assert provider.auth.client_secret.get_secret_value() == "s3cret"
        assert isinstance(provider.credential, ClientSecretCredential)

    def test_secret_without_client_id_raises(self) -> None:
        with pytest.raises(ConfigError, match="client_id"):
            _provider_from_config(_config(tenant_id="t", client_secret="s3cret"))

    def test_empty_subscription_raises(self) -> None:
        config = Config(provider=ProviderConfig(subscription_id=""))
        with pytest.raises(ConfigError, match="subscription_id"):
            _provider_from_config(config)


class TestEngineFromConfig:
    def test_builds_engine_with_subscription(self) -> None:
        engine = _engine_from_config(_config())
        assert engine.subscription_id == SUBSCRIPTION_ID

    def test_builds_engine_with_state_path(self) -> None:
        config = Config(
            provider=ProviderConfig(subscription_id=SUBSCRIPTION_ID),
            state_path=Path("custom.json"),
        )
        engine = _engine_from_config(config)
        assert engine.state_path == Path("custom.json")

    def test_strict_mode_and_timeouts_reach_handlers(self) -> None:
        config = Config(
            provider=ProviderConfig(subscription_id=SUBSCRIPTION_ID, require_import=False),
            timeouts=Timeouts(read=timedelta(minutes=1)),
        )
        ctx = _engine_from_config(config)._ctx()
        assert ctx.require_import is False
        assert ctx.timeouts.read == timedelta(minutes=1)
        assert ctx.subscription_id == SUBSCRIPTION_ID


class TestPlanIntegration:
    @patch("azure_provisioner.engine.engine.AzureEngine.plan")
    def test_plan_passes_resources(self, mock_engine_plan: MagicMock, make_config) -> None:
        config = make_config(_YAML)
        mock_engine_plan.return_value = MagicMock()

        plan(config)

        args, kwargs = mock_engine_plan.call_args
        assert args[0] == config.resources
        assert kwargs == {"destroy": False, "refresh": True}

    @patch("azure_provisioner.engine.engine.AzureEngine.plan")
    def test_plan_passes_destroy_and_refresh(
        self, mock_engine_plan: MagicMock, make_config
    ) -> None:
        config = make_config(_YAML)
        mock_engine_plan.return_value = MagicMock()

        plan(config, destroy=True, refresh=False)

        _, kwargs = mock_engine_plan.call_args
        assert kwargs["destroy"] is True
        assert kwargs["refresh"] is False

    @patch("azure_provisioner.engine.engine.AzureEngine.import_resource")
    def test_import_resource_delegates(self, mock_import: MagicMock, make_config) -> None:
        config = make_config(_YAML)

        import_resource(config, "azurerm_role_definition.reader", "rid|scope")

        mock_import.assert_called_once_with("azurerm_role_definition.reader", "rid|scope")

    @patch("azure_provisioner.engine.engine.AzureEngine.apply")
    @patch("azure_provisioner.engine.engine.AzureEngine.plan")
    def test_plan_and_apply_chains(
        self, mock_engine_plan: MagicMock, mock_engine_apply: MagicMock, make_config
    ) -> None:
        config = make_config(_YAML)
        planned = MagicMock()
        mock_engine_plan.return_value = planned

        plan_and_apply(config, destroy=True)

        assert mock_engine_plan.call_args.kwargs["destroy"] is True
        mock_engine_apply.assert_called_once_with(planned, progress=None)


class TestRefresh:
    def test_refresh_returns_drift_against_current_state(self) -> None:
        old = State(subscription_id=SUBSCRIPTION_ID)
        old.resources["azurerm_role_definition.r"] = _inst(
            "azurerm_role_definition.r", {"description": "a"}
        )
        new = old.model_copy(deep=True)
        new.resources["azurerm_role_definition.r"].attributes["description"] = "b"

        engine = MagicMock()
        engine.current_state.return_value = old
        engine.refresh.return_value = new
        with patch("azure_provisioner.config._engine_from_config", return_value=engine):
            changes, state = refresh(_config())

        assert state is new
        assert [c.address for c in changes] == ["azurerm_role_definition.r"]
        engine.refresh.assert_called_once_with()

    def test_save_state_bumps_serial(self, tmp_path: Path) -> None:
        config = Config(
            provider=ProviderConfig(subscription_id=SUBSCRIPTION_ID),
            state_path=tmp_path / "state.json",
        )
        state = State(subscription_id=SUBSCRIPTION_ID, serial=3)

        save_state(config, state)

        assert State.load(config.state_path).serial == 4


class TestBuildDriftChanges:
    def test_changed_attributes(self) -> None:
        old = State(subscription_id=SUBSCRIPTION_ID)
        old.resources["a.x"] = _inst("a.x", {"login": "dba", "id": "1"})
        new = State(subscription_id=SUBSCRIPTION_ID)
        new.resources["a.x"] = _inst("a.x", {"login": "other", "id": "1"})

        changes = _build_drift_changes(old, new)

        assert len(changes) == 1
        assert changes[0].action == Action.UPDATE
        assert changes[0].diff == {"login": {"from": "dba", "to": "other"}}

    def test_deleted_out_of_band(self) -> None:
        old = State(subscription_id=SUBSCRIPTION_ID)
        old.resources["a.y"] = _inst("a.y", {"id": "2"})
        old.resources["a.x"] = _inst("a.x", {"id": "1"})
        new = State(subscription_id=SUBSCRIPTION_ID)

        changes = _build_drift_changes(old, new)

        assert [(c.address, c.action) for c in changes] == [
            ("a.x", Action.DELETE),
            ("a.y", Action.DELETE),
        ]

    def test_no_drift(self) -> None:
        old = State(subscription_id=SUBSCRIPTION_ID)
        old.resources["a.x"] = _inst("a.x", {"id": "1"})

        assert _build_drift_changes(old, old.model_copy(deep=True)) == []
