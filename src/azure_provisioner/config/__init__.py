"""Library entry points: load a YAML config, then plan, apply, refresh or import.

Every function builds a fresh :class:`~azure_provisioner.engine.engine.AzureEngine`
from the ``provider`` section, so callers never deal with credentials or
clients directly::

    cfg = load("azure-provisioner.yaml")
    result = apply(plan(cfg), cfg)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import SecretStr

from azure_provisioner.config.loader import ConfigError, load_config
from azure_provisioner.config.registry import default_registry
from azure_provisioner.config.schema import Config, ProviderConfig
from azure_provisioner.core.provider import AzureProvider, ClientSecretAuth
from azure_provisioner.core.state import State
from azure_provisioner.engine.engine import AzureEngine, ProgressCallback
from azure_provisioner.engine.lock import StateLock
from azure_provisioner.engine.types import Action, ResourceChange

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from pathlib import Path

    from azure_provisioner.core.state import ResourceInstance
    from azure_provisioner.engine.types import ApplyResult, Plan

__all__ = [
    "Config",
    "ConfigError",
    "ProviderConfig",
    "State",
    "apply",
    "drift",
    "import_resource",
    "load",
    "load_config",
    "plan",
    "plan_and_apply",
    "refresh",
    "save_state",
]


def load(path: Path | str) -> Config:
    return load_config(path)


def _provider_from_config(config: Config) -> AzureProvider:
    p = config.provider
    if not p.subscription_id:
        raise ConfigError(
            "provider.subscription_id is required (set in YAML or ARM_SUBSCRIPTION_ID env var)"
        )

    auth = None
    if p.client_secret is not None:
        missing = [name for name in ("tenant_id", "client_id") if not getattr(p, name)]
        if missing:
            raise ConfigError(
                "provider.tenant_id and provider.client_id are required when a client secret "
                "is set (ARM_TENANT_ID / ARM_CLIENT_ID env vars)"
            )
        auth = ClientSecretAuth(
            tenant_id=p.tenant_id,
            client_id=p.client_id,
            client_secret=SecretStr(p.client_secret),
        )
    # No secret means DefaultAzureCredential (CLI login, managed identity, ...).
    return AzureProvider(subscription_id=p.subscription_id, auth=auth)


def _engine_from_config(config: Config) -> AzureEngine:
    provider = _provider_from_config(config)
    return AzureEngine(
        subscription_id=provider.subscription_id,
        state_path=config.state_path,
        registry=default_registry(provider),
        require_import=config.provider.require_import,
        timeouts=config.timeouts,
    )


def plan(config: Config, *, destroy: bool = False, refresh: bool = True) -> Plan:
    return _engine_from_config(config).plan(config.resources, destroy=destroy, refresh=refresh)


def apply(
    plan_obj: Plan, config: Config, *, progress: ProgressCallback | None = None
) -> ApplyResult:
    """Apply *plan_obj*; it must have been computed against the current state file."""
    return _engine_from_config(config).apply(plan_obj, progress=progress)


def plan_and_apply(config: Config, *, destroy: bool = False, refresh: bool = True) -> ApplyResult:
    return apply(plan(config, destroy=destroy, refresh=refresh), config)


def refresh(config: Config) -> tuple[list[ResourceChange], State]:
    """Read every tracked object from Azure without writing the state file.

    Returns the drift against the stored state together with the refreshed
    state; pass the latter to :func:`save_state` to keep it.
    """
    engine = _engine_from_config(config)
    before = engine.current_state()
    after = engine.refresh()
    return _build_drift_changes(before, after), after


def save_state(config: Config, state: State) -> None:
    with StateLock(config.state_path):
        state.commit(config.state_path)


def drift(config: Config) -> list[ResourceChange]:
    """Read-only variant of :func:`refresh`."""
    return refresh(config)[0]


def import_resource(config: Config, address: str, resource_id: str) -> ResourceInstance:
    return _engine_from_config(config).import_resource(address, resource_id)


def _attribute_drift(
    stored: Mapping[str, Any], live: Mapping[str, Any]
) -> dict[str, dict[str, Any]]:
    return {
        key: {"from": stored.get(key), "to": live.get(key)}
        for key in sorted(stored.keys() | live.keys())
        if stored.get(key) != live.get(key)
    }


def _iter_drift(before: State, after: State) -> Iterator[ResourceChange]:
    for address, inst in after.resources.items():
        prior = before.resources.get(address)
        if prior is None:
            continue
        diff = _attribute_drift(prior.attributes, inst.attributes)
        if diff:
            yield ResourceChange(
                address=address,
                resource_type=inst.resource_type,
                action=Action.UPDATE,
                prior=dict(prior.attributes),
                planned=dict(inst.attributes),
                diff=diff,
            )

    # Objects that vanished from Azure were dropped from the refreshed state.
    for address in sorted(before.resources.keys() - after.resources.keys()):
        gone = before.resources[address]
        yield ResourceChange(
            address=address,
            resource_type=gone.resource_type,
            action=Action.DELETE,
            prior=dict(gone.attributes),
        )


def _build_drift_changes(before: State, after: State) -> list[ResourceChange]:
    return list(_iter_drift(before, after))
