"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
import os
from typing import TYPE_CHECKING, Annotated, Any, ClassVar

import pytest
from pydantic import Field

from azure_provisioner.config import load
from azure_provisioner.engine import AzureEngine
from azure_provisioner.engine.handlers import ResourceHandler
from azure_provisioner.engine.registry import ResourceTypeRegistry
from azure_provisioner.resources.base import Resource
from azure_provisioner.resources.markers import Compare

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from azure_provisioner.config.schema import Config
    from azure_provisioner.core.state import ResourceInstance
    from azure_provisioner.engine.handlers import EngineContext

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture(autouse=True)
def _clean_arm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unit tests must not see a developer's ARM_* credentials."""
    for name in list(os.environ):
        if name.startswith("ARM_"):
            monkeypatch.delenv(name)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Write ``config.yaml`` (and ``.env`` when given) into tmp_path and load it."""

    def _make(yaml_str: str, *, dotenv: str | None = None) -> Config:
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        path = tmp_path / "config.yaml"
        path.write_text(yaml_str)
        return load(path)

    return _make


class Widget(Resource):
    """Stand-in resource type for engine tests."""

    resource_type: ClassVar[str] = "widget"

    size: int = 1
    settings: dict[str, Any] = Field(default_factory=dict)
    scopes: Annotated[list[str], Compare("set")] = Field(default_factory=list)


class FakeAzure(ResourceHandler[Widget]):
    """Keeps widgets in a dict and records each write as ``(verb, address)``."""

    def __init__(self) -> None:
        self.remote: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: str | None = None

    def _put(self, verb: str, desired: Widget) -> dict[str, Any]:
        self.calls.append((verb, desired.address))
        if desired.address == self.fail_on:
            exc = RuntimeError("quota exceeded")
            exc.add_note(f"creating {desired.name}")
            raise exc
        attrs = {"id": f"/widgets/{desired.name}", **desired.model_dump(exclude={"depends_on"})}
        attrs.pop("address", None)
        self.remote[desired.address] = copy.deepcopy(attrs)
        return attrs

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        return copy.deepcopy(self.remote.get(prior.address))

    def create(self, ctx: EngineContext, desired: Widget) -> dict[str, Any]:
        return self._put("create", desired)

    def update(
        self, ctx: EngineContext, desired: Widget, prior: ResourceInstance
    ) -> dict[str, Any]:
        return self._put("update", desired)

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        self.calls.append(("delete", prior.address))
        self.remote.pop(prior.address, None)


@pytest.fixture
def widget() -> type[Widget]:
    return Widget


@pytest.fixture
def fake_azure() -> FakeAzure:
    return FakeAzure()


@pytest.fixture
def engine(tmp_path: Path, fake_azure: FakeAzure) -> AzureEngine:
    """Engine with only the ``widget`` type registered, backed by ``fake_azure``."""
    registry = ResourceTypeRegistry()
    registry.register(Widget, fake_azure)
    return AzureEngine(
        subscription_id=SUBSCRIPTION_ID,
        state_path=tmp_path / "state.json",
        registry=registry,
    )
