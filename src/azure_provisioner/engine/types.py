"""Plan documents exchanged between ``plan`` and ``apply``."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "no-op"


class PlanMetadata(BaseModel):
    """Fingerprint of the inputs a plan was computed from.

    ``apply`` recomputes the state and config digests and refuses a plan
    whose fingerprint no longer matches.
    """

    subscription_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    destroy: bool
    refresh: bool
    state_lineage: str
    state_serial: int
    state_digest: str
    config_digest: str
    engine_version: str


class ResourceChange(BaseModel):
    address: str
    resource_type: str
    action: Action
    # desired: full resource model dump; planned: what will be stored;
    # prior: stored attributes; diff: {field: {"from": .., "to": ..}}
    desired: dict[str, Any] | None = None
    prior: dict[str, Any] | None = None
    planned: dict[str, Any] | None = None
    diff: dict[str, Any] | None = None


def tally(changes: Iterable[ResourceChange]) -> dict[str, int]:
    """Count *changes* per action; every action appears, zero or not."""
    counts = Counter(c.action.value for c in changes)
    return {action.value: counts[action.value] for action in Action}


class Plan(BaseModel):
    metadata: PlanMetadata
    changes: list[ResourceChange]

    def summary(self) -> dict[str, int]:
        return tally(self.changes)

    def save(self, path: Path) -> None:
        """Write the plan as sorted, indented JSON (for ``apply PLAN_FILE``)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        body = json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True)
        target.write_text(body + "\n", encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> Plan:
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


class ApplyResult(BaseModel):
    """Changes that completed, in execution order."""

    applied: list[ResourceChange] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return tally(self.applied)
