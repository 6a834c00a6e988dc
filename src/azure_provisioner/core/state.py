"""Local state file: what azure-provisioner believes exists in the subscription."""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def canonical_json(obj: Any) -> str:
    """Compact, key-sorted JSON; non-JSON values (datetimes, paths) go through ``str``."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def sha256_hex(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compute_attributes_hash(attrs: Mapping[str, Any]) -> str:
    """Hash of stored attributes, independent of key order."""
    return sha256_hex(canonical_json(attrs))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResourceInstance(BaseModel):
    """One managed Azure object as recorded after the last apply, refresh or import.

    ``attributes["id"]`` is the importable identifier: ``"<role id>|<scope>"``
    for role definitions, the ARM resource ID for administrator bindings.
    ``schema_version`` records the layout of ``attributes`` so older state
    files can be migrated when loaded.
    """

    address: str
    resource_type: str
    name: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    attributes_hash: str = ""
    dependencies: list[str] = Field(default_factory=list)
    schema_version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def resource_id(self) -> str:
        return str(self.attributes.get("id", ""))

    def set_attributes(self, attrs: dict[str, Any], *, touch: bool = True) -> bool:
        """Replace the stored attributes; return whether anything changed.

        ``updated_at`` moves only on a real change and only when *touch* is set.
        """
        new_hash = compute_attributes_hash(attrs)
        if attrs == self.attributes and new_hash == self.attributes_hash:
            return False
        self.attributes = attrs
        self.attributes_hash = new_hash
        if touch:
            self.updated_at = _utcnow()
        return True


def _write_atomic(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        tmp.replace(path)
    finally:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()


class State(BaseModel):
    """Contents of ``.azure-state.json``.

    ``serial`` increases with every write; ``lineage`` is fixed when the file
    is first created. Both feed the stale-plan check, together with the
    per-instance attribute hashes.
    """

    version: int = 1
    subscription_id: str
    serial: int = 0
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resources: dict[str, ResourceInstance] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)

    def save(self, path: Path) -> None:
        """Write the state atomically, keeping the previous file as ``<path>.backup``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with contextlib.suppress(FileNotFoundError):
            Path(f"{path}.backup").write_bytes(path.read_bytes())
        body = json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True)
        _write_atomic(path, body + "\n")
        logger.debug("Wrote state serial=%d to %s", self.serial, path)

    def commit(self, path: Path) -> None:
        """Bump ``serial`` and save."""
        self.serial += 1
        self.save(path)

    @classmethod
    def load(cls, path: Path) -> State:
        state = cls.model_validate_json(path.read_text(encoding="utf-8"))
        logger.debug("Read state serial=%d from %s", state.serial, path)
        return state

    @classmethod
    def load_or_create(cls, path: Path, subscription_id: str) -> State:
        """Read *path*, or start an empty state for *subscription_id* if it is absent."""
        if path.exists():
            return cls.load(path)
        logger.debug("No state at %s; starting empty for subscription %s", path, subscription_id)
        return cls(subscription_id=subscription_id)


def compute_state_digest(state: State) -> str:
    """Fingerprint of the state used to detect plans computed against older state.

    Timestamps are left out: a refresh that only moves ``updated_at`` does not
    invalidate a saved plan.
    """
    digestable = {
        "version": state.version,
        "subscription_id": state.subscription_id,
        "lineage": state.lineage,
        "serial": state.serial,
        "resources": [
            {
                "address": address,
                "resource_type": inst.resource_type,
                "name": inst.name,
                "attributes_hash": inst.attributes_hash,
                "dependencies": sorted(inst.dependencies),
                "schema_version": inst.schema_version,
            }
            for address, inst in sorted(state.resources.items())
        ],
    }
    return sha256_hex(canonical_json(digestable))
