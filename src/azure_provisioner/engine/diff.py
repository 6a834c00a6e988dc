"""Desired-vs-stored comparison used to classify plan changes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azure_provisioner.core.state import canonical_json, sha256_hex

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from azure_provisioner.resources.base import Resource
    from azure_provisioner.resources.markers import CompareStrategy

# Never part of a resource's stored attributes.
ENGINE_FIELDS = frozenset({"address", "depends_on"})


def values_differ(desired: Any, prior: Any, *, strategy: CompareStrategy | None = None) -> bool:
    """Return True when *desired* would change the stored *prior* value.

    ``"set"`` compares lists ignoring order and duplicates, ``"exact"`` is
    plain equality. The default (``None`` / ``"partial"``) treats dicts as
    patches: keys Azure adds on its own side are not a difference.
    """
    match strategy:
        case "set" if isinstance(desired, list) and isinstance(prior, list):
            return set(map(canonical_json, desired)) != set(map(canonical_json, prior))
        case "set" | "exact":
            return desired != prior
    if isinstance(desired, dict) and isinstance(prior, dict):
        return any(values_differ(v, prior.get(k)) for k, v in desired.items())
    return desired != prior


def planned_attributes(resource: Resource) -> dict[str, Any]:
    """The attributes *resource* should end up with, without engine-only fields."""
    return resource.model_dump(exclude_none=True, exclude=set(ENGINE_FIELDS))


def diff_attributes(
    planned: Mapping[str, Any],
    prior: Mapping[str, Any],
    strategies: Mapping[str, CompareStrategy],
) -> dict[str, dict[str, Any]]:
    """``{field: {"from": stored, "to": desired}}`` for every field that differs."""
    return {
        key: {"from": prior.get(key), "to": value}
        for key, value in planned.items()
        if values_differ(value, prior.get(key), strategy=strategies.get(key))
    }


def config_digest(resources: Iterable[Resource]) -> str:
    """Order-independent fingerprint of the declared configuration."""
    entries = sorted(
        (
            {
                "address": r.address,
                "resource_type": r.resource_type,
                "planned": planned_attributes(r),
            }
            for r in resources
        ),
        key=lambda e: e["address"],
    )
    return sha256_hex(canonical_json(entries))
