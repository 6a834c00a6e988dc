"""Declarative field markers for resource models.

``Compare`` attaches to a Pydantic field via ``Annotated`` and tells the
engine how to diff the desired value against the stored one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

CompareStrategy: TypeAlias = Literal["partial", "exact", "set"]


@dataclass(frozen=True, slots=True)
class Compare:
    """Comparison used when planning an update for the annotated field.

    * ``partial`` (default): dict keys present only on the Azure side are ignored
    * ``exact``: plain equality
    * ``set``: list order and duplicates are ignored
    """

    strategy: CompareStrategy


def _find_compare(field_info: FieldInfo) -> Compare | None:
    return next((m for m in field_info.metadata if isinstance(m, Compare)), None)


def collect_compare_strategies(resource_or_cls: Any) -> dict[str, CompareStrategy]:
    """Map field name to strategy for every field annotated with ``Compare``."""
    cls = resource_or_cls if isinstance(resource_or_cls, type) else type(resource_or_cls)
    strategies: dict[str, CompareStrategy] = {}
    for name, fi in cls.model_fields.items():
        marker = _find_compare(fi)
        if marker is not None:
            strategies[name] = marker.strategy
    return strategies
