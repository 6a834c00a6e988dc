"""Dependency ordering for plan and apply."""

from __future__ import annotations

import heapq
from collections import defaultdict
from typing import TYPE_CHECKING

from azure_provisioner.engine.errors import DependencyCycleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class DependencyGraph:
    """Directed graph of addresses; an edge points from a node to what it needs first.

    Edges to nodes outside the graph are dropped, so callers can pass the full
    ``depends_on`` list of a resource even when some targets are not part of
    the current operation.
    """

    def __init__(
        self,
        nodes: Iterable[str],
        dependencies: Mapping[str, Iterable[str]],
        priorities: Mapping[str, int] | None = None,
    ) -> None:
        self._nodes = frozenset(nodes)
        self._priorities = dict(priorities or {})
        self._needs: dict[str, frozenset[str]] = {
            node: frozenset(d for d in dependencies.get(node, ()) if d in self._nodes)
            for node in self._nodes
        }

    def _key(self, node: str) -> tuple[int, str]:
        return self._priorities.get(node, 0), node

    def topological_order(self) -> list[str]:
        """Kahn's algorithm; ties broken by priority, then address."""
        remaining = {node: len(needs) for node, needs in self._needs.items()}
        unblocks: dict[str, list[str]] = defaultdict(list)
        for node, needs in self._needs.items():
            for dep in needs:
                unblocks[dep].append(node)

        ready = [self._key(n) for n, count in remaining.items() if count == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for child in unblocks[node]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    heapq.heappush(ready, self._key(child))

        if len(order) < len(self._nodes):
            raise DependencyCycleError(sorted(self._nodes.difference(order)))
        return order

    def reverse_topological_order(self) -> list[str]:
        """Dependents first; used for deletes."""
        return self.topological_order()[::-1]
