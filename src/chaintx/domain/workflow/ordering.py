"""Persistence ordering over entity types (Kahn's algorithm).

Only edges whose endpoints are both in the requested type set count. Nodes
enter the ready queue in the order they reach in-degree zero, so a fixed
registration order always yields the same result.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from .errors import CyclicDependencyError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .relations import RelationGraph
    from .types import EntityTag


def persistence_order[TRecord](
    entity_types: Iterable[EntityTag],
    graph: RelationGraph[TRecord],
) -> list[EntityTag]:
    """Return ``entity_types`` ordered so every parent precedes its children.

    Raises ``CyclicDependencyError`` naming the types that could not be ordered;
    a partial order is never returned.
    """

    nodes = list(dict.fromkeys(entity_types))
    in_degree: dict[EntityTag, int] = dict.fromkeys(nodes, 0)
    dependents: dict[EntityTag, list[EntityTag]] = {node: [] for node in nodes}

    for child_type, relations in graph.items():
        if child_type not in in_degree:
            continue
        for relation in relations:
            if relation.parent_type not in in_degree:
                continue
            dependents[relation.parent_type].append(child_type)
            in_degree[child_type] += 1

    ready = deque(node for node in nodes if in_degree[node] == 0)
    ordered: list[EntityTag] = []
    while ready:
        node = ready.popleft()
        ordered.append(node)
        for dependent in dependents[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    if len(ordered) != len(nodes):
        placed = set(ordered)
        raise CyclicDependencyError(node for node in nodes if node not in placed)
    return ordered
