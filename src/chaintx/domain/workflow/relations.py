"""Relation edges between entity types and the edge map they form.

A relation states that entities of ``child_type`` carry a foreign identifier
generated when ``parent_type`` is persisted. The parent instance is located by
applying ``parent_key`` to the same source record that produced the child.
Registration never validates anything; the engine checks the graph at run time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .types import tag_name

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .types import EntityTag, IdSetter, KeyExtractor


@dataclass(frozen=True, slots=True)
class Relation[TRecord]:
    """Immutable descriptor of one directed dependency ``child_type -> parent_type``."""

    child_type: EntityTag
    parent_type: EntityTag
    id_setter: IdSetter
    parent_key: KeyExtractor[TRecord]
    name: str = ""

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return f"{tag_name(self.child_type)}->{tag_name(self.parent_type)}"


def _new_edge_map() -> dict[Any, list[Relation[Any]]]:
    return {}


@dataclass(slots=True)
class RelationGraph[TRecord]:
    """Edge map ``child type -> relations``, kept in registration order."""

    _relations_by_child: dict[EntityTag, list[Relation[TRecord]]] = field(
        default_factory=_new_edge_map, repr=False
    )

    def add(self, relation: Relation[TRecord]) -> None:
        self._relations_by_child.setdefault(relation.child_type, []).append(relation)

    def relations_for(self, child_type: EntityTag) -> tuple[Relation[TRecord], ...]:
        return tuple(self._relations_by_child.get(child_type, ()))

    def children(self) -> tuple[EntityTag, ...]:
        return tuple(self._relations_by_child)

    def items(self) -> Iterator[tuple[EntityTag, tuple[Relation[TRecord], ...]]]:
        for child_type, relations in self._relations_by_child.items():
            yield child_type, tuple(relations)

    def __iter__(self) -> Iterator[Relation[TRecord]]:
        for relations in self._relations_by_child.values():
            yield from relations

    def __len__(self) -> int:
        return sum(len(relations) for relations in self._relations_by_child.values())
