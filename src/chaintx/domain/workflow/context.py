"""Run-scoped state shared by the workflow steps."""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from .types import EntityTag, SourceKey


_EMPTY: Mapping[Any, Any] = MappingProxyType({})


class WorkflowContext[TRecord]:
    """Source records, pre-fetched lookup tables and the built-entity registry.

    The registry holds at most one entity per ``(entity type, source key)``;
    ``register_built`` is an atomic insert-if-absent so steps may populate the
    context from several threads even though the engine itself is sequential.
    Subclass it to carry extra per-run state and hand the engine a factory.
    """

    def __init__(self, records: Iterable[TRecord]) -> None:
        self.records: tuple[TRecord, ...] = tuple(records)
        self._lookups: dict[str, dict[Any, Any]] = {}
        self._built: dict[EntityTag, dict[SourceKey, Any]] = {}
        self._lock = threading.RLock()

    # lookups -----------------------------------------------------------------

    def get_lookup(self, name: str) -> Mapping[Any, Any]:
        """Return the lookup table ``name``; never-populated tables read as empty."""

        with self._lock:
            table = self._lookups.get(name)
        if table is None:
            return _EMPTY
        return MappingProxyType(table)

    def put_lookup(self, name: str, table: Mapping[Any, Any]) -> None:
        with self._lock:
            self._lookups[name] = dict(table)

    def lookup_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._lookups)

    # built entities ----------------------------------------------------------

    def register_built(self, entity_type: EntityTag, key: SourceKey, entity: object) -> bool:
        """Store ``entity`` unless ``key`` is already taken; return whether it was stored."""

        with self._lock:
            bucket = self._built.setdefault(entity_type, {})
            if key in bucket:
                return False
            bucket[key] = entity
            return True

    def has_built(self, entity_type: EntityTag, key: SourceKey) -> bool:
        with self._lock:
            return key in self._built.get(entity_type, _EMPTY)

    def get_built(self, entity_type: EntityTag, key: SourceKey) -> Any | None:
        with self._lock:
            return self._built.get(entity_type, _EMPTY).get(key)

    def built(self, entity_type: EntityTag) -> Mapping[SourceKey, Any]:
        """Return a snapshot of ``entity_type``'s registry in build order."""

        with self._lock:
            return MappingProxyType(dict(self._built.get(entity_type, _EMPTY)))

    def built_entities(self, entity_type: EntityTag) -> list[Any]:
        with self._lock:
            return list(self._built.get(entity_type, _EMPTY).values())

    def built_types(self) -> tuple[EntityTag, ...]:
        with self._lock:
            return tuple(self._built)

    def __repr__(self) -> str:
        with self._lock:
            counts = {entity_type: len(bucket) for entity_type, bucket in self._built.items()}
        return f"{type(self).__name__}(records={len(self.records)}, built={counts})"


type ContextFactory[TRecord, TContext: WorkflowContext[Any]] = Callable[
    [Sequence[TRecord]], TContext
]
