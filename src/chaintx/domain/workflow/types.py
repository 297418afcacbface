"""Shared type aliases for the workflow engine."""

from __future__ import annotations

from collections.abc import Callable, Collection, Hashable, Sequence
from typing import Any

type EntityTag = Hashable
"""Stable token naming one kind of built entity (usually the entity class)."""

type SourceKey = Hashable
type KeyExtractor[TRecord] = Callable[[TRecord], Any]
type KeysExtractor[TRecord] = Callable[[Sequence[TRecord]], Collection[Any] | None]
type IdSetter = Callable[[Any, Any], object]
type IdGetter = Callable[[Any], Any]
type BatchSaver = Callable[[list[Any]], object]


def tag_name(entity_type: EntityTag) -> str:
    """Return a readable name for ``entity_type`` for logs and error messages."""

    name = getattr(entity_type, "__name__", None)
    if isinstance(name, str):
        return name
    return str(entity_type)
