"""Ports for batched entity stores."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence


@runtime_checkable
class BatchRepository[TEntity, TKey](Protocol):
    """Store offering the batched calls a workflow needs.

    ``get_many`` serves as a lookup fetcher and ``save_many`` as a persistence
    binding; after ``save_many`` returns, generated ids must be readable from
    the saved entities.
    """

    def get_many(self, keys: Collection[TKey]) -> list[TEntity]: ...

    def save_many(self, entities: Sequence[TEntity]) -> None: ...
