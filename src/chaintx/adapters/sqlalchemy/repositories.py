"""Batched repositories backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from sqlalchemy.orm import Session

log = logging.getLogger(__name__)


class SqlAlchemyBatchRepository[TEntity, TKey]:
    """Fetch mapped entities by a natural key and save them in batches.

    ``save_many`` flushes, so database-generated primary keys are populated on the
    saved instances before the surrounding transaction commits.
    """

    def __init__(self, session: Session, entity_cls: type[TEntity], key_attribute: str) -> None:
        self.session = session
        self._entity_cls = entity_cls
        self._key_attribute = key_attribute

    @property
    def entity_cls(self) -> type[TEntity]:
        return self._entity_cls

    def get_many(self, keys: Collection[TKey]) -> list[TEntity]:
        if not keys:
            return []
        column: Any = getattr(self._entity_cls, self._key_attribute)
        stmt = select(self._entity_cls).where(column.in_(list(keys)))
        return list(self.session.execute(stmt).scalars().all())

    def get(self, key: TKey) -> TEntity | None:
        found = self.get_many([key])
        return found[0] if found else None

    def save_many(self, entities: Sequence[TEntity]) -> None:
        self.session.add_all(entities)
        self.session.flush()
        log.debug("Flushed %d %s rows", len(entities), self._entity_cls.__name__)

    def count(self) -> int:
        stmt = select(func.count()).select_from(self._entity_cls)
        return self.session.execute(stmt).scalar_one()


if TYPE_CHECKING:
    from chaintx.domain.ports.persistence import BatchRepository

    def _repository_check(session: Session) -> BatchRepository[object, str]:
        return SqlAlchemyBatchRepository[object, str](session, object, "key")
