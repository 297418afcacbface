"""Pre-fetch and build steps executed by the workflow engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from .errors import DuplicateKeyError, callable_failures
from .phases import WorkflowPhase
from .policy import DuplicateKeyPolicy
from .types import tag_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .context import WorkflowContext
    from .types import EntityTag, KeyExtractor, KeysExtractor

log = logging.getLogger(__name__)


class WorkflowStep[TContext](Protocol):
    """Contract implemented by every declared step."""

    name: str

    def run(self, context: TContext) -> None: ...


@dataclass(slots=True)
class LookupStep[TRecord]:
    """Batch-fetch the entities referenced by the records into a named lookup table.

    ``keys_extractor`` sees the whole record collection at once, so the fetcher is
    called a single time with every distinct key instead of once per record.
    """

    cache_name: str
    keys_extractor: KeysExtractor[TRecord]
    fetcher: Callable[[set[Any]], Iterable[Any]]
    entity_key: Callable[[Any], Any]
    duplicate_keys: DuplicateKeyPolicy = DuplicateKeyPolicy.FIRST_WINS
    name: str = field(init=False)

    def __post_init__(self) -> None:
        self.name = f"lookup:{self.cache_name}"

    def run(self, context: WorkflowContext[TRecord]) -> None:
        phase = WorkflowPhase.PRE_FETCHING
        with callable_failures(f"Key extraction for lookup '{self.cache_name}' failed", phase=phase):
            keys = self.keys_extractor(context.records)
        if not keys:
            log.debug("Lookup '%s' has no keys; fetcher not called", self.cache_name)
            return

        with callable_failures(f"Fetching lookup '{self.cache_name}' failed", phase=phase):
            key_set = set(keys)
            entities = list(self.fetcher(key_set))
            table = self._index(entities)

        context.put_lookup(self.cache_name, table)
        log.debug(
            "Lookup '%s': requested %d keys, indexed %d entities",
            self.cache_name,
            len(key_set),
            len(table),
        )

    def _index(self, entities: list[Any]) -> dict[Any, Any]:
        table: dict[Any, Any] = {}
        for entity in entities:
            key = self.entity_key(entity)
            if key in table:
                if self.duplicate_keys is DuplicateKeyPolicy.REJECT:
                    raise DuplicateKeyError(f"lookup '{self.cache_name}'", key)
                continue
            table[key] = entity
        return table


@dataclass(slots=True)
class BuildStep[TRecord, TContext: WorkflowContext[Any]]:
    """Construct at most one in-memory entity per distinct source key.

    Records are visited in their original order. A ``None`` key skips the record,
    an already registered key skips it too (first record wins), and a builder
    returning ``None`` means the entity is already satisfied elsewhere (typically
    by a lookup table) so nothing is registered.
    """

    entity_type: EntityTag
    source_key: KeyExtractor[TRecord]
    builder: Callable[[TRecord, TContext], Any]
    name: str = field(init=False)

    def __post_init__(self) -> None:
        self.name = f"build:{tag_name(self.entity_type)}"

    def run(self, context: TContext) -> None:
        built = 0
        with callable_failures(
            f"Build step for {tag_name(self.entity_type)} failed",
            phase=WorkflowPhase.BUILDING,
            entity_type=self.entity_type,
        ):
            for record in context.records:
                key = self.source_key(record)
                if key is None or context.has_built(self.entity_type, key):
                    continue
                entity = self.builder(record, context)
                if entity is None:
                    continue
                if context.register_built(self.entity_type, key, entity):
                    built += 1
        log.debug("Built %d %s entities", built, tag_name(self.entity_type))
