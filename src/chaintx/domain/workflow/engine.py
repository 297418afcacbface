"""Workflow engine: turn flat records into entities persisted in dependency order.

Callers declare steps with the chained methods and finish with one terminal call:

    result = (
        WorkflowEngine(rows)
        .lookup("countries", country_codes, countries.get_many, attrgetter("code"))
        .build(Country, attrgetter("country"), build_country)
        .build(Receiver, attrgetter("receiver"), build_receiver)
        .relate(Receiver, set_country_id, Country, attrgetter("country"), "receiver.country")
        .persist(Country, countries.save_many, attrgetter("id"))
        .persist(Receiver, receivers.save_many, attrgetter("id"))
        .execute(uow.run)
    )

A run goes through pre-fetch, build and ordering, then for each bound type in
order back-fills parent ids into its entities and saves them in one batch. Only
parents persisted earlier in the same run can be back-filled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self, cast

from .context import WorkflowContext
from .errors import (
    DuplicateKeyError,
    ExecutionFailedError,
    MissingSourceKeyExtractorError,
    UnresolvedParentError,
    WorkflowError,
    WorkflowStateError,
    callable_failures,
)
from .ordering import persistence_order
from .phases import WorkflowPhase
from .policy import DuplicateKeyPolicy, UnresolvedParentPolicy, WorkflowSettings
from .relations import Relation, RelationGraph
from .steps import BuildStep, LookupStep
from .types import tag_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from chaintx.domain.ports.unit_of_work import TransactionRunner

    from .types import BatchSaver, EntityTag, IdGetter, IdSetter, KeyExtractor, KeysExtractor

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PersistenceBinding:
    """How one entity type is saved and how its generated id is read back."""

    save_many: BatchSaver
    generated_id: IdGetter


@dataclass(slots=True)
class WorkflowResult[TContext]:
    """Summary of one completed run."""

    persist_order: tuple[EntityTag, ...]
    context: TContext
    persisted: dict[EntityTag, int] = field(default_factory=dict["EntityTag", int])
    backfilled: int = 0

    @property
    def persisted_total(self) -> int:
        return sum(self.persisted.values())


class WorkflowEngine[TRecord, TContext: WorkflowContext[Any]]:
    """Declarative import workflow over one collection of source records."""

    def __init__(
        self,
        records: Iterable[TRecord],
        *,
        context_factory: Callable[[Sequence[TRecord]], TContext] | None = None,
        settings: WorkflowSettings | None = None,
    ) -> None:
        self._records: tuple[TRecord, ...] = tuple(records)
        self._context_factory = context_factory or cast(
            "Callable[[Sequence[TRecord]], TContext]", WorkflowContext
        )
        self._settings = settings or WorkflowSettings()
        self._lookup_steps: list[LookupStep[TRecord]] = []
        self._build_steps: list[BuildStep[TRecord, TContext]] = []
        self._source_keys: dict[EntityTag, KeyExtractor[TRecord]] = {}
        self._relations: RelationGraph[TRecord] = RelationGraph()
        self._bindings: dict[EntityTag, PersistenceBinding] = {}
        self._phase = WorkflowPhase.DECLARING

    # introspection -----------------------------------------------------------

    @property
    def phase(self) -> WorkflowPhase:
        return self._phase

    @property
    def records(self) -> tuple[TRecord, ...]:
        return self._records

    @property
    def settings(self) -> WorkflowSettings:
        return self._settings

    @property
    def relations(self) -> RelationGraph[TRecord]:
        return self._relations

    @property
    def bound_types(self) -> tuple[EntityTag, ...]:
        return tuple(self._bindings)

    def persist_order(self) -> list[EntityTag]:
        """Compute the persistence order of the bound types without running anything."""

        return persistence_order(self._bindings, self._relations)

    # declarations ------------------------------------------------------------

    def lookup(
        self,
        cache_name: str,
        keys_extractor: KeysExtractor[TRecord],
        fetcher: Callable[[set[Any]], Iterable[Any]],
        entity_key: Callable[[Any], Any],
    ) -> Self:
        """Pre-fetch the entities referenced by the records into lookup ``cache_name``."""

        self._ensure_declarable()
        self._lookup_steps.append(
            LookupStep(
                cache_name=cache_name,
                keys_extractor=keys_extractor,
                fetcher=fetcher,
                entity_key=entity_key,
                duplicate_keys=self._settings.duplicate_keys,
            )
        )
        return self

    def build(
        self,
        entity_type: EntityTag,
        source_key: KeyExtractor[TRecord],
        builder: Callable[[TRecord, TContext], Any],
    ) -> Self:
        """Build ``entity_type`` from the records, one entity per distinct source key.

        ``source_key`` also becomes the key used to correlate built entities
        with their records when back-filling parent ids.
        """

        self._ensure_declarable()
        self._source_keys[entity_type] = source_key
        self._build_steps.append(
            BuildStep(entity_type=entity_type, source_key=source_key, builder=builder)
        )
        return self

    def relate(
        self,
        child_type: EntityTag,
        id_setter: IdSetter,
        parent_type: EntityTag,
        parent_key: KeyExtractor[TRecord],
        name: str = "",
    ) -> Self:
        """Declare that ``child_type`` needs the generated id of ``parent_type``."""

        self._ensure_declarable()
        self._relations.add(
            Relation(
                child_type=child_type,
                parent_type=parent_type,
                id_setter=id_setter,
                parent_key=parent_key,
                name=name,
            )
        )
        return self

    def persist(
        self,
        entity_type: EntityTag,
        save_many: BatchSaver,
        generated_id: IdGetter,
    ) -> Self:
        """Bind ``entity_type`` for persistence; unbound types are never saved."""

        self._ensure_declarable()
        self._bindings[entity_type] = PersistenceBinding(
            save_many=save_many, generated_id=generated_id
        )
        return self

    # terminal operations -----------------------------------------------------

    def execute(self, transaction: TransactionRunner) -> WorkflowResult[TContext]:
        """Run the whole workflow inside ``transaction``.

        ``transaction`` receives a zero-argument unit of work and must commit it on
        success and roll it back when it raises.
        """

        log.debug("Executing workflow within a transaction")
        self._begin()
        try:
            result = transaction(self._run)
        except WorkflowError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            failed_phase = self._phase
            self._fail(exc)
            raise ExecutionFailedError(
                f"Workflow execution failed within transaction: {exc}",
                phase=failed_phase,
            ) from exc
        self._phase = WorkflowPhase.DONE
        return result

    def execute_without_transaction(self) -> WorkflowResult[TContext]:
        """Run the whole workflow with no rollback on failure.

        Types persisted before a failing step stay persisted.
        """

        log.debug("Executing workflow without a transaction")
        self._begin()
        try:
            result = self._run()
        except WorkflowError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            failed_phase = self._phase
            self._fail(exc)
            raise ExecutionFailedError(
                f"Workflow execution failed: {exc}", phase=failed_phase
            ) from exc
        self._phase = WorkflowPhase.DONE
        return result

    # run ---------------------------------------------------------------------

    def _run(self) -> WorkflowResult[TContext]:
        with callable_failures("Creating the workflow context failed"):
            context = self._context_factory(self._records)
        log.info(
            "Starting workflow: records=%d, lookups=%d, builds=%d, relations=%d, bound=%d",
            len(self._records),
            len(self._lookup_steps),
            len(self._build_steps),
            len(self._relations),
            len(self._bindings),
        )

        self._phase = WorkflowPhase.PRE_FETCHING
        for lookup_step in self._lookup_steps:
            lookup_step.run(context)

        self._phase = WorkflowPhase.BUILDING
        for build_step in self._build_steps:
            build_step.run(context)

        self._phase = WorkflowPhase.ORDERING
        order = persistence_order(self._bindings, self._relations)
        self._check_source_keys(order)
        log.info("Persistence order: %s", [tag_name(entity_type) for entity_type in order])

        self._phase = WorkflowPhase.PERSISTING
        result = WorkflowResult(persist_order=tuple(order), context=context)
        processed: set[EntityTag] = set()
        for entity_type in order:
            result.backfilled += self._backfill(context, entity_type, processed)
            result.persisted[entity_type] = self._save(context, entity_type)
            processed.add(entity_type)

        log.info(
            "Finished workflow: persisted=%d, backfilled=%d",
            result.persisted_total,
            result.backfilled,
        )
        return result

    def _check_source_keys(self, order: Iterable[EntityTag]) -> None:
        for entity_type in order:
            if self._relations.relations_for(entity_type) and entity_type not in self._source_keys:
                raise MissingSourceKeyExtractorError(entity_type)

    def _backfill(
        self,
        context: TContext,
        entity_type: EntityTag,
        processed: set[EntityTag],
    ) -> int:
        relations = self._relations.relations_for(entity_type)
        if not relations:
            return 0
        dependents = context.built(entity_type)
        if not dependents:
            return 0

        source_key = self._source_keys.get(entity_type)
        if source_key is None:
            raise MissingSourceKeyExtractorError(entity_type)
        with callable_failures(
            f"Correlating records with {tag_name(entity_type)} entities failed",
            phase=WorkflowPhase.PERSISTING,
            entity_type=entity_type,
        ):
            records_by_key = _index_records(context.records, source_key)

        filled = 0
        for relation in relations:
            binding = (
                self._bindings.get(relation.parent_type)
                if relation.parent_type in processed
                else None
            )
            with callable_failures(
                f"Back-filling relation '{relation.label}' failed",
                phase=WorkflowPhase.PERSISTING,
                entity_type=entity_type,
            ):
                filled += self._apply_relation(
                    context, relation, binding, dependents, records_by_key
                )
        return filled

    def _apply_relation(
        self,
        context: TContext,
        relation: Relation[TRecord],
        binding: PersistenceBinding | None,
        dependents: Mapping[Any, Any],
        records_by_key: Mapping[Any, list[TRecord]],
    ) -> int:
        filled = 0
        for child_key, child in dependents.items():
            records = records_by_key.get(child_key)
            if not records:
                continue
            parent_key = self._parent_key_for(relation, child_key, records)
            if parent_key is None:
                continue

            parent_id = None
            if binding is not None:
                parent = context.get_built(relation.parent_type, parent_key)
                if parent is not None:
                    parent_id = binding.generated_id(parent)
            if parent_id is None:
                if self._settings.unresolved_parents is UnresolvedParentPolicy.FAIL:
                    raise UnresolvedParentError(relation.label, child_key, parent_key)
                continue

            relation.id_setter(child, parent_id)
            filled += 1
            log.debug(
                "  -> Back-filling id %s from %s (key: %s) to %s (key: %s) via relation '%s'",
                parent_id,
                tag_name(relation.parent_type),
                parent_key,
                tag_name(relation.child_type),
                child_key,
                relation.label,
            )
        return filled

    def _parent_key_for(
        self,
        relation: Relation[TRecord],
        child_key: Any,
        records: list[TRecord],
    ) -> Any:
        parent_key = relation.parent_key(records[0])
        if self._settings.duplicate_keys is DuplicateKeyPolicy.REJECT:
            for record in records[1:]:
                if relation.parent_key(record) != parent_key:
                    raise DuplicateKeyError(
                        f"records of {tag_name(relation.child_type)} for relation "
                        f"'{relation.label}' (conflicting parent keys)",
                        child_key,
                    )
        return parent_key

    def _save(self, context: TContext, entity_type: EntityTag) -> int:
        entities = context.built_entities(entity_type)
        if not entities:
            log.debug("No %s entities to persist", tag_name(entity_type))
            return 0

        binding = self._bindings[entity_type]
        log.debug("Persisting %d entities of type %s", len(entities), tag_name(entity_type))
        with callable_failures(
            f"Persisting {tag_name(entity_type)} failed",
            phase=WorkflowPhase.PERSISTING,
            entity_type=entity_type,
        ):
            binding.save_many(entities)
        log.debug("Persisted %d entities of type %s", len(entities), tag_name(entity_type))
        return len(entities)

    # lifecycle ---------------------------------------------------------------

    def _ensure_declarable(self) -> None:
        if self._phase.is_running:
            raise WorkflowStateError(f"Cannot declare steps while the workflow is {self._phase}")

    def _begin(self) -> None:
        if self._phase.is_running:
            raise WorkflowStateError("Workflow is already running")
        self._phase = WorkflowPhase.DECLARING

    def _fail(self, exc: BaseException) -> None:
        log.error("Workflow failed during %s: %s", self._phase, exc)
        self._phase = WorkflowPhase.FAILED


def _index_records[TRecord](
    records: Iterable[TRecord],
    source_key: KeyExtractor[TRecord],
) -> dict[Any, list[TRecord]]:
    """Group records by source key in record order; the first record of a group wins."""

    index: dict[Any, list[TRecord]] = {}
    for record in records:
        key = source_key(record)
        if key is None:
            continue
        index.setdefault(key, []).append(record)
    return index
