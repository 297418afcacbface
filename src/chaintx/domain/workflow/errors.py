"""Error kinds raised by the workflow engine."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from .types import tag_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .types import EntityTag, SourceKey


class WorkflowError(RuntimeError):
    """Base class for all workflow engine failures."""


class WorkflowStateError(WorkflowError):
    """Raised when the engine is used against its lifecycle contract."""


class CyclicDependencyError(WorkflowError):
    """Raised when the bound entity types cannot be put into persistence order."""

    def __init__(self, unresolved: Iterable[EntityTag]) -> None:
        self.unresolved: tuple[EntityTag, ...] = tuple(unresolved)
        names = ", ".join(tag_name(entity_type) for entity_type in self.unresolved)
        super().__init__(f"Cyclic dependency detected among entity types: {names}")


class MissingSourceKeyExtractorError(WorkflowError):
    """Raised when a relation names a child type that was never registered via ``build``."""

    def __init__(self, entity_type: EntityTag) -> None:
        self.entity_type = entity_type
        super().__init__(
            f"No source key extractor registered for {tag_name(entity_type)}; "
            "declare a build step for it before relating it to a parent"
        )


class DuplicateKeyError(WorkflowError):
    """Raised under the ``reject`` duplicate-key policy when a key is ambiguous."""

    def __init__(self, scope: str, key: SourceKey) -> None:
        self.scope = scope
        self.key = key
        super().__init__(f"Duplicate key {key!r} in {scope}")


class UnresolvedParentError(WorkflowError):
    """Raised under the ``fail`` unresolved-parent policy when a parent id is unavailable."""

    def __init__(self, relation_name: str, child_key: SourceKey, parent_key: SourceKey) -> None:
        self.relation_name = relation_name
        self.child_key = child_key
        self.parent_key = parent_key
        super().__init__(
            f"Relation '{relation_name}': no generated id available for parent key "
            f"{parent_key!r} (child key {child_key!r})"
        )


class ExecutionFailedError(WorkflowError):
    """Wraps an exception raised by a caller-supplied callable during a run.

    The original exception is chained as ``__cause__`` and exposed as ``cause``.
    """

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        entity_type: EntityTag | None = None,
    ) -> None:
        self.phase = phase
        self.entity_type = entity_type
        super().__init__(message)

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


@contextmanager
def callable_failures(
    message: str,
    *,
    phase: str | None = None,
    entity_type: EntityTag | None = None,
) -> Iterator[None]:
    """Re-raise exceptions from caller-supplied callables as ``ExecutionFailedError``.

    Engine errors pass through untouched.
    """

    try:
        yield
    except WorkflowError:
        raise
    except Exception as exc:
        raise ExecutionFailedError(
            f"{message}: {exc}", phase=phase, entity_type=entity_type
        ) from exc
