"""Dependency-ordered import workflows.

Flat source records are turned into typed entities, ordered by their declared
parent/child relations and persisted type by type, with parent-generated ids
back-filled into children before the children are saved.
"""

from __future__ import annotations

from .context import WorkflowContext
from .engine import PersistenceBinding, WorkflowEngine, WorkflowResult
from .errors import (
    CyclicDependencyError,
    DuplicateKeyError,
    ExecutionFailedError,
    MissingSourceKeyExtractorError,
    UnresolvedParentError,
    WorkflowError,
    WorkflowStateError,
)
from .ordering import persistence_order
from .phases import WorkflowPhase
from .policy import DuplicateKeyPolicy, UnresolvedParentPolicy, WorkflowSettings
from .relations import Relation, RelationGraph
from .steps import BuildStep, LookupStep, WorkflowStep

__all__ = [
    "BuildStep",
    "CyclicDependencyError",
    "DuplicateKeyError",
    "DuplicateKeyPolicy",
    "ExecutionFailedError",
    "LookupStep",
    "MissingSourceKeyExtractorError",
    "PersistenceBinding",
    "Relation",
    "RelationGraph",
    "UnresolvedParentError",
    "UnresolvedParentPolicy",
    "WorkflowContext",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowPhase",
    "WorkflowResult",
    "WorkflowSettings",
    "WorkflowStateError",
    "WorkflowStep",
    "persistence_order",
]
