"""Lifecycle phases of one workflow run."""

from __future__ import annotations

from enum import StrEnum


class WorkflowPhase(StrEnum):
    DECLARING = "declaring"
    PRE_FETCHING = "pre_fetching"
    BUILDING = "building"
    ORDERING = "ordering"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self in _RUNNING


_RUNNING = frozenset(
    {
        WorkflowPhase.PRE_FETCHING,
        WorkflowPhase.BUILDING,
        WorkflowPhase.ORDERING,
        WorkflowPhase.PERSISTING,
    }
)
