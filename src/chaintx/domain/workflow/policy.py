"""Conflict policies for duplicate keys and unresolvable parent references."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DuplicateKeyPolicy(StrEnum):
    """How lookup indexing and record correlation treat a repeated key."""

    FIRST_WINS = "first_wins"
    REJECT = "reject"


class UnresolvedParentPolicy(StrEnum):
    """What backfill does when a referenced parent has no generated id yet."""

    SKIP = "skip"
    FAIL = "fail"


@dataclass(frozen=True, slots=True)
class WorkflowSettings:
    """Policy choices applied by one workflow engine."""

    duplicate_keys: DuplicateKeyPolicy = DuplicateKeyPolicy.FIRST_WINS
    unresolved_parents: UnresolvedParentPolicy = UnresolvedParentPolicy.SKIP
