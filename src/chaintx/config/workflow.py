"""Workflow policy defaults loaded from the environment."""

from __future__ import annotations

from typing import Final

from chaintx.domain.workflow.policy import (
    DuplicateKeyPolicy,
    UnresolvedParentPolicy,
    WorkflowSettings,
)

from .env import optional_enum_env

DUPLICATE_KEYS_ENV: Final[str] = "CHAINTX_DUPLICATE_KEYS"
UNRESOLVED_PARENTS_ENV: Final[str] = "CHAINTX_UNRESOLVED_PARENTS"


def get_workflow_settings() -> WorkflowSettings:
    defaults = WorkflowSettings()
    return WorkflowSettings(
        duplicate_keys=optional_enum_env(
            DUPLICATE_KEYS_ENV, DuplicateKeyPolicy, defaults.duplicate_keys
        ),
        unresolved_parents=optional_enum_env(
            UNRESOLVED_PARENTS_ENV, UnresolvedParentPolicy, defaults.unresolved_parents
        ),
    )
