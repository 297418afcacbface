"""Ports the workflow engine's callables are usually bound to."""

from __future__ import annotations

from .persistence import BatchRepository
from .unit_of_work import TransactionRunner, UnitOfWork, run_in_unit_of_work

__all__ = ["BatchRepository", "TransactionRunner", "UnitOfWork", "run_in_unit_of_work"]
