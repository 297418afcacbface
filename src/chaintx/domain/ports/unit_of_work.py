"""Unit-of-work abstractions used for transactional workflow runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType


@runtime_checkable
class UnitOfWork(Protocol):
    """Transaction boundary that rolls back when its block raises."""

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class TransactionRunner(Protocol):
    """Run ``work`` with commit-on-success / rollback-on-error semantics."""

    def __call__[TResult](self, work: Callable[[], TResult], /) -> TResult: ...


def run_in_unit_of_work(factory: Callable[[], UnitOfWork]) -> TransactionRunner:
    """Adapt a unit-of-work factory into a ``TransactionRunner``.

    Each call opens a fresh unit of work, commits after ``work`` returns, and
    relies on ``__exit__`` to roll back when ``work`` raises.
    """

    def runner[TResult](work: Callable[[], TResult], /) -> TResult:
        with factory() as uow:
            result = work()
            uow.commit()
        return result

    return runner
