"""
inventory_services.unit_of_work -- Transaction runner for sales and returns.

Responsibility:
    Runs one operation in its own session and transaction: applies the
    configured lock/statement timeouts, enforces the overall time budget,
    translates SQLAlchemy errors into the kernel's typed exceptions, and
    retries lost races with a fresh session.

Architecture position:
    Services -- stateful orchestration over kernel services.

Invariants enforced:
    - All or nothing: the operation runs inside ``session.begin()``; any
      exception rolls the whole transaction back before it propagates.
    - Only ConcurrencyConflictError is retried, at most
      ``conflict_retries`` times, each attempt in a fresh session (and so a
      fresh snapshot).  Validation and stock errors are never retried.
    - A unit of work that exceeds ``unit_of_work_timeout_seconds`` is rolled
      back and reported as UnitOfWorkTimeoutError, even if its SQL
      succeeded.

Failure modes:
    - ConcurrencyConflictError after the retries are spent (includes
      PostgreSQL deadlocks and serialization failures).
    - UnitOfWorkTimeoutError on time budget, lock or statement timeout, or a
      SQLite busy timeout.
    - PersistenceError for any other database error (logged, not retried).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import LedgerConfig
from inventory_kernel.exceptions import (
    ConcurrencyConflictError,
    InventoryError,
    PersistenceError,
    UnitOfWorkTimeoutError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")

T = TypeVar("T")

# PostgreSQL SQLSTATE codes
_PG_CONFLICT_CODES = frozenset({"40001", "40P01"})  # serialization_failure, deadlock_detected
_PG_TIMEOUT_CODES = frozenset({"55P03", "57014"})  # lock_not_available, query_canceled


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_db_error(
    operation: str,
    exc: SQLAlchemyError,
    elapsed_seconds: float,
    limit_seconds: float,
) -> InventoryError:
    """Map a SQLAlchemy error to the kernel exception a caller should see."""
    if isinstance(exc, DBAPIError):
        code = _sqlstate(exc)
        if code in _PG_CONFLICT_CODES:
            return ConcurrencyConflictError("transaction", operation, f"database reported {code}")
        if code in _PG_TIMEOUT_CODES:
            return UnitOfWorkTimeoutError(operation, elapsed_seconds, limit_seconds)
        if "database is locked" in str(exc.orig).lower():
            return UnitOfWorkTimeoutError(operation, elapsed_seconds, limit_seconds)
    detail = str(exc.orig) if isinstance(exc, DBAPIError) else str(exc)
    return PersistenceError(operation, detail.splitlines()[0] if detail else type(exc).__name__)


class UnitOfWork:
    """
    Runs callables transactionally with retry, timeout and error translation.

    Usage:
        uow = UnitOfWork(session_factory, config)
        receipt = uow.run("finalize_sale", lambda session: ...)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: LedgerConfig,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._config = config
        self._timer = timer

    def run(
        self,
        operation: str,
        work: Callable[[Session], T],
        retry_conflicts: bool = True,
    ) -> T:
        attempts = (self._config.conflict_retries if retry_conflicts else 0) + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._run_once(operation, work)
            except ConcurrencyConflictError as exc:
                if attempt >= attempts:
                    logger.warning(
                        "unit_of_work_conflict_exhausted",
                        extra={"operation": operation, "attempts": attempt, "detail": str(exc)},
                    )
                    raise
                logger.info(
                    "unit_of_work_conflict_retry",
                    extra={"operation": operation, "attempt": attempt, "detail": str(exc)},
                )
        raise AssertionError("unreachable")

    def _run_once(self, operation: str, work: Callable[[Session], T]) -> T:
        limit = float(self._config.unit_of_work_timeout_seconds)
        session = self._session_factory()
        started = self._timer()
        try:
            with session.begin():
                self._apply_timeouts(session, limit)
                result = work(session)
                elapsed = self._timer() - started
                if elapsed > limit:
                    raise UnitOfWorkTimeoutError(operation, elapsed, limit)
            return result
        except UnitOfWorkTimeoutError as exc:
            logger.warning(
                "unit_of_work_timeout",
                extra={
                    "operation": operation,
                    "elapsed_seconds": exc.elapsed_seconds,
                    "limit_seconds": limit,
                },
            )
            raise
        except SQLAlchemyError as exc:
            translated = translate_db_error(operation, exc, self._timer() - started, limit)
            if isinstance(translated, PersistenceError):
                logger.error(
                    "persistence_error",
                    extra={"operation": operation, "error_type": type(exc).__name__},
                    exc_info=True,
                )
            raise translated from exc
        finally:
            session.close()

    @staticmethod
    def _apply_timeouts(session: Session, limit_seconds: float) -> None:
        if session.get_bind().dialect.name != "postgresql":
            return
        millis = max(1, int(limit_seconds * 1000))
        session.execute(text(f"SET LOCAL lock_timeout = {millis}"))
        session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
