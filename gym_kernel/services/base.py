"""
BaseService -- abstract base for the lifecycle services.

Responsibility:
    Common constructor and transaction-boundary handling for every service
    in ``gym_kernel.services``.  A service composes gateways, applies the
    business rules and owns the unit of work for each public operation.

Architecture position:
    Kernel > Services -- imperative shell.  May import from gateways/,
    selectors/, domain/, db/ and exceptions.  Nothing in the kernel imports
    from services/.

Invariants enforced:
    - With ``auto_commit=True`` (default) each completed operation commits
      and any failure rolls the session back before the error propagates.
    - With ``auto_commit=False`` the service only flushes; the caller owns
      commit/rollback (``session_scope()`` or a test harness).
    - Every write operation runs under a fresh correlation id bound into
      ``LogContext`` and logs ``<operation>_completed`` with its duration.
    - Read operations end their transaction under ``auto_commit`` so a
      reader never holds the SQLite write lock taken by BEGIN IMMEDIATE.

Failure modes:
    - Domain errors (``GymKernelError``) are logged at WARNING as
      ``<operation>_rejected`` with the error code and re-raised.
    - Any other exception is logged at ERROR with traceback as
      ``<operation>_failed`` and re-raised.
"""

import time
from abc import ABC
from contextlib import contextmanager
from typing import Any, Generator
from uuid import uuid4

from sqlalchemy.orm import Session

from gym_kernel.domain.clock import Clock, SystemClock
from gym_kernel.exceptions import GymKernelError
from gym_kernel.logging_config import LogContext, get_logger

logger = get_logger("services")


class BaseService(ABC):
    """
    Abstract base class for all lifecycle services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller.  The session must
        not be shared across threads.

    Guarantees:
        - Operations are atomic with respect to the session: either the
          whole operation is committed (or left pending for the caller) or
          the session is rolled back.

    Non-goals:
        - Does NOT retry.  A lost race surfaces as the typed conflict.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
    ):
        """
        Args:
            session: SQLAlchemy session.
            clock: Clock for validation and date windows.  Defaults to
                SystemClock.
            auto_commit: If True (default), commits on success and rolls
                back on failure.  If False, the caller manages the
                transaction.
            actor_id: Optional identity of the caller, bound into log context.
        """
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._actor_id = actor_id

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    def _commit(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    @contextmanager
    def _unit(self, operation: str, **context: Any) -> Generator[None, None, None]:
        """
        Run one write operation as a unit of work.

        ``context`` values named like LogContext fields (plan_id,
        client_id) are bound; the rest go to the start event's extra.
        """
        bound = {k: context.pop(k) for k in ("plan_id", "client_id") if k in context}
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=self._actor_id,
            operation=operation,
            **bound,
        ):
            logger.debug(f"{operation}_started", extra={k: str(v) for k, v in context.items()})
            t0 = time.monotonic()
            try:
                yield
                self._commit()
            except GymKernelError as exc:
                self._rollback()
                logger.warning(
                    f"{operation}_rejected",
                    extra={
                        "error_code": exc.code,
                        "detail": str(exc),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                self._rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise
            logger.info(
                f"{operation}_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )

    @contextmanager
    def _reading(self) -> Generator[None, None, None]:
        """End the read transaction when this service owns boundaries."""
        try:
            yield
        except Exception:
            self._rollback()
            raise
        self._commit()
