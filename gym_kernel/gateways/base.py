"""
BaseGateway -- abstract base for all persistence gateways.

Responsibility:
    One gateway per entity type.  Gateways translate between ORM rows and
    frozen domain entities, expose create/read/update/delete plus entity
    queries, and wrap store failures with the entity and operation that
    failed.

Architecture position:
    Kernel > Gateways.  May import from db/, models/, domain/ and
    exceptions.  MUST NOT import from services/.

Invariants enforced:
    - Gateways flush within the caller's transaction and never commit or
      roll back.  Services own transaction boundaries.
    - Gateways never hand ORM rows to callers; public methods return
      entities, booleans or counts.
    - Rows are rebuilt into entities without re-validation.

Failure modes:
    - NotFoundError subclass when an id does not resolve.
    - PersistenceError wrapping any SQLAlchemyError, with the original
      chained as ``__cause__``.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Generator, Generic, Iterable, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gym_kernel.db.base import Base
from gym_kernel.exceptions import GymKernelError, NotFoundError, PersistenceError

ModelType = TypeVar("ModelType", bound=Base)
EntityType = TypeVar("EntityType")


def id_strings(ids: Iterable[UUID]) -> list[str]:
    """Reference lists are stored as JSON arrays of UUID strings."""
    return [str(i) for i in ids]


def id_tuple(values: Iterable[str] | None) -> tuple[UUID, ...]:
    return tuple(UUID(v) for v in values or ())


class BaseGateway(ABC, Generic[ModelType, EntityType]):
    """
    Abstract base class for gateways.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT enforce business rules (uniqueness of active contracts,
          state transitions); services do, using gateway reads.
    """

    model: type[ModelType]
    entity_name: str = "entity"
    not_found_error: type[NotFoundError] = NotFoundError

    def __init__(self, session: Session):
        self.session = session

    @abstractmethod
    def _to_entity(self, row: ModelType) -> EntityType:
        """Convert an ORM row to its frozen entity."""

    @contextmanager
    def _store(self, operation: str) -> Generator[None, None, None]:
        """Wrap store failures with entity and operation context."""
        try:
            yield
        except GymKernelError:
            raise
        except SQLAlchemyError as exc:
            detail = str(getattr(exc, "orig", None) or exc).splitlines()[0]
            raise PersistenceError(self.entity_name, operation, detail) from exc

    def _get_row(self, entity_id: UUID, for_update: bool = False) -> ModelType:
        if for_update:
            return self._locked_row(entity_id)
        with self._store("get"):
            row = self.session.get(self.model, entity_id)
        if row is None:
            raise self.not_found_error(entity_id)
        return row

    def _locked_row(self, entity_id: UUID) -> ModelType:
        # SELECT ... FOR UPDATE; the row is refreshed from the database so a
        # read-modify-write never starts from a stale identity-map copy.
        # SQLite has no row locks: BEGIN IMMEDIATE already serializes writers.
        stmt = (
            select(self.model)
            .where(self.model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        with self._store("lock"):
            row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise self.not_found_error(entity_id)
        return row

    def _scalars(self, stmt: Select, operation: str) -> list[EntityType]:
        with self._store(operation):
            rows = self.session.execute(stmt).scalars().all()
        return [self._to_entity(r) for r in rows]

    def _flush(self, operation: str) -> None:
        with self._store(operation):
            self.session.flush()

    def get_by_id(self, entity_id: UUID) -> EntityType:
        """
        Raises:
            NotFoundError: If the id does not resolve.
        """
        return self._to_entity(self._get_row(entity_id))

    def lock(self, entity_id: UUID) -> EntityType:
        """
        Lock the row until the end of the transaction and return it fresh.

        Raises:
            NotFoundError: If the id does not resolve.
        """
        return self._to_entity(self._get_row(entity_id, for_update=True))

    def find_by_id(self, entity_id: UUID) -> EntityType | None:
        with self._store("get"):
            row = self.session.get(self.model, entity_id)
        return self._to_entity(row) if row is not None else None

    def exists(self, entity_id: UUID) -> bool:
        return self.find_by_id(entity_id) is not None

    def delete(self, entity_id: UUID) -> bool:
        """Delete by id.  Returns False if nothing was there."""
        with self._store("get"):
            row = self.session.get(self.model, entity_id)
        if row is None:
            return False
        with self._store("delete"):
            self.session.delete(row)
            self.session.flush()
        return True

    def _write(self, row: ModelType, values: dict[str, Any], operation: str) -> EntityType:
        for key, value in values.items():
            setattr(row, key, value)
        self._flush(operation)
        return self._to_entity(row)
