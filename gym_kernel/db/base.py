"""
Module: gym_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models.  Provides the
    UUID primary key convention, the type annotation map that keeps money,
    timestamps and identifiers consistent, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  Lowest-level import target in the
    kernel.  MUST NOT import from models/, gateways/, services/ or domain/.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Decimal maps to Numeric(12, 2): money is stored at two decimals and
      never as float.
    - datetime maps to UTCDateTime: values are always read back as
      timezone-aware UTC, on PostgreSQL and SQLite alike.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from gym_kernel.db.types import UTCDateTime, UUIDString


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base (or TimestampedBase).

    Guarantees:
        - id is a uuid4-generated UUID stored as String(36).
        - Decimal -> Numeric(12, 2), datetime -> UTCDateTime,
          list -> JSON.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(12, 2),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        list: JSON,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TimestampedBase(Base):
    """
    Abstract base with row creation and modification timestamps.

    These are store metadata, distinct from business dates such as
    fecha_registro or fecha_pago, which come from the injected clock.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


UUID = PyUUID
