"""
Progress log ORM model.

Module: gym_kernel.models.progress_log
Responsibility: Persistence shape of a client's progress measurement.  The
    lifecycle engine only deletes these, as compensation after a contract
    is cancelled.
Architecture position: Kernel > Models.  Imports from db/ only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gym_kernel.db.base import TimestampedBase


class ProgressLog(TimestampedBase):
    __tablename__ = "seguimientos"

    __table_args__ = (
        Index("idx_progress_cliente", "cliente_id"),
        Index("idx_progress_contrato", "contrato_id"),
    )

    cliente_id: Mapped[UUID] = mapped_column(nullable=False)
    contrato_id: Mapped[UUID | None] = mapped_column(nullable=True)
    fecha: Mapped[datetime] = mapped_column(nullable=False)

    peso: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    grasa_corporal: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    comentarios: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
