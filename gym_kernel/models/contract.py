"""
Contract ORM model.

Module: gym_kernel.models.contract
Responsibility: Persistence shape of a client's contract for a plan.
Architecture position: Kernel > Models.  Imports from db/ only.

Invariants enforced:
    - At most one vigente contract per (cliente_id, plan_id).  Enforced by
      the partial unique index uq_contract_vigente_pair, so two concurrent
      creations cannot both commit even if both pass the application check.
      The gateway maps the resulting IntegrityError to
      DuplicateActiveContractError.

Failure modes:
    - IntegrityError on INSERT/UPDATE that would create a second vigente
      contract for the pair.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from gym_kernel.db.base import TimestampedBase

VIGENTE_PAIR_INDEX = "uq_contract_vigente_pair"

_VIGENTE_ONLY = text("estado = 'vigente'")


class Contract(TimestampedBase):
    """
    A client's contract for a training plan.

    Contract:
        Contracts reference client and plan by id only (no foreign keys):
        cancelled and finalized contracts stay as history after the client
        or plan is gone.
    """

    __tablename__ = "contratos"

    __table_args__ = (
        Index(
            VIGENTE_PAIR_INDEX,
            "cliente_id",
            "plan_id",
            unique=True,
            sqlite_where=_VIGENTE_ONLY,
            postgresql_where=_VIGENTE_ONLY,
        ),
        Index("idx_contract_cliente", "cliente_id"),
        Index("idx_contract_plan", "plan_id"),
        Index("idx_contract_estado_fin", "estado", "fecha_fin"),
        Index("idx_contract_inicio", "fecha_inicio"),
    )

    cliente_id: Mapped[UUID] = mapped_column(nullable=False)
    plan_id: Mapped[UUID] = mapped_column(nullable=False)

    condiciones: Mapped[str] = mapped_column(String(2000), nullable=False)
    duracion_meses: Mapped[int] = mapped_column(Integer, nullable=False)
    precio: Mapped[Decimal] = mapped_column(nullable=False)

    fecha_inicio: Mapped[datetime] = mapped_column(nullable=False)
    fecha_fin: Mapped[datetime] = mapped_column(nullable=False)

    estado: Mapped[str] = mapped_column(String(20), nullable=False, default="vigente")
    motivo_cancelacion: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Contract {self.id} client={self.cliente_id} plan={self.plan_id} ({self.estado})>"
