"""
Payment ORM model.

Module: gym_kernel.models.payment
Responsibility: Persistence shape of a money movement.
Architecture position: Kernel > Models.  Imports from db/ only.

Invariants enforced:
    - monto is stored positive at two decimals; the sign comes from
      tipo_movimiento and is applied only when aggregating.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from gym_kernel.db.base import TimestampedBase


class Payment(TimestampedBase):
    __tablename__ = "pagos"

    __table_args__ = (
        Index("idx_payment_fecha", "fecha_pago"),
        Index("idx_payment_cliente", "cliente_id"),
        Index("idx_payment_contrato", "contrato_id"),
        Index("idx_payment_estado", "estado"),
    )

    cliente_id: Mapped[UUID | None] = mapped_column(nullable=True)
    contrato_id: Mapped[UUID | None] = mapped_column(nullable=True)

    monto: Mapped[Decimal] = mapped_column(nullable=False)
    fecha_pago: Mapped[datetime] = mapped_column(nullable=False)

    metodo_pago: Mapped[str] = mapped_column(String(20), nullable=False)
    estado: Mapped[str] = mapped_column(String(20), nullable=False, default="pendiente")
    tipo_movimiento: Mapped[str] = mapped_column(String(20), nullable=False, default="ingreso")

    referencia: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notas: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.tipo_movimiento} {self.monto} ({self.estado})>"
