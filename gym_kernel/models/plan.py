"""
Training plan ORM model.

Module: gym_kernel.models.plan
Responsibility: Persistence shape of a training plan and its client list.
Architecture position: Kernel > Models.  Imports from db/ only.

Invariants enforced:
    - nombre is unique across plans (uq_plan_nombre).
    - client_ids mirrors Client.plan_ids; both sides are written in the
      same savepoint by AssociationService.
"""

from sqlalchemy import JSON, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gym_kernel.db.base import TimestampedBase


class TrainingPlan(TimestampedBase):
    """
    A training plan clients can be associated with.

    Guarantees:
        - estado is one of activo, cancelado, finalizado; transitions are
          guarded by PLAN_LIFECYCLE before the column is written.
    """

    __tablename__ = "planes_entrenamiento"

    __table_args__ = (
        UniqueConstraint("nombre", name="uq_plan_nombre"),
        Index("idx_plan_estado", "estado"),
        Index("idx_plan_nivel", "nivel"),
    )

    nombre: Mapped[str] = mapped_column(String(100), nullable=False)
    duracion_semanas: Mapped[int] = mapped_column(Integer, nullable=False)
    metas_fisicas: Mapped[str] = mapped_column(String(500), nullable=False)
    nivel: Mapped[str] = mapped_column(String(20), nullable=False)
    estado: Mapped[str] = mapped_column(String(20), nullable=False, default="activo")

    # Client references, stored as a JSON array of UUID strings
    client_ids: Mapped[list] = mapped_column("clientes", JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<TrainingPlan {self.nombre} ({self.estado})>"
