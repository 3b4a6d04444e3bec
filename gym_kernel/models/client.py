"""
Client ORM model.

Module: gym_kernel.models.client
Responsibility: Persistence shape of a gym member, including the list of
    plan references that mirrors each plan's client list.
Architecture position: Kernel > Models.  Imports from db/ only.

Invariants enforced:
    - email is unique (uq_client_email).
    - plan_ids holds string UUIDs without duplicates; it is only mutated by
      ClientGateway's reference primitives, always by reassigning a new list
      so the change is flushed.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gym_kernel.db.base import TimestampedBase


class Client(TimestampedBase):
    """
    A gym member.

    Non-goals:
        - Field validation lives in domain/validation.py, not here.
    """

    __tablename__ = "clientes"

    __table_args__ = (
        UniqueConstraint("email", name="uq_client_email"),
        Index("idx_client_activo", "activo"),
        Index("idx_client_nivel", "nivel"),
    )

    nombre: Mapped[str] = mapped_column(String(50), nullable=False)
    apellido: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    telefono: Mapped[str] = mapped_column(String(15), nullable=False)
    fecha_registro: Mapped[datetime] = mapped_column(nullable=False)

    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    nivel: Mapped[str] = mapped_column(String(20), nullable=False, default="principiante")

    # Plan references, stored as a JSON array of UUID strings
    plan_ids: Mapped[list] = mapped_column("planes", JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Client {self.email}: {self.nombre} {self.apellido}>"
