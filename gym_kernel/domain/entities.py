"""
Entity value objects (``gym_kernel.domain.entities``).

Responsibility
--------------
Frozen, validated in-memory representations of Client, Plan, Contract,
Payment and ProgressLog.  Validators build them; gateways rebuild them from
rows without re-validating; services return them to callers.  None of them
holds a reference to an ORM row or a session.

Document shape
--------------
``to_document()`` yields the camelCase field names of the persisted
document.  A create -> get_by_id round trip returns an equal entity, so
the documents compare equal as well.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from gym_kernel.domain.lifecycle import ContractState, PaymentState, PlanState
from gym_kernel.domain.values import (
    MovementType,
    PaymentMethod,
    TrainingLevel,
    round2,
    signed_amount,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class ClientInfo:
    """A gym member.  ``planes`` never holds duplicates."""

    id: UUID
    nombre: str
    apellido: str
    email: str
    telefono: str
    fecha_registro: datetime
    activo: bool = True
    nivel: TrainingLevel = TrainingLevel.PRINCIPIANTE
    planes: tuple[UUID, ...] = ()

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido}"

    def has_plan(self, plan_id: UUID) -> bool:
        return plan_id in self.planes

    def to_document(self) -> dict[str, Any]:
        return {
            "clienteId": str(self.id),
            "nombre": self.nombre,
            "apellido": self.apellido,
            "email": self.email,
            "telefono": self.telefono,
            "fechaRegistro": _iso(self.fecha_registro),
            "activo": self.activo,
            "nivel": self.nivel.value,
            "planes": [str(p) for p in self.planes],
        }


@dataclass(frozen=True)
class PlanInfo:
    """A training plan.  ``clientes`` mirrors the clients' ``planes``."""

    id: UUID
    nombre: str
    duracion_semanas: int
    metas_fisicas: str
    nivel: TrainingLevel
    estado: PlanState = PlanState.ACTIVO
    clientes: tuple[UUID, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.estado == PlanState.ACTIVO

    @property
    def client_count(self) -> int:
        return len(self.clientes)

    def has_client(self, cliente_id: UUID) -> bool:
        return cliente_id in self.clientes

    def to_document(self) -> dict[str, Any]:
        return {
            "planId": str(self.id),
            "nombre": self.nombre,
            "duracionSemanas": self.duracion_semanas,
            "metasFisicas": self.metas_fisicas,
            "nivel": self.nivel.value,
            "estado": self.estado.value,
            "clientes": [str(c) for c in self.clientes],
        }


@dataclass(frozen=True)
class ContractInfo:
    """A client's contract for a plan."""

    id: UUID
    cliente_id: UUID
    plan_id: UUID
    condiciones: str
    duracion_meses: int
    precio: Decimal
    fecha_inicio: datetime
    fecha_fin: datetime
    estado: ContractState = ContractState.VIGENTE
    motivo_cancelacion: str | None = None

    @property
    def is_vigente(self) -> bool:
        return self.estado == ContractState.VIGENTE

    @property
    def precio_mensual(self) -> Decimal:
        return round2(self.precio / self.duracion_meses)

    @property
    def precio_diario(self) -> Decimal:
        days = max((self.fecha_fin - self.fecha_inicio).days, 1)
        return round2(self.precio / days)

    def days_remaining(self, now: datetime) -> int:
        """Whole days until fecha_fin; zero once it has passed."""
        return max((self.fecha_fin - now).days, 0)

    def is_expired(self, now: datetime) -> bool:
        """A vigente contract whose end date has passed."""
        return self.is_vigente and self.fecha_fin < now

    def is_near_expiration(self, now: datetime, days: int = 30) -> bool:
        return self.is_vigente and now <= self.fecha_fin <= now + timedelta(days=days)

    def to_document(self) -> dict[str, Any]:
        return {
            "contratoId": str(self.id),
            "clienteId": str(self.cliente_id),
            "planId": str(self.plan_id),
            "condiciones": self.condiciones,
            "duracionMeses": self.duracion_meses,
            "precio": _money(self.precio),
            "fechaInicio": _iso(self.fecha_inicio),
            "fechaFin": _iso(self.fecha_fin),
            "estado": self.estado.value,
            "motivoCancelacion": self.motivo_cancelacion,
        }


@dataclass(frozen=True)
class PaymentInfo:
    """A money movement, optionally tied to a client and/or contract."""

    id: UUID
    monto: Decimal
    fecha_pago: datetime
    metodo_pago: PaymentMethod
    estado: PaymentState = PaymentState.PENDIENTE
    tipo_movimiento: MovementType = MovementType.INGRESO
    cliente_id: UUID | None = None
    contrato_id: UUID | None = None
    referencia: str | None = None
    notas: str | None = None

    @property
    def signed_amount(self) -> Decimal:
        return signed_amount(self.monto, self.tipo_movimiento)

    @property
    def is_ingreso(self) -> bool:
        return self.tipo_movimiento == MovementType.INGRESO

    def is_overdue(self, now: datetime, due_date: datetime | None = None) -> bool:
        """
        Derived, never stored: unsettled and past its due date (which
        defaults to the payment date).
        """
        if self.estado in (PaymentState.PAGADO, PaymentState.CANCELADO):
            return False
        return now > (due_date or self.fecha_pago)

    def to_document(self) -> dict[str, Any]:
        return {
            "pagoId": str(self.id),
            "clienteId": str(self.cliente_id) if self.cliente_id else None,
            "contratoId": str(self.contrato_id) if self.contrato_id else None,
            "monto": _money(self.monto),
            "fechaPago": _iso(self.fecha_pago),
            "metodoPago": self.metodo_pago.value,
            "estado": self.estado.value,
            "tipoMovimiento": self.tipo_movimiento.value,
            "referencia": self.referencia,
            "notas": self.notas,
        }


@dataclass(frozen=True)
class ProgressLogInfo:
    """A progress measurement for a client, optionally tagged with a contract."""

    id: UUID
    cliente_id: UUID
    fecha: datetime
    contrato_id: UUID | None = None
    peso: Decimal | None = None
    grasa_corporal: Decimal | None = None
    comentarios: str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "seguimientoId": str(self.id),
            "clienteId": str(self.cliente_id),
            "contratoId": str(self.contrato_id) if self.contrato_id else None,
            "fecha": _iso(self.fecha),
            "peso": _money(self.peso),
            "grasaCorporal": _money(self.grasa_corporal),
            "comentarios": self.comentarios,
        }
