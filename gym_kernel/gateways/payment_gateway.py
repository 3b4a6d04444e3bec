"""Payment gateway."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from gym_kernel.domain.entities import PaymentInfo
from gym_kernel.domain.lifecycle import PaymentState
from gym_kernel.domain.values import MovementType, PaymentMethod
from gym_kernel.exceptions import PaymentNotFoundError
from gym_kernel.gateways.base import BaseGateway
from gym_kernel.models.payment import Payment

_UNSETTLED = (PaymentState.PENDIENTE.value, PaymentState.RETRASADO.value)


class PaymentGateway(BaseGateway[Payment, PaymentInfo]):
    model = Payment
    entity_name = "payment"
    not_found_error = PaymentNotFoundError

    def _to_entity(self, row: Payment) -> PaymentInfo:
        return PaymentInfo(
            id=row.id,
            monto=row.monto,
            fecha_pago=row.fecha_pago,
            metodo_pago=PaymentMethod(row.metodo_pago),
            estado=PaymentState(row.estado),
            tipo_movimiento=MovementType(row.tipo_movimiento),
            cliente_id=row.cliente_id,
            contrato_id=row.contrato_id,
            referencia=row.referencia,
            notas=row.notas,
        )

    def insert(self, payment: PaymentInfo) -> PaymentInfo:
        row = Payment(id=payment.id, **self._columns(payment))
        self.session.add(row)
        self._flush("insert")
        return self._to_entity(row)

    def update(self, payment: PaymentInfo) -> PaymentInfo:
        """Write every column of ``payment`` except the state."""
        row = self._get_row(payment.id)
        values = self._columns(payment)
        del values["estado"]
        return self._write(row, values, "update")

    def set_state(
        self,
        payment_id: UUID,
        estado: PaymentState,
        referencia: str | None = None,
        notas: str | None = None,
    ) -> PaymentInfo:
        """Write state; reference and notes only when given.  Callers guard first."""
        row = self._get_row(payment_id)
        values: dict = {"estado": PaymentState(estado).value}
        if referencia is not None:
            values["referencia"] = referencia
        if notas is not None:
            values["notas"] = notas
        return self._write(row, values, "set_state")

    @staticmethod
    def _columns(payment: PaymentInfo) -> dict:
        return {
            "cliente_id": payment.cliente_id,
            "contrato_id": payment.contrato_id,
            "monto": payment.monto,
            "fecha_pago": payment.fecha_pago,
            "metodo_pago": payment.metodo_pago.value,
            "estado": payment.estado.value,
            "tipo_movimiento": payment.tipo_movimiento.value,
            "referencia": payment.referencia,
            "notas": payment.notas,
        }

    def list_by_client(self, cliente_id: UUID) -> list[PaymentInfo]:
        stmt = (
            select(Payment)
            .where(Payment.cliente_id == cliente_id)
            .order_by(Payment.fecha_pago.desc())
        )
        return self._scalars(stmt, "list_by_client")

    def list_by_contract(self, contrato_id: UUID) -> list[PaymentInfo]:
        stmt = (
            select(Payment)
            .where(Payment.contrato_id == contrato_id)
            .order_by(Payment.fecha_pago.desc())
        )
        return self._scalars(stmt, "list_by_contract")

    def list_by_state(self, estado: PaymentState) -> list[PaymentInfo]:
        stmt = (
            select(Payment)
            .where(Payment.estado == PaymentState(estado).value)
            .order_by(Payment.fecha_pago.desc())
        )
        return self._scalars(stmt, "list_by_state")

    def list_unsettled_before(self, moment: datetime) -> list[PaymentInfo]:
        """pendiente/retrasado payments dated strictly before ``moment``."""
        stmt = (
            select(Payment)
            .where(Payment.estado.in_(_UNSETTLED))
            .where(Payment.fecha_pago < moment)
            .order_by(Payment.fecha_pago)
        )
        return self._scalars(stmt, "list_unsettled_before")

    def list_in_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        cliente_id: UUID | None = None,
    ) -> list[PaymentInfo]:
        """Payments with fecha_pago in [start, end]; open bounds when None."""
        stmt = select(Payment)
        if start is not None:
            stmt = stmt.where(Payment.fecha_pago >= start)
        if end is not None:
            stmt = stmt.where(Payment.fecha_pago <= end)
        if cliente_id is not None:
            stmt = stmt.where(Payment.cliente_id == cliente_id)
        return self._scalars(stmt.order_by(Payment.fecha_pago), "list_in_range")
