"""
PaymentService -- payments, their state machine and the financial views.

Responsibility:
    Record payments, move them through the payment lifecycle
    (pendiente/retrasado/pagado/cancelado) and expose the balance and
    statistics computed by PaymentSelector.

Architecture position:
    Kernel > Services.  Composes PaymentGateway, ContractGateway,
    ClientGateway and PaymentSelector.

Invariants enforced:
    - Every state change passes ``require_transition`` against
      PAYMENT_LIFECYCLE.
    - A cancelled payment is history: it is neither updated nor moved.
    - A payment tied to a contract belongs to that contract's client.

Failure modes:
    - ValidationError (fields, missing cancellation reason).
    - PaymentNotFoundError, ClientNotFoundError, ContractNotFoundError.
    - AlreadyCancelledError / InvalidStateTransitionError from the guard.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from gym_kernel.domain.clock import Clock
from gym_kernel.domain.entities import PaymentInfo
from gym_kernel.domain.lifecycle import PAYMENT_LIFECYCLE, PaymentState, require_transition
from gym_kernel.domain.validation import (
    optional_text,
    require_datetime,
    require_enum,
    require_text,
    validate_payment,
    validate_payment_update,
)
from gym_kernel.domain.values import MovementType
from gym_kernel.exceptions import AlreadyCancelledError, ValidationError
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.payment_gateway import PaymentGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.selectors.payment_selector import (
    BalanceSummary,
    MonthlyBalance,
    PaymentSelector,
    PaymentStats,
)
from gym_kernel.services.base import BaseService

logger = get_logger("services.payment")


class PaymentService(BaseService):
    """Payment recording, state changes and financial aggregation."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
    ):
        super().__init__(session, clock, auto_commit, actor_id)
        self._payments = PaymentGateway(session)
        self._contracts = ContractGateway(session)
        self._clients = ClientGateway(session)
        self._selector = PaymentSelector(session)

    # -- writes -------------------------------------------------------------

    def create(
        self,
        *,
        monto: Any,
        metodo_pago: Any,
        fecha_pago: Any = None,
        estado: Any = PaymentState.PENDIENTE,
        tipo_movimiento: Any = MovementType.INGRESO,
        cliente_id: Any = None,
        contrato_id: Any = None,
        referencia: Any = None,
        notas: Any = None,
    ) -> PaymentInfo:
        """
        Record a payment.  A payment for a contract without an explicit
        client is attributed to the contract's client.

        Raises:
            ValidationError: A field fails its constraint, or the contract
                belongs to a different client.
            ClientNotFoundError / ContractNotFoundError: Unknown references.
        """
        with self._unit("payment_create", client_id=cliente_id):
            payment = validate_payment(
                monto=monto,
                metodo_pago=metodo_pago,
                now=self._clock.now(),
                fecha_pago=fecha_pago,
                estado=estado,
                tipo_movimiento=tipo_movimiento,
                cliente_id=cliente_id,
                contrato_id=contrato_id,
                referencia=referencia,
                notas=notas,
            )
            payment = self._check_references(payment)
            created = self._payments.insert(payment)
            logger.info(
                "payment_created",
                extra={
                    "payment_id": str(created.id),
                    "monto": created.monto,
                    "tipo_movimiento": created.tipo_movimiento.value,
                    "estado": created.estado.value,
                },
            )
        return created

    def update(self, payment_id: UUID, changes: Mapping[str, Any]) -> PaymentInfo:
        """
        Re-validate and write changed fields.  An ``estado`` key is applied
        through the state machine after the field changes.

        Moving to cancelado takes the reason from a ``motivo`` key, or from
        ``notas`` when no motivo is given, as mark_cancelled does.

        Raises:
            AlreadyCancelledError: The payment is cancelado.
            ValidationError: Moving to cancelado without a reason.
        """
        with self._unit("payment_update", fields=sorted(changes)):
            changes = dict(changes)
            target = changes.pop("estado", None)
            motivo = changes.pop("motivo", None)
            current = self._payments.get_by_id(payment_id)
            if current.estado == PaymentState.CANCELADO:
                raise AlreadyCancelledError("payment", current.id)

            state = None if target is None else require_enum("estado", target, PaymentState)
            reason = None
            if state == PaymentState.CANCELADO:
                given = changes.get("notas") if motivo is None else motivo
                reason = require_text("motivo", given, 1, 500)
            elif motivo is not None:
                raise ValidationError("motivo", "only applies when moving to cancelado")

            updated = current
            if changes:
                candidate = validate_payment_update(current, changes, self._clock.now())
                updated = self._payments.update(self._check_references(candidate))
            if state is not None and state != updated.estado:
                updated = self._move(updated, state, notas=reason)
            logger.info("payment_updated", extra={"payment_id": str(updated.id)})
        return updated

    def delete(self, payment_id: UUID) -> None:
        with self._unit("payment_delete"):
            payment = self._payments.get_by_id(payment_id)
            self._payments.delete(payment.id)
            logger.info("payment_deleted", extra={"payment_id": str(payment.id)})

    def mark_paid(
        self,
        payment_id: UUID,
        referencia: str | None = None,
        notas: str | None = None,
    ) -> PaymentInfo:
        with self._unit("payment_mark_paid"):
            ref = optional_text("referencia", referencia, 100)
            note = optional_text("notas", notas, 500)
            payment = self._payments.get_by_id(payment_id)
            paid = self._move(payment, PaymentState.PAGADO, referencia=ref, notas=note)
        return paid

    def mark_late(self, payment_id: UUID, notas: str | None = None) -> PaymentInfo:
        with self._unit("payment_mark_late"):
            note = optional_text("notas", notas, 500)
            payment = self._payments.get_by_id(payment_id)
            late = self._move(payment, PaymentState.RETRASADO, notas=note)
        return late

    def mark_cancelled(self, payment_id: UUID, motivo: str | None = None) -> PaymentInfo:
        """
        Cancel a payment; the reason is stored as its notes.

        Raises:
            ValidationError: The reason is missing or blank.
            AlreadyCancelledError: The payment is already cancelado.
        """
        with self._unit("payment_mark_cancelled"):
            reason = require_text("motivo", motivo, 1, 500)
            payment = self._payments.get_by_id(payment_id)
            cancelled = self._move(payment, PaymentState.CANCELADO, notas=reason)
        return cancelled

    def _move(
        self,
        payment: PaymentInfo,
        target: PaymentState,
        referencia: str | None = None,
        notas: str | None = None,
    ) -> PaymentInfo:
        require_transition(PAYMENT_LIFECYCLE, payment.estado, target, payment.id)
        moved = self._payments.set_state(payment.id, target, referencia=referencia, notas=notas)
        logger.info(
            "payment_state_changed",
            extra={
                "payment_id": str(moved.id),
                "from_state": payment.estado.value,
                "to_state": moved.estado.value,
            },
        )
        return moved

    def _check_references(self, payment: PaymentInfo) -> PaymentInfo:
        if payment.cliente_id is not None:
            self._clients.get_by_id(payment.cliente_id)
        if payment.contrato_id is None:
            return payment
        contract = self._contracts.get_by_id(payment.contrato_id)
        if payment.cliente_id is None:
            return validate_payment_update(
                payment, {"cliente_id": contract.cliente_id}, self._clock.now()
            )
        if payment.cliente_id != contract.cliente_id:
            raise ValidationError("contrato_id", "belongs to a different client")
        return payment

    # -- reads --------------------------------------------------------------

    def get_by_id(self, payment_id: UUID) -> PaymentInfo:
        with self._reading():
            return self._payments.get_by_id(payment_id)

    def list_by_client(self, cliente_id: UUID) -> list[PaymentInfo]:
        with self._reading():
            return self._payments.list_by_client(cliente_id)

    def list_by_contract(self, contrato_id: UUID) -> list[PaymentInfo]:
        with self._reading():
            return self._payments.list_by_contract(contrato_id)

    def list_by_state(self, estado: PaymentState | str) -> list[PaymentInfo]:
        state = require_enum("estado", estado, PaymentState)
        with self._reading():
            return self._payments.list_by_state(state)

    def list_overdue(self, limit_date: datetime | None = None) -> list[PaymentInfo]:
        """Unsettled payments dated before ``limit_date`` (default: now)."""
        moment = self._clock.now() if limit_date is None else require_datetime("limit_date", limit_date)
        with self._reading():
            return self._payments.list_unsettled_before(moment)

    def balance_by_range(
        self,
        start: datetime,
        end: datetime,
        cliente_id: UUID | None = None,
    ) -> BalanceSummary:
        start = require_datetime("start", start)
        end = require_datetime("end", end)
        with self._reading():
            return self._selector.balance_by_range(start, end, cliente_id)

    def monthly_balance(self, year: int, month: int) -> MonthlyBalance:
        with self._reading():
            return self._selector.monthly_balance(year, month)

    def total_balance(self) -> BalanceSummary:
        with self._reading():
            return self._selector.total_balance()

    def largest_payments(
        self,
        limit: int = 10,
        tipo_movimiento: MovementType | str | None = None,
    ) -> list[PaymentInfo]:
        tipo = None if tipo_movimiento is None else require_enum("tipo_movimiento", tipo_movimiento, MovementType)
        with self._reading():
            return self._selector.largest_payments(limit, tipo)

    def recent_payments(self, limit: int = 10) -> list[PaymentInfo]:
        with self._reading():
            return self._selector.recent_payments(limit)

    def stats(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStats:
        with self._reading():
            return self._selector.stats(start, end)
