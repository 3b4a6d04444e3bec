"""
Tests for PaymentService and the financial views.

Covers:
- Money rounding on create (99.995 -> 100.00)
- Contract/client attribution of payments
- The payment state machine (mark_paid, mark_late, mark_cancelled)
- Balance identity: balance == ingresos - egresos == sum of signed amounts
- Monthly and total balance, overdue, largest, recent, statistics
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from gym_kernel.domain.lifecycle import PaymentState
from gym_kernel.domain.validation import validate_payment
from gym_kernel.domain.values import MovementType, signed_amount
from gym_kernel.exceptions import (
    AlreadyCancelledError,
    ClientNotFoundError,
    ConflictError,
    ContractNotFoundError,
    InvalidStateTransitionError,
    ValidationError,
)
from gym_kernel.selectors.payment_selector import summarize

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestPaymentCreation:
    def test_amount_rounded_half_up(self, make_payment):
        payment = make_payment(monto=99.995)
        assert payment.monto == Decimal("100.00")
        assert payment.tipo_movimiento == MovementType.INGRESO
        assert payment.signed_amount == Decimal("100.00")

    def test_defaults(self, make_payment, deterministic_clock):
        payment = make_payment()
        assert payment.estado == PaymentState.PENDIENTE
        assert payment.fecha_pago == deterministic_clock.now()

    @pytest.mark.parametrize("monto", [0, -5, "abc", 2_000_000])
    def test_invalid_amount(self, make_payment, monto):
        with pytest.raises(ValidationError) as exc_info:
            make_payment(monto=monto)
        assert exc_info.value.field == "monto"

    def test_unknown_client(self, make_payment):
        with pytest.raises(ClientNotFoundError):
            make_payment(cliente_id=uuid4())

    def test_unknown_contract(self, make_payment):
        with pytest.raises(ContractNotFoundError):
            make_payment(contrato_id=uuid4())

    def test_client_inherited_from_contract(self, make_payment, enrolled):
        _, client, contract = enrolled()
        payment = make_payment(contrato_id=contract.id)
        assert payment.cliente_id == client.id

    def test_contract_of_other_client(self, make_payment, make_client, enrolled):
        _, _, contract = enrolled()
        with pytest.raises(ValidationError) as exc_info:
            make_payment(contrato_id=contract.id, cliente_id=make_client().id)
        assert exc_info.value.field == "contrato_id"


class TestPaymentStates:
    """Tests for mark_paid, mark_late, mark_cancelled and update."""

    def test_cancel_requires_reason(self, make_payment, payment_service):
        payment = make_payment()
        with pytest.raises(ValidationError):
            payment_service.mark_cancelled(payment.id)
        with pytest.raises(ValidationError):
            payment_service.mark_cancelled(payment.id, "   ")
        assert payment_service.get_by_id(payment.id).estado == PaymentState.PENDIENTE

    def test_cancel_stores_reason_then_pay_is_conflict(self, make_payment, payment_service):
        payment = make_payment()
        cancelled = payment_service.mark_cancelled(payment.id, "duplicado")

        assert cancelled.estado == PaymentState.CANCELADO
        assert cancelled.notas == "duplicado"
        with pytest.raises(ConflictError):
            payment_service.mark_paid(payment.id)

    def test_mark_paid_sets_reference(self, make_payment, payment_service):
        payment = make_payment()
        paid = payment_service.mark_paid(payment.id, referencia="REC-001")
        assert paid.estado == PaymentState.PAGADO
        assert paid.referencia == "REC-001"

    def test_late_then_paid(self, make_payment, payment_service):
        payment = make_payment()
        assert payment_service.mark_late(payment.id).estado == PaymentState.RETRASADO
        assert payment_service.mark_paid(payment.id).estado == PaymentState.PAGADO

    def test_paid_cannot_be_late(self, make_payment, payment_service):
        payment = make_payment(estado="pagado")
        with pytest.raises(InvalidStateTransitionError):
            payment_service.mark_late(payment.id)

    def test_update_fields_and_state(self, make_payment, payment_service):
        payment = make_payment()
        updated = payment_service.update(payment.id, {"monto": "75.5", "estado": "pagado"})
        assert updated.monto == Decimal("75.50")
        assert updated.estado == PaymentState.PAGADO

    def test_update_cancelled_refused(self, make_payment, payment_service):
        payment = make_payment()
        payment_service.mark_cancelled(payment.id, "error de carga")
        with pytest.raises(AlreadyCancelledError):
            payment_service.update(payment.id, {"notas": "otra"})

    def test_update_to_cancelled_requires_reason(self, make_payment, payment_service):
        payment = make_payment()
        with pytest.raises(ValidationError) as exc_info:
            payment_service.update(payment.id, {"estado": "cancelado"})
        assert exc_info.value.field == "motivo"
        assert payment_service.get_by_id(payment.id).estado == PaymentState.PENDIENTE

    @pytest.mark.parametrize(
        "changes",
        [
            {"estado": "cancelado", "motivo": "cobro duplicado"},
            {"estado": "cancelado", "notas": "cobro duplicado"},
        ],
    )
    def test_update_to_cancelled_stores_reason(self, make_payment, payment_service, changes):
        payment = make_payment()
        cancelled = payment_service.update(payment.id, changes)
        assert cancelled.estado == PaymentState.CANCELADO
        assert cancelled.notas == "cobro duplicado"

    def test_motivo_without_cancellation(self, make_payment, payment_service):
        payment = make_payment()
        with pytest.raises(ValidationError) as exc_info:
            payment_service.update(payment.id, {"estado": "pagado", "motivo": "x"})
        assert exc_info.value.field == "motivo"

    def test_create_cancelled_requires_reason(self, make_payment):
        with pytest.raises(ValidationError) as exc_info:
            make_payment(estado="cancelado", notas="  ")
        assert exc_info.value.field == "notas"

    def test_create_cancelled_with_reason(self, make_payment):
        payment = make_payment(estado="cancelado", notas="anulado en caja")
        assert payment.estado == PaymentState.CANCELADO
        assert payment.notas == "anulado en caja"

    def test_update_unknown_field(self, make_payment, payment_service):
        payment = make_payment()
        with pytest.raises(ValidationError) as exc_info:
            payment_service.update(payment.id, {"id": uuid4()})
        assert exc_info.value.field == "id"

    def test_delete(self, make_payment, payment_service):
        payment = make_payment()
        payment_service.delete(payment.id)
        assert payment_service.list_by_state("pendiente") == []


class TestBalance:
    """balance == ingresos - egresos over the payments in range."""

    def test_balance_by_range(self, make_payment, payment_service):
        make_payment(monto="100.00", fecha_pago=NOW - timedelta(days=2))
        make_payment(monto="30.25", tipo_movimiento="egreso", fecha_pago=NOW - timedelta(days=1))
        make_payment(monto="500.00", fecha_pago=NOW - timedelta(days=60))

        summary = payment_service.balance_by_range(NOW - timedelta(days=7), NOW)

        assert summary.total_ingresos == Decimal("100.00")
        assert summary.total_egresos == Decimal("30.25")
        assert summary.balance == Decimal("69.75")
        assert summary.cantidad_pagos == 2

    def test_cancelled_payments_count(self, make_payment, payment_service):
        payment = make_payment(monto="40.00")
        payment_service.mark_cancelled(payment.id, "anulado")
        assert payment_service.total_balance().balance == Decimal("40.00")

    def test_balance_for_one_client(self, make_payment, make_client, payment_service):
        client = make_client()
        make_payment(monto="10.00", cliente_id=client.id)
        make_payment(monto="99.00")
        summary = payment_service.balance_by_range(NOW - timedelta(days=1), NOW, client.id)
        assert summary.balance == Decimal("10.00")

    def test_inverted_range(self, payment_service):
        with pytest.raises(ValidationError):
            payment_service.balance_by_range(NOW, NOW - timedelta(days=1))

    def test_monthly_balance(self, make_payment, payment_service):
        make_payment(monto="20.00", fecha_pago=datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc))
        make_payment(monto="5.00", fecha_pago=datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc))
        monthly = payment_service.monthly_balance(2024, 2)
        assert monthly.balance == Decimal("20.00")
        assert monthly.summary.cantidad_pagos == 1

    @pytest.mark.parametrize("month", [0, 13, True])
    def test_monthly_balance_invalid_month(self, payment_service, month):
        with pytest.raises(ValidationError):
            payment_service.monthly_balance(2024, month)

    def test_empty_balance_is_zero(self, payment_service):
        summary = payment_service.total_balance()
        assert summary.balance == Decimal("0.00")
        assert summary.cantidad_pagos == 0

    @given(
        st.lists(
            st.tuples(
                st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=3),
                st.sampled_from(list(MovementType)),
            ),
            max_size=20,
        )
    )
    def test_balance_identity(self, movements):
        payments = [
            validate_payment(monto=monto, metodo_pago="efectivo", now=NOW, tipo_movimiento=tipo)
            for monto, tipo in movements
        ]
        summary = summarize(payments)
        signed = sum((signed_amount(p.monto, p.tipo_movimiento) for p in payments), Decimal("0.00"))
        assert summary.balance == summary.total_ingresos - summary.total_egresos == signed
        assert summary.cantidad_pagos == len(payments)


class TestPaymentQueries:
    def test_overdue(self, make_payment, payment_service):
        late = make_payment(fecha_pago=NOW - timedelta(days=3))
        paid = make_payment(fecha_pago=NOW - timedelta(days=3), estado="pagado")
        make_payment(fecha_pago=NOW + timedelta(days=3))

        overdue = payment_service.list_overdue()

        assert [p.id for p in overdue] == [late.id]
        assert paid.id not in {p.id for p in payment_service.list_overdue(NOW + timedelta(days=10))}

    def test_largest_and_recent(self, make_payment, payment_service):
        make_payment(monto="10.00", fecha_pago=NOW - timedelta(days=3))
        big = make_payment(monto="300.00", fecha_pago=NOW - timedelta(days=2))
        newest = make_payment(monto="15.00", tipo_movimiento="egreso", fecha_pago=NOW - timedelta(days=1))

        assert payment_service.largest_payments(limit=1)[0].id == big.id
        assert [p.id for p in payment_service.largest_payments(tipo_movimiento="egreso")] == [newest.id]
        assert payment_service.recent_payments(limit=1)[0].id == newest.id

    def test_largest_invalid_limit(self, payment_service):
        with pytest.raises(ValidationError):
            payment_service.largest_payments(limit=0)

    def test_stats(self, make_payment, payment_service):
        make_payment(monto="10.00")
        make_payment(monto="20.00", estado="pagado")
        make_payment(monto="5.00", tipo_movimiento="egreso")

        stats = payment_service.stats()

        assert stats.cantidad_pagos == 3
        assert stats.total_ingresos == Decimal("30.00")
        assert stats.total_egresos == Decimal("5.00")
        assert stats.balance == Decimal("25.00")
        assert stats.monto_promedio == Decimal("11.67")
        assert stats.monto_maximo == Decimal("20.00")
        assert stats.monto_minimo == Decimal("5.00")
        assert stats.por_estado == {"pendiente": 2, "pagado": 1, "retrasado": 0, "cancelado": 0}

    def test_list_by_client_and_contract(self, make_payment, payment_service, enrolled):
        _, client, contract = enrolled()
        payment = make_payment(contrato_id=contract.id)
        assert [p.id for p in payment_service.list_by_client(client.id)] == [payment.id]
        assert [p.id for p in payment_service.list_by_contract(contract.id)] == [payment.id]
