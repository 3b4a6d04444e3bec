"""
Module: gym_kernel.selectors.payment_selector
Responsibility: Financial aggregation over payments: balance over a date
    range, monthly and total balance, largest and most recent payments, and
    payment statistics.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - balance == total_ingresos - total_egresos == sum of signed amounts of
      the payments in range.  Every payment in range counts, whatever its
      state.
    - Monthly balance covers the first to the last instant of the month.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from gym_kernel.domain.entities import PaymentInfo
from gym_kernel.domain.lifecycle import PaymentState
from gym_kernel.domain.values import MovementType, month_bounds, round2
from gym_kernel.exceptions import ValidationError
from gym_kernel.gateways.payment_gateway import PaymentGateway
from gym_kernel.models.payment import Payment
from gym_kernel.selectors.base import BaseSelector

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BalanceSummary:
    """Signed totals over a set of payments."""

    total_ingresos: Decimal
    total_egresos: Decimal
    cantidad_ingresos: int
    cantidad_egresos: int
    start: datetime | None = None
    end: datetime | None = None

    @property
    def balance(self) -> Decimal:
        return self.total_ingresos - self.total_egresos

    @property
    def cantidad_pagos(self) -> int:
        return self.cantidad_ingresos + self.cantidad_egresos


@dataclass(frozen=True)
class MonthlyBalance:
    year: int
    month: int
    summary: BalanceSummary

    @property
    def balance(self) -> Decimal:
        return self.summary.balance


@dataclass(frozen=True)
class PaymentStats:
    total_ingresos: Decimal
    total_egresos: Decimal
    cantidad_pagos: int
    monto_promedio: Decimal
    monto_maximo: Decimal
    monto_minimo: Decimal
    por_estado: dict[str, int] = field(default_factory=dict)

    @property
    def balance(self) -> Decimal:
        return self.total_ingresos - self.total_egresos


def summarize(
    payments: list[PaymentInfo],
    start: datetime | None = None,
    end: datetime | None = None,
) -> BalanceSummary:
    ingresos = [p.monto for p in payments if p.tipo_movimiento == MovementType.INGRESO]
    egresos = [p.monto for p in payments if p.tipo_movimiento == MovementType.EGRESO]
    return BalanceSummary(
        total_ingresos=sum(ingresos, ZERO),
        total_egresos=sum(egresos, ZERO),
        cantidad_ingresos=len(ingresos),
        cantidad_egresos=len(egresos),
        start=start,
        end=end,
    )


class PaymentSelector(BaseSelector):
    """Read-only financial views over payments."""

    def __init__(self, session):
        super().__init__(session)
        self._payments = PaymentGateway(session)

    def balance_by_range(
        self,
        start: datetime,
        end: datetime,
        cliente_id: UUID | None = None,
    ) -> BalanceSummary:
        """
        Totals of payments dated in [start, end], optionally for one client.

        Raises:
            ValidationError: If start is after end.
        """
        if start > end:
            raise ValidationError("start", "must not be after end")
        payments = self._payments.list_in_range(start, end, cliente_id)
        return summarize(payments, start, end)

    def monthly_balance(self, year: int, month: int) -> MonthlyBalance:
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise ValidationError("month", "must be between 1 and 12")
        if isinstance(year, bool) or not isinstance(year, int) or not 1 <= year <= 9999:
            raise ValidationError("year", "must be a valid year")
        start, end = month_bounds(year, month)
        return MonthlyBalance(year=year, month=month, summary=self.balance_by_range(start, end))

    def total_balance(self) -> BalanceSummary:
        return summarize(self._payments.list_in_range())

    def largest_payments(
        self,
        limit: int = 10,
        tipo_movimiento: MovementType | str | None = None,
    ) -> list[PaymentInfo]:
        """Top ``limit`` payments by amount, optionally for one direction."""
        if limit <= 0:
            raise ValidationError("limit", "must be positive")
        stmt = select(Payment)
        if tipo_movimiento is not None:
            stmt = stmt.where(Payment.tipo_movimiento == MovementType(tipo_movimiento).value)
        stmt = stmt.order_by(Payment.monto.desc(), Payment.fecha_pago.desc()).limit(limit)
        return self._payments._scalars(stmt, "largest_payments")

    def recent_payments(self, limit: int = 10) -> list[PaymentInfo]:
        if limit <= 0:
            raise ValidationError("limit", "must be positive")
        stmt = select(Payment).order_by(Payment.fecha_pago.desc()).limit(limit)
        return self._payments._scalars(stmt, "recent_payments")

    def stats(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStats:
        payments = self._payments.list_in_range(start, end)
        summary = summarize(payments, start, end)
        amounts = [p.monto for p in payments]
        states = Counter(p.estado.value for p in payments)
        return PaymentStats(
            total_ingresos=summary.total_ingresos,
            total_egresos=summary.total_egresos,
            cantidad_pagos=len(payments),
            monto_promedio=round2(sum(amounts, ZERO) / len(amounts)) if amounts else ZERO,
            monto_maximo=max(amounts, default=ZERO),
            monto_minimo=min(amounts, default=ZERO),
            por_estado={s.value: states.get(s.value, 0) for s in PaymentState},
        )
