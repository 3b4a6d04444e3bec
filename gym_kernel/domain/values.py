"""
Value types for the gym domain.

Responsibility:
    Closed vocabularies (training level, payment method, movement
    direction), the single monetary rounding function and calendar
    arithmetic used by contracts and balances.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - round2() is the ONLY sanctioned rounding function for money.  It
      rounds half away from zero (ROUND_HALF_UP on Decimal) at two decimals
      and is idempotent: round2(round2(a)) == round2(a).
    - Floats are converted through their shortest repr, so 99.995 is
      treated as the decimal 99.995 and rounds to 100.00.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from dateutil.relativedelta import relativedelta

MONEY_DECIMAL_PLACES = 2
MONEY_QUANTUM = Decimal("0.01")

# Average month length used to compare a contract's dates with its duration.
DAYS_PER_MONTH = Decimal("30.44")


class TrainingLevel(str, Enum):
    """Difficulty level shared by clients and plans, ordered low to high."""

    PRINCIPIANTE = "principiante"
    INTERMEDIO = "intermedio"
    AVANZADO = "avanzado"

    @property
    def rank(self) -> int:
        return list(TrainingLevel).index(self)


class PaymentMethod(str, Enum):
    EFECTIVO = "efectivo"
    TRANSFERENCIA = "transferencia"
    TARJETA = "tarjeta"
    CHEQUE = "cheque"
    OTRO = "otro"


class MovementType(str, Enum):
    """Direction of a payment: money in (ingreso) or money out (egreso)."""

    INGRESO = "ingreso"
    EGRESO = "egreso"


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a numeric input to Decimal without binary-float artifacts.

    Raises:
        ValueError: If value is not numeric, is a bool, or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a numeric amount: {value!r}") from None
    else:
        raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def round2(value: Decimal | int | float | str) -> Decimal:
    """Round a monetary amount half away from zero to two decimals."""
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def signed_amount(monto: Decimal, tipo_movimiento: MovementType | str) -> Decimal:
    """Ingreso is positive, egreso is negative."""
    if MovementType(tipo_movimiento) is MovementType.EGRESO:
        return -monto
    return monto


def add_months(moment: datetime, months: int) -> datetime:
    """
    Calendar-month arithmetic; the day is clamped to the target month's
    length (2025-01-31 + 3 months -> 2025-04-30).
    """
    return moment + relativedelta(months=months)


def months_between(start: datetime, end: datetime) -> Decimal:
    """Elapsed months between two instants using the average month length."""
    days = Decimal((end - start).total_seconds()) / Decimal(86400)
    return days / DAYS_PER_MONTH


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First and last instant (UTC) of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


def years_before(moment: datetime, years: int) -> datetime:
    return moment - relativedelta(years=years)


def years_after(moment: datetime, years: int) -> datetime:
    return moment + relativedelta(years=years)


def one_day_after(moment: datetime) -> datetime:
    return moment + timedelta(days=1)
