"""
Contract statistics.

Totals and revenue per state, average duration and price, and the number of
contracts started in each of the last twelve calendar months.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from gym_kernel.domain.lifecycle import ContractState
from gym_kernel.domain.values import round2
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.selectors.base import BaseSelector

ZERO = Decimal("0.00")
MONTHS_OF_HISTORY = 12


@dataclass(frozen=True)
class ContractStats:
    total: int
    por_estado: dict[str, int] = field(default_factory=dict)
    ingresos_por_estado: dict[str, Decimal] = field(default_factory=dict)
    duracion_promedio: Decimal = ZERO
    precio_promedio: Decimal = ZERO
    por_mes: dict[str, int] = field(default_factory=dict)

    @property
    def vigentes(self) -> int:
        return self.por_estado.get(ContractState.VIGENTE.value, 0)

    @property
    def ingresos_totales(self) -> Decimal:
        return sum(self.ingresos_por_estado.values(), ZERO)


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


class ContractSelector(BaseSelector):
    def __init__(self, session):
        super().__init__(session)
        self._contracts = ContractGateway(session)

    def stats(self, now: datetime) -> ContractStats:
        """Statistics over every contract; the monthly window ends at ``now``."""
        contracts = self._contracts.list_all()

        states = Counter(c.estado.value for c in contracts)
        revenue = {s.value: ZERO for s in ContractState}
        for c in contracts:
            revenue[c.estado.value] += c.precio

        first_month = (now - relativedelta(months=MONTHS_OF_HISTORY - 1)).replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        per_month = {
            _month_key(first_month + relativedelta(months=i)): 0
            for i in range(MONTHS_OF_HISTORY)
        }
        for c in contracts:
            key = _month_key(c.fecha_inicio)
            if key in per_month:
                per_month[key] += 1

        count = len(contracts)
        return ContractStats(
            total=count,
            por_estado={s.value: states.get(s.value, 0) for s in ContractState},
            ingresos_por_estado=revenue,
            duracion_promedio=(
                round2(Decimal(sum(c.duracion_meses for c in contracts)) / count) if count else ZERO
            ),
            precio_promedio=(
                round2(sum((c.precio for c in contracts), ZERO) / count) if count else ZERO
            ),
            por_mes=per_month,
        )
