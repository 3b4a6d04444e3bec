"""
Plan statistics and popularity ranking.

Duration buckets are half-open week ranges with lower bounds
0, 4, 8, 12, 16, 20, 24 and 52; everything from 52 weeks up falls into
the ``52+`` bucket.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from gym_kernel.domain.entities import PlanInfo
from gym_kernel.domain.lifecycle import PlanState
from gym_kernel.domain.values import TrainingLevel, round2
from gym_kernel.exceptions import ValidationError
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.selectors.base import BaseSelector

DURATION_BOUNDARIES = (0, 4, 8, 12, 16, 20, 24, 52)
OPEN_BUCKET = "52+"


def duration_bucket(weeks: int) -> str:
    for low, high in zip(DURATION_BOUNDARIES, DURATION_BOUNDARIES[1:]):
        if low <= weeks < high:
            return f"{low}-{high}"
    return OPEN_BUCKET


def _bucket_labels() -> list[str]:
    pairs = zip(DURATION_BOUNDARIES, DURATION_BOUNDARIES[1:])
    return [f"{low}-{high}" for low, high in pairs] + [OPEN_BUCKET]


@dataclass(frozen=True)
class PlanPopularity:
    plan: PlanInfo

    @property
    def client_count(self) -> int:
        return self.plan.client_count


@dataclass(frozen=True)
class PlanStats:
    total: int
    por_estado: dict[str, int] = field(default_factory=dict)
    por_nivel: dict[str, int] = field(default_factory=dict)
    por_duracion: dict[str, int] = field(default_factory=dict)
    total_clientes: int = 0
    promedio_clientes: Decimal = Decimal("0.00")

    @property
    def activos(self) -> int:
        return self.por_estado.get(PlanState.ACTIVO.value, 0)


class PlanSelector(BaseSelector):
    def __init__(self, session):
        super().__init__(session)
        self._plans = PlanGateway(session)

    def most_popular(self, limit: int = 5) -> list[PlanPopularity]:
        """Plans ordered by number of associated clients, then by name."""
        if limit <= 0:
            raise ValidationError("limit", "must be positive")
        plans = sorted(self._plans.list_all(), key=lambda p: (-p.client_count, p.nombre))
        return [PlanPopularity(plan=p) for p in plans[:limit]]

    def without_clients(self) -> list[PlanInfo]:
        return [p for p in self._plans.list_all() if p.client_count == 0]

    def stats(self) -> PlanStats:
        plans = self._plans.list_all()
        states = Counter(p.estado.value for p in plans)
        levels = Counter(p.nivel.value for p in plans)
        buckets = Counter(duration_bucket(p.duracion_semanas) for p in plans)
        clients = sum(p.client_count for p in plans)
        return PlanStats(
            total=len(plans),
            por_estado={s.value: states.get(s.value, 0) for s in PlanState},
            por_nivel={lv.value: levels.get(lv.value, 0) for lv in TrainingLevel},
            por_duracion={label: buckets.get(label, 0) for label in _bucket_labels()},
            total_clientes=clients,
            promedio_clientes=round2(Decimal(clients) / len(plans)) if plans else Decimal("0.00"),
        )
