"""Training plan gateway, including the plan-side client-reference primitives."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from gym_kernel.domain.entities import PlanInfo
from gym_kernel.domain.lifecycle import PlanState
from gym_kernel.domain.values import TrainingLevel
from gym_kernel.exceptions import DuplicateNameError, PlanNotFoundError
from gym_kernel.gateways.base import BaseGateway, id_strings, id_tuple
from gym_kernel.models.plan import TrainingPlan


class PlanGateway(BaseGateway[TrainingPlan, PlanInfo]):
    model = TrainingPlan
    entity_name = "plan"
    not_found_error = PlanNotFoundError

    def _to_entity(self, row: TrainingPlan) -> PlanInfo:
        return PlanInfo(
            id=row.id,
            nombre=row.nombre,
            duracion_semanas=row.duracion_semanas,
            metas_fisicas=row.metas_fisicas,
            nivel=TrainingLevel(row.nivel),
            estado=PlanState(row.estado),
            clientes=id_tuple(row.client_ids),
        )

    def insert(self, plan: PlanInfo) -> PlanInfo:
        """
        Raises:
            DuplicateNameError: If another plan already has the name.
        """
        row = TrainingPlan(
            id=plan.id,
            nombre=plan.nombre,
            duracion_semanas=plan.duracion_semanas,
            metas_fisicas=plan.metas_fisicas,
            nivel=plan.nivel.value,
            estado=plan.estado.value,
            client_ids=id_strings(plan.clientes),
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError(plan.nombre) from exc
        return self._to_entity(row)

    def update(self, plan: PlanInfo) -> PlanInfo:
        """Write the descriptive fields.  State and client list are untouched."""
        row = self._get_row(plan.id)
        return self._write(
            row,
            {
                "nombre": plan.nombre,
                "duracion_semanas": plan.duracion_semanas,
                "metas_fisicas": plan.metas_fisicas,
                "nivel": plan.nivel.value,
            },
            "update",
        )

    def set_state(self, plan_id: UUID, estado: PlanState) -> PlanInfo:
        """Write the state column.  Callers guard the transition first."""
        row = self._get_row(plan_id)
        return self._write(row, {"estado": PlanState(estado).value}, "set_state")

    def find_by_name(self, nombre: str) -> PlanInfo | None:
        stmt = select(TrainingPlan).where(TrainingPlan.nombre == nombre.strip())
        found = self._scalars(stmt, "find_by_name")
        return found[0] if found else None

    def list_all(self) -> list[PlanInfo]:
        return self._scalars(select(TrainingPlan).order_by(TrainingPlan.nombre), "list_all")

    def list_by_state(self, estado: PlanState) -> list[PlanInfo]:
        stmt = (
            select(TrainingPlan)
            .where(TrainingPlan.estado == PlanState(estado).value)
            .order_by(TrainingPlan.nombre)
        )
        return self._scalars(stmt, "list_by_state")

    def list_by_level(self, nivel: TrainingLevel) -> list[PlanInfo]:
        stmt = (
            select(TrainingPlan)
            .where(TrainingPlan.nivel == TrainingLevel(nivel).value)
            .order_by(TrainingPlan.nombre)
        )
        return self._scalars(stmt, "list_by_level")

    def list_by_duration_range(self, min_weeks: int, max_weeks: int) -> list[PlanInfo]:
        stmt = (
            select(TrainingPlan)
            .where(TrainingPlan.duracion_semanas >= min_weeks)
            .where(TrainingPlan.duracion_semanas <= max_weeks)
            .order_by(TrainingPlan.duracion_semanas, TrainingPlan.nombre)
        )
        return self._scalars(stmt, "list_by_duration_range")

    def list_with_client(self, cliente_id: UUID) -> list[PlanInfo]:
        # JSON containment differs per dialect; the list is filtered in Python.
        return [p for p in self.list_all() if cliente_id in p.clientes]

    # -- client references --------------------------------------------------

    def has_client_reference(self, plan_id: UUID, cliente_id: UUID) -> bool:
        row = self._get_row(plan_id)
        return str(cliente_id) in (row.client_ids or [])

    def add_client_reference(self, plan_id: UUID, cliente_id: UUID) -> bool:
        row = self._get_row(plan_id, for_update=True)
        current = list(row.client_ids or [])
        if str(cliente_id) in current:
            return False
        row.client_ids = current + [str(cliente_id)]
        self._flush("add_client_reference")
        return True

    def remove_client_reference(self, plan_id: UUID, cliente_id: UUID) -> bool:
        row = self._get_row(plan_id, for_update=True)
        current = list(row.client_ids or [])
        if str(cliente_id) not in current:
            return False
        row.client_ids = [c for c in current if c != str(cliente_id)]
        self._flush("remove_client_reference")
        return True
