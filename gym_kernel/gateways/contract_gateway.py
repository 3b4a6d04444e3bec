"""
Contract gateway.

Insert and state writes run inside a savepoint so that a violation of
uq_contract_vigente_pair leaves the surrounding transaction usable; the
violation is reported as DuplicateActiveContractError, the same error the
service's pre-insert check raises.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from gym_kernel.domain.entities import ContractInfo
from gym_kernel.domain.lifecycle import ContractState
from gym_kernel.exceptions import ContractNotFoundError, DuplicateActiveContractError
from gym_kernel.gateways.base import BaseGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.models.contract import VIGENTE_PAIR_INDEX, Contract

logger = get_logger("gateways.contract")

_VIGENTE = ContractState.VIGENTE.value


def _is_vigente_pair_violation(exc: IntegrityError) -> bool:
    # PostgreSQL names the index; SQLite lists the indexed columns.
    message = str(exc.orig)
    return VIGENTE_PAIR_INDEX in message or (
        "contratos.cliente_id" in message and "contratos.plan_id" in message
    )


class ContractGateway(BaseGateway[Contract, ContractInfo]):
    model = Contract
    entity_name = "contract"
    not_found_error = ContractNotFoundError

    def _to_entity(self, row: Contract) -> ContractInfo:
        return ContractInfo(
            id=row.id,
            cliente_id=row.cliente_id,
            plan_id=row.plan_id,
            condiciones=row.condiciones,
            duracion_meses=row.duracion_meses,
            precio=row.precio,
            fecha_inicio=row.fecha_inicio,
            fecha_fin=row.fecha_fin,
            estado=ContractState(row.estado),
            motivo_cancelacion=row.motivo_cancelacion,
        )

    def _guarded_write(self, row: Contract, apply: Callable[[], None]) -> None:
        try:
            with self.session.begin_nested():
                apply()
                self.session.flush()
        except IntegrityError as exc:
            if _is_vigente_pair_violation(exc):
                logger.warning(
                    "vigente_pair_constraint_rejected",
                    extra={"cliente_id": str(row.cliente_id), "plan_id": str(row.plan_id)},
                )
                raise DuplicateActiveContractError(row.cliente_id, row.plan_id) from exc
            raise

    def insert(self, contract: ContractInfo) -> ContractInfo:
        """
        Raises:
            DuplicateActiveContractError: If the storage constraint rejects a
                second vigente contract for the pair.
        """
        row = Contract(
            id=contract.id,
            cliente_id=contract.cliente_id,
            plan_id=contract.plan_id,
            condiciones=contract.condiciones,
            duracion_meses=contract.duracion_meses,
            precio=contract.precio,
            fecha_inicio=contract.fecha_inicio,
            fecha_fin=contract.fecha_fin,
            estado=contract.estado.value,
            motivo_cancelacion=contract.motivo_cancelacion,
        )
        with self._store("insert"):
            self._guarded_write(row, lambda: self.session.add(row))
        return self._to_entity(row)

    def set_state(
        self,
        contract_id: UUID,
        estado: ContractState,
        motivo: str | None = None,
    ) -> ContractInfo:
        """Write state (and reason).  Callers guard the transition first."""
        row = self._get_row(contract_id)

        def _apply() -> None:
            row.estado = ContractState(estado).value
            if motivo is not None:
                row.motivo_cancelacion = motivo

        with self._store("set_state"):
            self._guarded_write(row, _apply)
        return self._to_entity(row)

    def extend(self, contract_id: UUID, duracion_meses: int, fecha_fin: datetime) -> ContractInfo:
        row = self._get_row(contract_id)
        return self._write(
            row,
            {"duracion_meses": duracion_meses, "fecha_fin": fecha_fin},
            "extend",
        )

    def find_vigente_for_pair(self, cliente_id: UUID, plan_id: UUID) -> ContractInfo | None:
        stmt = (
            select(Contract)
            .where(Contract.cliente_id == cliente_id)
            .where(Contract.plan_id == plan_id)
            .where(Contract.estado == _VIGENTE)
        )
        found = self._scalars(stmt, "find_vigente_for_pair")
        return found[0] if found else None

    def list_by_client(self, cliente_id: UUID) -> list[ContractInfo]:
        stmt = (
            select(Contract)
            .where(Contract.cliente_id == cliente_id)
            .order_by(Contract.fecha_inicio.desc())
        )
        return self._scalars(stmt, "list_by_client")

    def list_active_by_client(self, cliente_id: UUID) -> list[ContractInfo]:
        stmt = (
            select(Contract)
            .where(Contract.cliente_id == cliente_id)
            .where(Contract.estado == _VIGENTE)
            .order_by(Contract.fecha_inicio.desc())
        )
        return self._scalars(stmt, "list_active_by_client")

    def list_by_plan(self, plan_id: UUID, estado: ContractState | None = None) -> list[ContractInfo]:
        stmt = select(Contract).where(Contract.plan_id == plan_id)
        if estado is not None:
            stmt = stmt.where(Contract.estado == ContractState(estado).value)
        return self._scalars(stmt.order_by(Contract.fecha_inicio), "list_by_plan")

    def count_vigente_by_plan(self, plan_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(Contract)
            .where(Contract.plan_id == plan_id)
            .where(Contract.estado == _VIGENTE)
        )
        with self._store("count_vigente_by_plan"):
            return self.session.execute(stmt).scalar_one()

    def list_by_date_range(
        self,
        start: datetime,
        end: datetime,
        estado: ContractState | None = None,
    ) -> list[ContractInfo]:
        """Contracts whose fecha_inicio falls in [start, end]."""
        stmt = (
            select(Contract)
            .where(Contract.fecha_inicio >= start)
            .where(Contract.fecha_inicio <= end)
        )
        if estado is not None:
            stmt = stmt.where(Contract.estado == ContractState(estado).value)
        return self._scalars(stmt.order_by(Contract.fecha_inicio), "list_by_date_range")

    def list_vigente_ending_between(self, start: datetime, end: datetime) -> list[ContractInfo]:
        stmt = (
            select(Contract)
            .where(Contract.estado == _VIGENTE)
            .where(Contract.fecha_fin >= start)
            .where(Contract.fecha_fin <= end)
            .order_by(Contract.fecha_fin)
        )
        return self._scalars(stmt, "list_vigente_ending_between")

    def list_vigente_ended_before(self, moment: datetime) -> list[ContractInfo]:
        stmt = (
            select(Contract)
            .where(Contract.estado == _VIGENTE)
            .where(Contract.fecha_fin < moment)
            .order_by(Contract.fecha_fin)
        )
        return self._scalars(stmt, "list_vigente_ended_before")

    def list_all(self) -> list[ContractInfo]:
        return self._scalars(select(Contract).order_by(Contract.fecha_inicio), "list_all")
