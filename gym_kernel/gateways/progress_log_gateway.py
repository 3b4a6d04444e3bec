"""
Progress log gateway.

The store-backed ProgressLogCleaner.  Deletions are bulk DELETE statements
so the returned count is the number of rows actually removed.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select

from gym_kernel.domain.entities import ProgressLogInfo
from gym_kernel.exceptions import ProgressLogNotFoundError
from gym_kernel.gateways.base import BaseGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.models.progress_log import ProgressLog

logger = get_logger("gateways.progress_log")


class ProgressLogGateway(BaseGateway[ProgressLog, ProgressLogInfo]):
    model = ProgressLog
    entity_name = "progress_log"
    not_found_error = ProgressLogNotFoundError

    def _to_entity(self, row: ProgressLog) -> ProgressLogInfo:
        return ProgressLogInfo(
            id=row.id,
            cliente_id=row.cliente_id,
            contrato_id=row.contrato_id,
            fecha=row.fecha,
            peso=row.peso,
            grasa_corporal=row.grasa_corporal,
            comentarios=row.comentarios,
        )

    def insert(self, log: ProgressLogInfo) -> ProgressLogInfo:
        row = ProgressLog(
            id=log.id,
            cliente_id=log.cliente_id,
            contrato_id=log.contrato_id,
            fecha=log.fecha,
            peso=log.peso,
            grasa_corporal=log.grasa_corporal,
            comentarios=log.comentarios,
        )
        self.session.add(row)
        self._flush("insert")
        return self._to_entity(row)

    def list_by_client(self, cliente_id: UUID) -> list[ProgressLogInfo]:
        stmt = (
            select(ProgressLog)
            .where(ProgressLog.cliente_id == cliente_id)
            .order_by(ProgressLog.fecha)
        )
        return self._scalars(stmt, "list_by_client")

    def count_by_client(self, cliente_id: UUID) -> int:
        stmt = select(func.count()).select_from(ProgressLog).where(ProgressLog.cliente_id == cliente_id)
        with self._store("count_by_client"):
            return self.session.execute(stmt).scalar_one()

    def delete_by_client_id(self, cliente_id: UUID, reason: str) -> int:
        stmt = delete(ProgressLog).where(ProgressLog.cliente_id == cliente_id)
        return self._bulk_delete(stmt, "delete_by_client_id", reason, cliente_id=str(cliente_id))

    def delete_by_contract_id(self, contrato_id: UUID, reason: str) -> int:
        stmt = delete(ProgressLog).where(ProgressLog.contrato_id == contrato_id)
        return self._bulk_delete(stmt, "delete_by_contract_id", reason, contrato_id=str(contrato_id))

    def _bulk_delete(self, stmt, operation: str, reason: str, **target: str) -> int:
        with self._store(operation):
            result = self.session.execute(stmt.execution_options(synchronize_session="fetch"))
        removed = result.rowcount or 0
        logger.info(
            "progress_logs_deleted",
            extra={"query": operation, "removed": removed, "reason": reason, **target},
        )
        return removed
