"""Progress logs: record measurements and list them per client."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from gym_kernel.domain.entities import ProgressLogInfo
from gym_kernel.domain.validation import validate_progress_log
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.progress_log_gateway import ProgressLogGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.services.base import BaseService

logger = get_logger("services.progress_log")


class ProgressLogService(BaseService):
    def __init__(self, session, clock=None, auto_commit: bool = True, actor_id: str | None = None):
        super().__init__(session, clock, auto_commit, actor_id)
        self._logs = ProgressLogGateway(session)
        self._clients = ClientGateway(session)
        self._contracts = ContractGateway(session)

    def record(
        self,
        *,
        cliente_id: Any,
        contrato_id: Any = None,
        fecha: Any = None,
        peso: Any = None,
        grasa_corporal: Any = None,
        comentarios: Any = "",
    ) -> ProgressLogInfo:
        with self._unit("progress_log_record", client_id=cliente_id):
            log = validate_progress_log(
                cliente_id=cliente_id,
                now=self._clock.now(),
                contrato_id=contrato_id,
                fecha=fecha,
                peso=peso,
                grasa_corporal=grasa_corporal,
                comentarios=comentarios,
            )
            self._clients.get_by_id(log.cliente_id)
            if log.contrato_id is not None:
                self._contracts.get_by_id(log.contrato_id)
            created = self._logs.insert(log)
            logger.info("progress_log_recorded", extra={"log_id": str(created.id)})
        return created

    def get_by_id(self, log_id: UUID) -> ProgressLogInfo:
        with self._reading():
            return self._logs.get_by_id(log_id)

    def list_by_client(self, cliente_id: UUID) -> list[ProgressLogInfo]:
        with self._reading():
            return self._logs.list_by_client(cliente_id)
