"""
ClientService -- gym members.

Registration, profile updates and deletion.  Deletion is refused while the
client holds vigente contracts; otherwise the client's id is removed from
every plan that lists it in the same unit of work, and the client's
progress logs are cleaned up afterwards on a best-effort basis.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from gym_kernel.domain.clock import Clock
from gym_kernel.domain.entities import ClientInfo
from gym_kernel.domain.progress_cleanup import ProgressLogCleaner
from gym_kernel.domain.results import ClientDeletionResult
from gym_kernel.domain.validation import validate_client, validate_client_update
from gym_kernel.exceptions import ActiveContractExistsError, DuplicateEmailError
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.services.base import BaseService
from gym_kernel.services.cascade import CLIENT_TARGET, CascadeEngine

logger = get_logger("services.client")


class ClientService(BaseService):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
        cleaner: ProgressLogCleaner | None = None,
    ):
        super().__init__(session, clock, auto_commit, actor_id)
        self._clients = ClientGateway(session)
        self._plans = PlanGateway(session)
        self._contracts = ContractGateway(session)
        self._cascade = CascadeEngine(session, cleaner, commit=self._commit)

    def create(
        self,
        *,
        nombre: Any,
        apellido: Any,
        email: Any,
        telefono: Any,
        fecha_registro: Any = None,
        activo: Any = True,
        nivel: Any = None,
    ) -> ClientInfo:
        """
        Raises:
            ValidationError: A field fails its constraint.
            DuplicateEmailError: The email is already registered.
        """
        with self._unit("client_create"):
            client = validate_client(
                nombre=nombre,
                apellido=apellido,
                email=email,
                telefono=telefono,
                now=self._clock.now(),
                fecha_registro=fecha_registro,
                activo=activo,
                nivel=nivel,
            )
            if self._clients.find_by_email(client.email) is not None:
                raise DuplicateEmailError(client.email)
            created = self._clients.insert(client)
            logger.info(
                "client_created",
                extra={"client_id": str(created.id), "nivel": created.nivel.value},
            )
        return created

    def update(self, cliente_id: UUID, changes: Mapping[str, Any]) -> ClientInfo:
        """Re-validate and write changed fields.  Plan references are not updatable here."""
        with self._unit("client_update", client_id=cliente_id, fields=sorted(changes)):
            current = self._clients.get_by_id(cliente_id)
            updated = validate_client_update(current, changes, self._clock.now())
            if updated.email != current.email:
                other = self._clients.find_by_email(updated.email)
                if other is not None and other.id != current.id:
                    raise DuplicateEmailError(updated.email)
            updated = self._clients.update(updated)
            logger.info("client_updated", extra={"fields": sorted(changes)})
        return updated

    def delete(self, cliente_id: UUID) -> ClientDeletionResult:
        """
        Delete a client without vigente contracts.

        Raises:
            ClientNotFoundError: Unknown id.
            ActiveContractExistsError: The client holds vigente contracts.
        """
        with self._unit("client_delete", client_id=cliente_id):
            client = self._clients.get_by_id(cliente_id)
            if self._contracts.list_active_by_client(client.id):
                raise ActiveContractExistsError(client.id)

            plan_ids = {p.id for p in self._plans.list_with_client(client.id)} | set(client.planes)
            detached = []
            with self._session.begin_nested():
                for plan_id in sorted(plan_ids, key=str):
                    if self._plans.exists(plan_id) and self._plans.remove_client_reference(plan_id, client.id):
                        detached.append(plan_id)
                self._clients.delete(client.id)
            self._commit()

            compensation = self._cascade.compensate(CLIENT_TARGET, client.id, "client deleted")
            logger.info(
                "client_deleted",
                extra={"plans_detached": len(detached), "compensation": compensation.status.value},
            )
        return ClientDeletionResult(
            client=client,
            detached_plan_ids=tuple(detached),
            compensation=compensation,
        )

    def get_by_id(self, cliente_id: UUID) -> ClientInfo:
        with self._reading():
            return self._clients.get_by_id(cliente_id)

    def find_by_email(self, email: str) -> ClientInfo | None:
        with self._reading():
            return self._clients.find_by_email(email)

    def list_active(self) -> list[ClientInfo]:
        with self._reading():
            return self._clients.list_active()
