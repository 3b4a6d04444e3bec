"""
AssociationService -- the plan/client reference pair.

Responsibility:
    Associate and disassociate clients and plans.  Both sides hold the
    reference (``plan.clientes`` and ``client.planes``), so each operation
    is a dual write.

Architecture position:
    Kernel > Services.  The only public path to the reference primitives
    of PlanGateway and ClientGateway.

Invariants enforced:
    - Bidirectionality: after any committed operation, client C is in
      plan P's list iff P is in C's list.  Both writes run in one
      savepoint, so a failure on either side leaves neither applied.
    - Only activo plans accept new clients, and only clients whose level
      the LevelPolicy allows.
    - A pair with a vigente contract cannot be disassociated.
    - The plan row, then the client row, is locked before either list is
      read, so concurrent associations to one plan serialize and a plan
      being cancelled admits no new client.
"""

from __future__ import annotations

from uuid import UUID

from gym_kernel.domain.clock import Clock
from gym_kernel.domain.entities import PlanInfo
from gym_kernel.domain.lifecycle import PlanState
from gym_kernel.domain.policy import LevelPolicy
from gym_kernel.domain.results import AssociationResult
from gym_kernel.exceptions import (
    ActiveContractExistsError,
    AlreadyAssociatedError,
    LevelIncompatibleError,
    NotAssociatedError,
    PlanNotActiveError,
)
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.services.base import BaseService

logger = get_logger("services.association")


class AssociationService(BaseService):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
        level_policy: LevelPolicy | None = None,
    ):
        super().__init__(session, clock, auto_commit, actor_id)
        self._plans = PlanGateway(session)
        self._clients = ClientGateway(session)
        self._contracts = ContractGateway(session)
        self._policy = level_policy or LevelPolicy.default()

    def associate(self, plan_id: UUID, cliente_id: UUID) -> AssociationResult:
        """
        Add the client to the plan and the plan to the client.

        Raises:
            PlanNotFoundError: Unknown plan id.
            PlanNotActiveError: The plan is not activo.
            ClientNotFoundError: Unknown client id.
            LevelIncompatibleError: The policy rejects the level pair.
            AlreadyAssociatedError: Either side already holds the reference.
        """
        with self._unit("plan_associate_client", plan_id=plan_id, client_id=cliente_id):
            plan = self._plans.lock(plan_id)
            if not plan.is_active:
                raise PlanNotActiveError(plan.id, plan.estado.value)
            client = self._clients.lock(cliente_id)
            if not self._policy.is_compatible(client.nivel, plan.nivel):
                raise LevelIncompatibleError(client.nivel.value, plan.nivel.value)
            if plan.has_client(client.id) or client.has_plan(plan.id):
                raise AlreadyAssociatedError(plan.id, client.id)

            with self._session.begin_nested():
                self._plans.add_client_reference(plan.id, client.id)
                self._clients.add_plan_reference(client.id, plan.id)

            result = AssociationResult(
                plan=self._plans.get_by_id(plan.id),
                client=self._clients.get_by_id(client.id),
            )
            logger.info("client_associated", extra={"client_count": result.plan.client_count})
        return result

    def disassociate(self, plan_id: UUID, cliente_id: UUID) -> AssociationResult:
        """
        Remove the reference from both sides.

        Raises:
            PlanNotFoundError / ClientNotFoundError: Unknown ids.
            NotAssociatedError: Neither side holds the reference.
            ActiveContractExistsError: The pair has a vigente contract.
        """
        with self._unit("plan_disassociate_client", plan_id=plan_id, client_id=cliente_id):
            plan = self._plans.lock(plan_id)
            client = self._clients.lock(cliente_id)
            if not plan.has_client(client.id) and not client.has_plan(plan.id):
                raise NotAssociatedError(plan.id, client.id)
            if self._contracts.find_vigente_for_pair(client.id, plan.id) is not None:
                raise ActiveContractExistsError(client.id, plan.id)

            with self._session.begin_nested():
                self._plans.remove_client_reference(plan.id, client.id)
                self._clients.remove_plan_reference(client.id, plan.id)

            result = AssociationResult(
                plan=self._plans.get_by_id(plan.id),
                client=self._clients.get_by_id(client.id),
            )
            logger.info("client_disassociated", extra={"client_count": result.plan.client_count})
        return result

    def available_plans_for_client(self, cliente_id: UUID) -> list[PlanInfo]:
        """Activo, level-compatible plans the client has not joined yet."""
        with self._reading():
            client = self._clients.get_by_id(cliente_id)
            return [
                plan
                for plan in self._plans.list_by_state(PlanState.ACTIVO)
                if self._policy.is_compatible(client.nivel, plan.nivel)
                and not client.has_plan(plan.id)
                and not plan.has_client(client.id)
            ]
