"""
PlanService -- training plans and the plan -> contract cascade.

Responsibility:
    Create, update and delete plans; change plan state, cascading the
    change to the vigente contracts of associated clients; rankings and
    statistics.

Architecture position:
    Kernel > Services.  Composes PlanGateway, ContractGateway,
    PlanSelector, CascadeEngine and AssociationService.

Invariants enforced:
    - Every state change passes ``require_transition`` against
      PLAN_LIFECYCLE.
    - Entering cancelado or finalizado cancels the vigente contract of
      every associated client before the plan state is written.  If a
      cancellation fails the plan keeps its previous state.
    - The plan row is locked while its state is decided.  Clients
      associated or contracted between cascade units are swept up before
      the state is written, so no vigente contract survives its plan.
    - A plan is deleted only with zero clients and zero vigente contracts.
    - Plan names are unique.

Failure modes:
    - ValidationError, PlanNotFoundError, DuplicateNameError.
    - InvalidStateTransitionError / AlreadyCancelledError from the guard.
    - CascadeAbortedError when a client's contract cannot be cancelled.
    - EntityInUseError when deleting a plan that is still referenced.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from gym_kernel.domain.clock import Clock
from gym_kernel.domain.entities import PlanInfo
from gym_kernel.domain.lifecycle import (
    CASCADE_PLAN_STATES,
    PLAN_LIFECYCLE,
    ContractState,
    PlanState,
    require_transition,
)
from gym_kernel.domain.policy import LevelPolicy
from gym_kernel.domain.progress_cleanup import ProgressLogCleaner
from gym_kernel.domain.results import (
    AssociationResult,
    ClientCascadeOutcome,
    PlanStateChangeResult,
)
from gym_kernel.domain.validation import (
    optional_text,
    require_enum,
    require_int,
    validate_plan,
    validate_plan_update,
)
from gym_kernel.domain.values import TrainingLevel
from gym_kernel.exceptions import DuplicateNameError, EntityInUseError, ValidationError
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.selectors.plan_selector import PlanPopularity, PlanSelector, PlanStats
from gym_kernel.services.association_service import AssociationService
from gym_kernel.services.base import BaseService
from gym_kernel.services.cascade import CascadeEngine

logger = get_logger("services.plan")


class PlanService(BaseService):
    """
    Training plan operations.

    Contract:
        ``change_state`` commits each client's cascade unit on its own when
        ``auto_commit`` is set, then commits the plan state.

    Guarantees:
        - The returned PlanStateChangeResult lists one outcome per client
          unit, in association order.  A client whose contract was
          re-created during the cascade has a second outcome.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
        cleaner: ProgressLogCleaner | None = None,
        level_policy: LevelPolicy | None = None,
    ):
        super().__init__(session, clock, auto_commit, actor_id)
        self._plans = PlanGateway(session)
        self._contracts = ContractGateway(session)
        self._selector = PlanSelector(session)
        self._cascade = CascadeEngine(session, cleaner, commit=self._commit)
        self._associations = AssociationService(
            session, self._clock, auto_commit, actor_id, level_policy
        )

    # -- writes -------------------------------------------------------------

    def create(
        self,
        *,
        nombre: Any,
        duracion_semanas: Any,
        metas_fisicas: Any,
        nivel: Any,
    ) -> PlanInfo:
        """
        Raises:
            ValidationError: A field fails its constraint.
            DuplicateNameError: Another plan has the name.
        """
        with self._unit("plan_create"):
            plan = validate_plan(
                nombre=nombre,
                duracion_semanas=duracion_semanas,
                metas_fisicas=metas_fisicas,
                nivel=nivel,
            )
            if self._plans.find_by_name(plan.nombre) is not None:
                raise DuplicateNameError(plan.nombre)
            created = self._plans.insert(plan)
            logger.info(
                "plan_created",
                extra={"plan_id": str(created.id), "nombre": created.nombre, "nivel": created.nivel.value},
            )
        return created

    def update(self, plan_id: UUID, changes: Mapping[str, Any]) -> PlanInfo:
        """
        Re-validate and write changed fields.  An ``estado`` key is routed
        through change_state (cascade included).

        Fields and transition are both checked before anything is written;
        with a state change the fields are written once it has succeeded,
        so a rejected or aborted change leaves the plan untouched.
        """
        changes = dict(changes)
        target = changes.pop("estado", None)
        with self._unit("plan_update", plan_id=plan_id, fields=sorted(changes)):
            current = self._plans.get_by_id(plan_id)
            self._validated_fields(current, changes)
            state = None if target is None else require_enum("estado", target, PlanState)
            if state is None or state == current.estado:
                return self._write_fields(current, changes)
            require_transition(PLAN_LIFECYCLE, current.estado, state, current.id)

        self.change_state(plan_id, state)
        with self._unit("plan_update", plan_id=plan_id, fields=sorted(changes)):
            return self._write_fields(self._plans.get_by_id(plan_id), changes)

    def _validated_fields(self, current: PlanInfo, changes: Mapping[str, Any]) -> PlanInfo:
        if not changes:
            return current
        updated = validate_plan_update(current, changes)
        if updated.nombre != current.nombre:
            other = self._plans.find_by_name(updated.nombre)
            if other is not None and other.id != current.id:
                raise DuplicateNameError(updated.nombre)
        return updated

    def _write_fields(self, current: PlanInfo, changes: Mapping[str, Any]) -> PlanInfo:
        if not changes:
            return current
        updated = self._plans.update(self._validated_fields(current, changes))
        logger.info("plan_updated", extra={"fields": sorted(changes)})
        return updated

    def delete(self, plan_id: UUID) -> None:
        """
        Raises:
            PlanNotFoundError: Unknown id.
            EntityInUseError: The plan has clients or vigente contracts.
        """
        with self._unit("plan_delete", plan_id=plan_id):
            plan = self._plans.get_by_id(plan_id)
            if plan.client_count:
                raise EntityInUseError("plan", plan.id, f"{plan.client_count} associated clients")
            vigentes = self._contracts.count_vigente_by_plan(plan.id)
            if vigentes:
                raise EntityInUseError("plan", plan.id, f"{vigentes} vigente contracts")
            self._plans.delete(plan.id)
            logger.info("plan_deleted", extra={"nombre": plan.nombre})

    def change_state(
        self,
        plan_id: UUID,
        new_state: PlanState | str,
        motivo: str | None = None,
    ) -> PlanStateChangeResult:
        """
        Move a plan to ``new_state``.

        Entering cancelado or finalizado first cancels the vigente contract
        of each associated client for this plan and cleans up that client's
        progress logs.  Cleanup failures are reported in the result.

        Raises:
            PlanNotFoundError: Unknown id.
            InvalidStateTransitionError / AlreadyCancelledError: Transition
                not allowed.
            CascadeAbortedError: A client's contract could not be cancelled.
                Clients processed before it stay cancelled; the plan state
                is unchanged.
        """
        with self._unit("plan_change_state", plan_id=plan_id, to_state=new_state):
            reason_text = optional_text("motivo", motivo, 500)
            plan = self._plans.lock(plan_id)
            previous = plan.estado
            target = require_transition(PLAN_LIFECYCLE, previous, new_state, plan.id)

            outcomes: tuple[ClientCascadeOutcome, ...] = ()
            if target in CASCADE_PLAN_STATES:
                outcomes, plan = self._cascade_until_settled(
                    plan, target, reason_text or f"Plan {target}"
                )
                # Another writer may have moved the plan between client units.
                target = require_transition(PLAN_LIFECYCLE, plan.estado, target, plan.id)

            updated = self._plans.set_state(plan.id, PlanState(target))
            result = PlanStateChangeResult(
                plan=updated, previous_state=previous, outcomes=outcomes
            )
            logger.info(
                "plan_state_changed",
                extra={
                    "from_state": previous.value,
                    "to_state": target,
                    "contracts_cancelled": len(result.cancelled_contract_ids),
                    "compensation_failures": len(result.compensation_failures),
                },
            )
        return result

    def _cascade_until_settled(
        self,
        plan: PlanInfo,
        target: str,
        reason: str,
    ) -> tuple[tuple[ClientCascadeOutcome, ...], PlanInfo]:
        """
        Cascade over the plan's clients until a pass finds nothing left.

        Client units commit one by one, releasing the plan lock, so each
        pass ends by re-locking the plan and picking up clients associated
        meanwhile and clients given a new vigente contract meanwhile.  The
        final pass keeps the lock through the state write.
        """
        outcomes: list[ClientCascadeOutcome] = []
        processed: set[UUID] = set()
        pending = list(plan.clientes)
        passes = 0
        while pending:
            passes += 1
            logger.info(
                "cascade_started",
                extra={"to_state": target, "clients": len(pending), "pass": passes},
            )
            outcomes.extend(self._cascade.cancel_for_plan(plan.id, pending, reason))
            processed.update(pending)
            plan = self._plans.lock(plan.id)
            vigentes = {
                c.cliente_id for c in self._contracts.list_by_plan(plan.id, ContractState.VIGENTE)
            }
            pending = [c for c in plan.clientes if c not in processed or c in vigentes]
        return tuple(outcomes), plan

    def associate_client(self, plan_id: UUID, cliente_id: UUID) -> AssociationResult:
        return self._associations.associate(plan_id, cliente_id)

    def disassociate_client(self, plan_id: UUID, cliente_id: UUID) -> AssociationResult:
        return self._associations.disassociate(plan_id, cliente_id)

    # -- reads --------------------------------------------------------------

    def get_by_id(self, plan_id: UUID) -> PlanInfo:
        with self._reading():
            return self._plans.get_by_id(plan_id)

    def find_by_name(self, nombre: str) -> PlanInfo | None:
        with self._reading():
            return self._plans.find_by_name(nombre)

    def list_all(self) -> list[PlanInfo]:
        with self._reading():
            return self._plans.list_all()

    def list_active(self) -> list[PlanInfo]:
        with self._reading():
            return self._plans.list_by_state(PlanState.ACTIVO)

    def list_by_level(self, nivel: TrainingLevel | str) -> list[PlanInfo]:
        level = require_enum("nivel", nivel, TrainingLevel)
        with self._reading():
            return self._plans.list_by_level(level)

    def list_by_duration_range(self, min_weeks: int, max_weeks: int) -> list[PlanInfo]:
        low = require_int("min_weeks", min_weeks, 0, 10_000)
        high = require_int("max_weeks", max_weeks, 0, 10_000)
        if low > high:
            raise ValidationError("min_weeks", "must not be greater than max_weeks")
        with self._reading():
            return self._plans.list_by_duration_range(low, high)

    def list_by_client(self, cliente_id: UUID) -> list[PlanInfo]:
        with self._reading():
            return self._plans.list_with_client(cliente_id)

    def list_without_clients(self) -> list[PlanInfo]:
        with self._reading():
            return self._selector.without_clients()

    def most_popular(self, limit: int = 5) -> list[PlanPopularity]:
        with self._reading():
            return self._selector.most_popular(limit)

    def stats(self) -> PlanStats:
        with self._reading():
            return self._selector.stats()
