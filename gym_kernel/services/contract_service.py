"""
ContractService -- contract lifecycle operations.

Responsibility:
    Create, cancel, extend, finalize and delete contracts, and list them by
    client, date range and expiry window.

Architecture position:
    Kernel > Services.  Composes ClientGateway, PlanGateway,
    ContractGateway, ContractSelector and CascadeEngine.

Invariants enforced:
    - At most one vigente contract per (cliente_id, plan_id).  The
      existence check and the insert share one savepoint, and the partial
      unique index rejects a concurrent duplicate with the same error.
    - Contracts are only created against an existing client and an activo
      plan.
    - Terminal contracts (cancelado, finalizado) never change state again.

Failure modes:
    - ValidationError, ClientNotFoundError, PlanNotFoundError,
      PlanNotActiveError, DuplicateActiveContractError.
    - AlreadyCancelledError / InvalidStateTransitionError from the guard.
    - ActiveContractExistsError when deleting a vigente contract.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from gym_kernel.domain.clock import Clock
from gym_kernel.domain.entities import ContractInfo
from gym_kernel.domain.lifecycle import (
    CONTRACT_LIFECYCLE,
    ContractState,
    require_state,
    require_transition,
)
from gym_kernel.domain.progress_cleanup import ProgressLogCleaner
from gym_kernel.domain.results import ContractCancellationResult
from gym_kernel.domain.validation import optional_text, require_datetime, require_int, validate_contract
from gym_kernel.domain.values import add_months
from gym_kernel.exceptions import (
    ActiveContractExistsError,
    DuplicateActiveContractError,
    PlanNotActiveError,
    ValidationError,
)
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.logging_config import get_logger
from gym_kernel.selectors.contract_selector import ContractSelector, ContractStats
from gym_kernel.services.base import BaseService
from gym_kernel.services.cascade import CONTRACT_TARGET, CascadeEngine

logger = get_logger("services.contract")

DEFAULT_NEAR_EXPIRATION_DAYS = 30
MAX_DURATION_MONTHS = 60


class ContractService(BaseService):
    """
    Contract lifecycle.

    Contract:
        Every write is one unit of work (see BaseService).  ``cancel``
        commits the cancellation before running compensation.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
        cleaner: ProgressLogCleaner | None = None,
        near_expiration_days: int = DEFAULT_NEAR_EXPIRATION_DAYS,
    ):
        super().__init__(session, clock, auto_commit, actor_id)
        self._clients = ClientGateway(session)
        self._plans = PlanGateway(session)
        self._contracts = ContractGateway(session)
        self._selector = ContractSelector(session)
        self._cascade = CascadeEngine(session, cleaner, commit=self._commit)
        self._near_expiration_days = near_expiration_days

    # -- writes -------------------------------------------------------------

    def create(
        self,
        *,
        cliente_id: Any,
        plan_id: Any,
        condiciones: Any,
        duracion_meses: Any,
        precio: Any,
        fecha_inicio: Any = None,
        fecha_fin: Any = None,
    ) -> ContractInfo:
        """
        Create a vigente contract for a client and an activo plan.

        Raises:
            ValidationError: If a field fails its constraint.
            ClientNotFoundError / PlanNotFoundError: Unknown references.
            PlanNotActiveError: The plan is cancelado or finalizado.
            DuplicateActiveContractError: The pair already has a vigente
                contract, including one committed by a concurrent writer.
        """
        with self._unit("contract_create", client_id=cliente_id, plan_id=plan_id):
            contract = validate_contract(
                cliente_id=cliente_id,
                plan_id=plan_id,
                condiciones=condiciones,
                duracion_meses=duracion_meses,
                precio=precio,
                now=self._clock.now(),
                fecha_inicio=fecha_inicio,
                fecha_fin=fecha_fin,
            )
            # Held until commit: a plan being cancelled cannot gain a contract.
            plan = self._plans.lock(contract.plan_id)
            if not plan.is_active:
                raise PlanNotActiveError(plan.id, plan.estado.value)
            self._clients.get_by_id(contract.cliente_id)

            with self._session.begin_nested():
                if self._contracts.find_vigente_for_pair(contract.cliente_id, contract.plan_id):
                    raise DuplicateActiveContractError(contract.cliente_id, contract.plan_id)
                created = self._contracts.insert(contract)

            logger.info(
                "contract_created",
                extra={
                    "contract_id": str(created.id),
                    "precio": created.precio,
                    "duracion_meses": created.duracion_meses,
                },
            )
        return created

    def cancel(self, contract_id: UUID, motivo: str | None = None) -> ContractCancellationResult:
        """
        Cancel a contract, then clean up the progress logs tagged with it.

        Raises:
            ContractNotFoundError: Unknown id.
            AlreadyCancelledError: The contract is already cancelado.
            InvalidStateTransitionError: The contract is finalizado.
        """
        with self._unit("contract_cancel"):
            reason = optional_text("motivo", motivo, 500)
            cancelled = self._cascade.cancel_contract(contract_id, reason)
            self._commit()
            compensation = self._cascade.compensate(
                CONTRACT_TARGET, cancelled.id, reason or "contract cancelled"
            )
        return ContractCancellationResult(contract=cancelled, compensation=compensation)

    def extend(self, contract_id: UUID, meses: Any) -> ContractInfo:
        """
        Add ``meses`` calendar months to a vigente contract.

        Raises:
            ValidationError: ``meses`` is not a positive integer, or the
                total duration would exceed the maximum.
            InvalidStateTransitionError: The contract is not vigente.
        """
        with self._unit("contract_extend", months=meses):
            months = require_int("meses", meses, 1, MAX_DURATION_MONTHS)
            contract = self._contracts.get_by_id(contract_id)
            require_state(
                CONTRACT_LIFECYCLE, contract.estado, ContractState.VIGENTE, contract.id, "extend"
            )
            total = contract.duracion_meses + months
            if total > MAX_DURATION_MONTHS:
                raise ValidationError(
                    "meses", f"total duration cannot exceed {MAX_DURATION_MONTHS} months"
                )
            extended = self._contracts.extend(
                contract.id, total, add_months(contract.fecha_fin, months)
            )
            logger.info(
                "contract_extended",
                extra={
                    "contract_id": str(extended.id),
                    "duracion_meses": extended.duracion_meses,
                    "fecha_fin": extended.fecha_fin,
                },
            )
        return extended

    def finalize(self, contract_id: UUID) -> ContractInfo:
        with self._unit("contract_finalize"):
            contract = self._contracts.get_by_id(contract_id)
            require_transition(
                CONTRACT_LIFECYCLE, contract.estado, ContractState.FINALIZADO, contract.id
            )
            finalized = self._contracts.set_state(contract.id, ContractState.FINALIZADO)
            logger.info("contract_finalized", extra={"contract_id": str(finalized.id)})
        return finalized

    def delete(self, contract_id: UUID) -> None:
        """
        Raises:
            ContractNotFoundError: Unknown id.
            ActiveContractExistsError: The contract is still vigente.
        """
        with self._unit("contract_delete"):
            contract = self._contracts.get_by_id(contract_id)
            if contract.is_vigente:
                raise ActiveContractExistsError(contract.cliente_id, contract.plan_id)
            self._contracts.delete(contract.id)
            logger.info("contract_deleted", extra={"contract_id": str(contract.id)})

    # -- reads --------------------------------------------------------------

    def get_by_id(self, contract_id: UUID) -> ContractInfo:
        with self._reading():
            return self._contracts.get_by_id(contract_id)

    def find_by_id(self, contract_id: UUID) -> ContractInfo | None:
        with self._reading():
            return self._contracts.find_by_id(contract_id)

    def list_by_client(self, cliente_id: UUID) -> list[ContractInfo]:
        with self._reading():
            return self._contracts.list_by_client(cliente_id)

    def list_active_by_client(self, cliente_id: UUID) -> list[ContractInfo]:
        with self._reading():
            return self._contracts.list_active_by_client(cliente_id)

    def list_by_plan(self, plan_id: UUID, estado: ContractState | str | None = None) -> list[ContractInfo]:
        with self._reading():
            return self._contracts.list_by_plan(plan_id, estado)

    def list_by_date_range(
        self,
        start: datetime,
        end: datetime,
        estado: ContractState | str | None = None,
    ) -> list[ContractInfo]:
        """Contracts starting in [start, end], optionally in one state."""
        start = require_datetime("start", start)
        end = require_datetime("end", end)
        if start > end:
            raise ValidationError("start", "must not be after end")
        with self._reading():
            return self._contracts.list_by_date_range(start, end, estado)

    def list_near_expiration(self, days: int | None = None) -> list[ContractInfo]:
        """Vigente contracts ending within the next ``days`` days."""
        window = require_int("days", days if days is not None else self._near_expiration_days, 1, 3650)
        now = self._clock.now()
        with self._reading():
            return self._contracts.list_vigente_ending_between(now, now + timedelta(days=window))

    def list_expired(self) -> list[ContractInfo]:
        """Vigente contracts whose end date has passed."""
        with self._reading():
            return self._contracts.list_vigente_ended_before(self._clock.now())

    def stats(self) -> ContractStats:
        with self._reading():
            return self._selector.stats(self._clock.now())

