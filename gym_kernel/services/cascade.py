"""
CascadeEngine -- contract cancellation with best-effort compensation.

Responsibility:
    Cancels contracts, singly or for every client associated with a plan
    whose state moves to cancelado/finalizado, and runs the progress-log
    cleanup that follows each cancellation.

Architecture position:
    Kernel > Services.  Used by ContractService.cancel and
    PlanService.change_state; never called by outside code directly.

Invariants enforced:
    - Each client is an independent unit: its contract cancellation runs
      in its own savepoint and is handed to ``commit`` before the next
      client starts.
    - A failed cancellation stops the cascade with CascadeAbortedError.
      Units already handed to ``commit`` stay as they are.
    - Compensation runs in a savepoint of its own, only after a contract
      was actually cancelled.  Its failure is recorded, logged at WARNING
      and never reverses the cancellation.

Failure modes:
    - CascadeAbortedError (primary phase failed for one client).
    - Guard errors from the contract lifecycle when cancelling singly.
"""

from __future__ import annotations

from typing import Callable, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from gym_kernel.domain.entities import ContractInfo
from gym_kernel.domain.lifecycle import CONTRACT_LIFECYCLE, ContractState, require_transition
from gym_kernel.domain.progress_cleanup import ProgressLogCleaner
from gym_kernel.domain.results import ClientCascadeOutcome, PhaseResult
from gym_kernel.exceptions import CascadeAbortedError, CompensationFailure
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.progress_log_gateway import ProgressLogGateway
from gym_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.cascade")

CLIENT_TARGET = "client"
CONTRACT_TARGET = "contract"


class CascadeEngine:
    """
    Contract cancellation and compensation over one session.

    Contract:
        ``commit`` is called after each completed client unit.  Services
        pass their own commit (a no-op without auto_commit).

    Non-goals:
        - Does NOT change plan state.  PlanService does that once every
          client unit succeeded.
    """

    def __init__(
        self,
        session: Session,
        cleaner: ProgressLogCleaner | None = None,
        commit: Callable[[], None] | None = None,
    ):
        self._session = session
        self._contracts = ContractGateway(session)
        self._cleaner = cleaner if cleaner is not None else ProgressLogGateway(session)
        self._commit = commit or (lambda: None)

    def cancel_contract(self, contract_id: UUID, motivo: str | None = None) -> ContractInfo:
        """
        Move a contract to cancelado.

        Raises:
            ContractNotFoundError: If the id does not resolve.
            AlreadyCancelledError: If it is already cancelado.
            InvalidStateTransitionError: If it is finalizado.
        """
        contract = self._contracts.get_by_id(contract_id)
        require_transition(CONTRACT_LIFECYCLE, contract.estado, ContractState.CANCELADO, contract.id)
        cancelled = self._contracts.set_state(contract.id, ContractState.CANCELADO, motivo)
        logger.info(
            "contract_cancelled",
            extra={
                "contract_id": str(cancelled.id),
                "cliente_id": str(cancelled.cliente_id),
                "plan_id": str(cancelled.plan_id),
                "motivo": motivo,
            },
        )
        return cancelled

    def compensate(self, target: str, target_id: UUID, reason: str) -> PhaseResult:
        """Delete progress logs for a client or a contract.  Never raises."""
        try:
            with self._session.begin_nested():
                if target == CLIENT_TARGET:
                    removed = self._cleaner.delete_by_client_id(target_id, reason)
                else:
                    removed = self._cleaner.delete_by_contract_id(target_id, reason)
        except Exception as exc:
            failure = CompensationFailure(target, target_id, str(exc))
            failure.__cause__ = exc
            logger.warning(
                "compensation_failed",
                extra={"target": target, "target_id": str(target_id), "reason": reason},
                exc_info=True,
            )
            return PhaseResult.failed(failure)
        return PhaseResult.ok(removed)

    def cancel_for_plan(
        self,
        plan_id: UUID,
        cliente_ids: Iterable[UUID],
        reason: str,
    ) -> tuple[ClientCascadeOutcome, ...]:
        """
        Cancel the vigente contract of each client for ``plan_id``.

        Raises:
            CascadeAbortedError: On the first client whose cancellation
                fails.  Carries the clients completed before it.
        """
        completed: list[UUID] = []
        outcomes: list[ClientCascadeOutcome] = []

        for cliente_id in cliente_ids:
            with LogContext.bind(client_id=cliente_id):
                try:
                    with self._session.begin_nested():
                        cancelled = self._cancel_client_contract(plan_id, cliente_id, reason)
                except Exception as exc:
                    logger.error(
                        "cascade_aborted",
                        extra={
                            "failed_cliente_id": str(cliente_id),
                            "completed": len(completed),
                        },
                        exc_info=True,
                    )
                    raise CascadeAbortedError(plan_id, cliente_id, completed, exc) from exc

                self._commit()

                if cancelled is None:
                    compensation = PhaseResult.skipped()
                else:
                    compensation = self.compensate(CLIENT_TARGET, cliente_id, reason)
                    self._commit()

                completed.append(cliente_id)
                outcomes.append(
                    ClientCascadeOutcome(
                        cliente_id=cliente_id,
                        primary=PhaseResult.ok(cancelled),
                        compensation=compensation,
                    )
                )
                logger.info(
                    "cascade_client_completed",
                    extra={
                        "contract_id": str(cancelled.id) if cancelled else None,
                        "compensation": compensation.status.value,
                    },
                )

        return tuple(outcomes)

    def _cancel_client_contract(
        self, plan_id: UUID, cliente_id: UUID, reason: str
    ) -> ContractInfo | None:
        vigentes = self._contracts.list_active_by_client(cliente_id)
        match = next((c for c in vigentes if c.plan_id == plan_id), None)
        if match is None:
            return None
        return self.cancel_contract(match.id, reason)
