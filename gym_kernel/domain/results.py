"""
Operation results (``gym_kernel.domain.results``).

Responsibility
--------------
Structured payloads returned by multi-phase operations.  A cascade returns
one ``ClientCascadeOutcome`` per client with two independently assertable
phases:

    primary       -- contract cancellation: OK(ContractInfo) or
                     OK(None) when the client had no vigente contract
    compensation  -- progress-log cleanup: OK(count), FAILED(CompensationFailure)
                     or SKIPPED when there was nothing to compensate

A failed primary phase is never part of a returned result: it aborts the
cascade with ``CascadeAbortedError``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from gym_kernel.domain.entities import ClientInfo, ContractInfo, PlanInfo
from gym_kernel.domain.lifecycle import PlanState
from gym_kernel.exceptions import GymKernelError


class PhaseStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PhaseResult:
    """Outcome of one phase: a value, an error, or skipped."""

    status: PhaseStatus
    value: Any = None
    error: GymKernelError | None = None

    @classmethod
    def ok(cls, value: Any = None) -> "PhaseResult":
        return cls(PhaseStatus.OK, value=value)

    @classmethod
    def failed(cls, error: GymKernelError) -> "PhaseResult":
        return cls(PhaseStatus.FAILED, error=error)

    @classmethod
    def skipped(cls) -> "PhaseResult":
        return cls(PhaseStatus.SKIPPED)

    @property
    def is_ok(self) -> bool:
        return self.status == PhaseStatus.OK

    @property
    def is_failed(self) -> bool:
        return self.status == PhaseStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.status == PhaseStatus.SKIPPED


@dataclass(frozen=True)
class ClientCascadeOutcome:
    """What the cascade did for one associated client."""

    cliente_id: UUID
    primary: PhaseResult
    compensation: PhaseResult

    @property
    def cancelled_contract(self) -> ContractInfo | None:
        return self.primary.value if self.primary.is_ok else None


@dataclass(frozen=True)
class PlanStateChangeResult:
    """Result of PlanService.change_state."""

    plan: PlanInfo
    previous_state: PlanState
    outcomes: tuple[ClientCascadeOutcome, ...] = ()

    @property
    def new_state(self) -> PlanState:
        return self.plan.estado

    @property
    def cancelled_contract_ids(self) -> tuple[UUID, ...]:
        return tuple(
            o.cancelled_contract.id for o in self.outcomes if o.cancelled_contract is not None
        )

    @property
    def compensation_failures(self) -> tuple[ClientCascadeOutcome, ...]:
        return tuple(o for o in self.outcomes if o.compensation.is_failed)

    @property
    def fully_compensated(self) -> bool:
        return not self.compensation_failures


@dataclass(frozen=True)
class ContractCancellationResult:
    """Result of cancelling a single contract outside a cascade."""

    contract: ContractInfo
    compensation: PhaseResult


@dataclass(frozen=True)
class AssociationResult:
    """Both sides of a plan-client reference after a dual write."""

    plan: PlanInfo
    client: ClientInfo
    modified: bool = True

    @property
    def consistent(self) -> bool:
        return self.plan.has_client(self.client.id) == self.client.has_plan(self.plan.id)


@dataclass(frozen=True)
class ClientDeletionResult:
    """Result of ClientService.delete."""

    client: ClientInfo
    detached_plan_ids: tuple[UUID, ...]
    compensation: PhaseResult
