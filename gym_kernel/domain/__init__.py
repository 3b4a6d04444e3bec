"""
Pure domain layer.

Entities, validators, state machines, values and operation results with
NO dependencies on:
- ORM (SQLAlchemy)
- Database
- System time (a Clock is injected)

All domain objects are immutable.
"""

from gym_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from gym_kernel.domain.entities import (
    ClientInfo,
    ContractInfo,
    PaymentInfo,
    PlanInfo,
    ProgressLogInfo,
)
from gym_kernel.domain.lifecycle import (
    CONTRACT_LIFECYCLE,
    PAYMENT_LIFECYCLE,
    PLAN_LIFECYCLE,
    ContractState,
    PaymentState,
    PlanState,
    require_transition,
)
from gym_kernel.domain.policy import LevelPolicy
from gym_kernel.domain.results import (
    AssociationResult,
    ClientCascadeOutcome,
    ClientDeletionResult,
    ContractCancellationResult,
    PhaseResult,
    PhaseStatus,
    PlanStateChangeResult,
)
from gym_kernel.domain.values import MovementType, PaymentMethod, TrainingLevel, round2

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ClientInfo",
    "ContractInfo",
    "PaymentInfo",
    "PlanInfo",
    "ProgressLogInfo",
    "CONTRACT_LIFECYCLE",
    "PAYMENT_LIFECYCLE",
    "PLAN_LIFECYCLE",
    "ContractState",
    "PaymentState",
    "PlanState",
    "require_transition",
    "LevelPolicy",
    "AssociationResult",
    "ClientCascadeOutcome",
    "ClientDeletionResult",
    "ContractCancellationResult",
    "PhaseResult",
    "PhaseStatus",
    "PlanStateChangeResult",
    "MovementType",
    "PaymentMethod",
    "TrainingLevel",
    "round2",
]
