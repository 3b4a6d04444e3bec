"""
Lifecycle state machines (``gym_kernel.domain.lifecycle``).

Responsibility
--------------
Closed state enums for plans, contracts and payments, one transition table
per entity, and the single guard (``require_transition``) every service
calls before changing a state.  No state change anywhere in the kernel is
decided by an ad hoc conditional.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states of their own lifecycle.
* Terminal states have no outgoing transitions, so no sequence of allowed
  transitions leaves ``cancelado`` (payment) or ``finalizado`` (plan).

Tables
------
Plan:     activo -> cancelado | finalizado;  cancelado -> activo
Contract: vigente -> cancelado | finalizado
Payment:  pendiente -> pagado | retrasado | cancelado
          retrasado -> pagado | pendiente | cancelado
          pagado    -> cancelado
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from gym_kernel.exceptions import AlreadyCancelledError, InvalidStateTransitionError


class PlanState(str, Enum):
    ACTIVO = "activo"
    CANCELADO = "cancelado"
    FINALIZADO = "finalizado"


class ContractState(str, Enum):
    VIGENTE = "vigente"
    CANCELADO = "cancelado"
    FINALIZADO = "finalizado"


class PaymentState(str, Enum):
    PENDIENTE = "pendiente"
    PAGADO = "pagado"
    RETRASADO = "retrasado"
    CANCELADO = "cancelado"


@dataclass(frozen=True)
class Transition:
    """An allowed state change, named by the operation that performs it."""

    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Lifecycle:
    """A closed state machine for one entity type.

    Contract: frozen; ``transitions`` reference only ``states``.
    Guarantees: ``terminal_states`` have no outgoing transitions.
    """

    entity: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    cancelled_state: str | None = None

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.entity}: initial state {self.initial_state!r} unknown")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"{self.entity}: transition {t} references unknown state")

    @property
    def terminal_states(self) -> frozenset[str]:
        sources = {t.from_state for t in self.transitions}
        return frozenset(s for s in self.states if s not in sources)

    def targets(self, current: str) -> frozenset[str]:
        return frozenset(t.to_state for t in self.transitions if t.from_state == current)

    def allows(self, current: str, target: str) -> bool:
        return target in self.targets(current)


PLAN_LIFECYCLE = Lifecycle(
    entity="plan",
    initial_state=PlanState.ACTIVO.value,
    states=tuple(s.value for s in PlanState),
    transitions=(
        Transition("activo", "cancelado", "cancel"),
        Transition("activo", "finalizado", "finalize"),
        Transition("cancelado", "activo", "reactivate"),
    ),
    cancelled_state=PlanState.CANCELADO.value,
)

CONTRACT_LIFECYCLE = Lifecycle(
    entity="contract",
    initial_state=ContractState.VIGENTE.value,
    states=tuple(s.value for s in ContractState),
    transitions=(
        Transition("vigente", "cancelado", "cancel"),
        Transition("vigente", "finalizado", "finalize"),
    ),
    cancelled_state=ContractState.CANCELADO.value,
)

PAYMENT_LIFECYCLE = Lifecycle(
    entity="payment",
    initial_state=PaymentState.PENDIENTE.value,
    states=tuple(s.value for s in PaymentState),
    transitions=(
        Transition("pendiente", "pagado", "mark_paid"),
        Transition("pendiente", "retrasado", "mark_late"),
        Transition("pendiente", "cancelado", "mark_cancelled"),
        Transition("retrasado", "pagado", "mark_paid"),
        Transition("retrasado", "pendiente", "reschedule"),
        Transition("retrasado", "cancelado", "mark_cancelled"),
        Transition("pagado", "cancelado", "mark_cancelled"),
    ),
    cancelled_state=PaymentState.CANCELADO.value,
)

# States that trigger the plan -> contracts cascade when entered.
CASCADE_PLAN_STATES = frozenset({PlanState.CANCELADO.value, PlanState.FINALIZADO.value})


def _value(state: Any) -> str:
    return state.value if isinstance(state, Enum) else str(state)


def require_transition(
    lifecycle: Lifecycle,
    current: Any,
    target: Any,
    entity_id: Any = None,
) -> str:
    """
    Guard a state change against the lifecycle's table.

    Returns:
        The target state as its string value.

    Raises:
        AlreadyCancelledError: Target is the cancelled state and the entity
            is already in it.
        InvalidStateTransitionError: Any other transition not in the table.
    """
    current_value = _value(current)
    target_value = _value(target)

    if lifecycle.allows(current_value, target_value):
        return target_value

    if (
        lifecycle.cancelled_state is not None
        and current_value == target_value == lifecycle.cancelled_state
    ):
        raise AlreadyCancelledError(lifecycle.entity, entity_id)

    raise InvalidStateTransitionError(
        lifecycle.entity, entity_id, current_value, target_value
    )


def require_state(lifecycle: Lifecycle, current: Any, expected: Any, entity_id: Any, action: str) -> None:
    """Guard a non-transition operation (e.g. extend) that needs a given state."""
    if _value(current) != _value(expected):
        raise InvalidStateTransitionError(
            lifecycle.entity, entity_id, _value(current), f"{action} (requires {_value(expected)})"
        )
