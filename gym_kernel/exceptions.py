"""
Typed Exception Hierarchy for the Gym Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, CLI menus, batch scripts) must react differently to
"that client does not exist" and "that client already holds an active
contract for this plan".  Parsing messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        contracts.create(cliente_id=c, plan_id=p, ...)
    except DuplicateActiveContractError as e:
        api_response(code=e.code, client=e.cliente_id, plan=e.plan_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GymKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- ClientNotFoundError
    |   +-- PlanNotFoundError
    |   +-- ContractNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ProgressLogNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateActiveContractError
    |   +-- InvalidStateTransitionError
    |   +-- PlanNotActiveError
    |   +-- AlreadyCancelledError
    |   +-- AlreadyAssociatedError
    |   +-- NotAssociatedError
    |   +-- LevelIncompatibleError
    |   +-- ActiveContractExistsError
    |   +-- DuplicateNameError
    |   +-- DuplicateEmailError
    |   +-- EntityInUseError
    |
    +-- DependencyError
    |   +-- CascadeAbortedError
    |
    +-- PersistenceError
    |
    +-- CompensationFailure   (recorded in results, never raised to callers)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|-----------------------------------
Validation   | VALIDATION_ERROR           | A field fails its constraint
NotFound     | CLIENT_NOT_FOUND           | Client ID doesn't resolve
             | PLAN_NOT_FOUND             | Plan ID doesn't resolve
             | CONTRACT_NOT_FOUND         | Contract ID doesn't resolve
             | PAYMENT_NOT_FOUND          | Payment ID doesn't resolve
             | PROGRESS_LOG_NOT_FOUND     | Progress log ID doesn't resolve
Conflict     | DUPLICATE_ACTIVE_CONTRACT  | Second vigente contract for a pair
             | INVALID_STATE_TRANSITION   | Transition not in the table
             | PLAN_NOT_ACTIVE            | Plan must be activo for the action
             | ALREADY_CANCELLED          | Cancelling a cancelled entity
             | ALREADY_ASSOCIATED         | Client already in the plan
             | NOT_ASSOCIATED             | Client not in the plan
             | LEVEL_INCOMPATIBLE         | Client level can't join plan level
             | ACTIVE_CONTRACT_EXISTS     | Vigente contract blocks the action
             | DUPLICATE_NAME             | Plan name already taken
             | DUPLICATE_EMAIL            | Client email already taken
             | ENTITY_IN_USE              | Delete blocked by dependants
Dependency   | DEPENDENCY_ERROR           | Related entity missing mid-cascade
             | CASCADE_ABORTED            | Contract cancellation failed
Persistence  | PERSISTENCE_ERROR          | Store failure, wrapped by gateway
Compensation | COMPENSATION_FAILURE       | Progress-log cleanup failed

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError, so domain errors are catchable
   as a group without mixing in programming errors.

2. ``code`` is a class attribute: codes are static per type and can be
   read without instantiation.

3. CompensationFailure is an exception type so it can carry a cause and
   be logged with ``exc_info``, but the cascade stores it in the result
   instead of raising it.

===============================================================================
"""

from __future__ import annotations

from typing import Any, Sequence


class GymKernelError(Exception):
    """
    Base exception for all gym kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "GYM_KERNEL_ERROR"


# Validation


class ValidationError(GymKernelError):
    """A field failed its constraint while building an entity."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        self.reason = message
        super().__init__(f"Invalid value for '{field}': {message}")


# Not found


class NotFoundError(GymKernelError):
    """A referenced identifier does not resolve to an existing entity."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class ClientNotFoundError(NotFoundError):
    code: str = "CLIENT_NOT_FOUND"
    entity: str = "client"


class PlanNotFoundError(NotFoundError):
    code: str = "PLAN_NOT_FOUND"
    entity: str = "plan"


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"
    entity: str = "contract"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity: str = "payment"


class ProgressLogNotFoundError(NotFoundError):
    code: str = "PROGRESS_LOG_NOT_FOUND"
    entity: str = "progress log"


# Conflicts (business invariant would be violated)


class ConflictError(GymKernelError):
    """Base exception for business-rule conflicts."""

    code: str = "CONFLICT"


class DuplicateActiveContractError(ConflictError):
    """A vigente contract already exists for the (client, plan) pair."""

    code: str = "DUPLICATE_ACTIVE_CONTRACT"

    def __init__(self, cliente_id: Any, plan_id: Any):
        self.cliente_id = str(cliente_id)
        self.plan_id = str(plan_id)
        super().__init__(
            f"Client {cliente_id} already has an active contract for plan {plan_id}"
        )


class InvalidStateTransitionError(ConflictError):
    """The requested state change is not in the entity's transition table."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, entity_id: Any, from_state: str, to_state: str):
        self.entity = entity
        self.entity_id = str(entity_id) if entity_id is not None else None
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Cannot move {entity} {entity_id} from '{from_state}' to '{to_state}'"
        )


class PlanNotActiveError(ConflictError):
    """The operation needs an activo plan."""

    code: str = "PLAN_NOT_ACTIVE"

    def __init__(self, plan_id: Any, estado: str):
        self.plan_id = str(plan_id)
        self.estado = estado
        super().__init__(f"Plan {plan_id} is '{estado}', not activo")


class AlreadyCancelledError(ConflictError):
    """Cancelling an entity that is already cancelled."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"The {entity} {entity_id} is already cancelled")


class AlreadyAssociatedError(ConflictError):
    """Client is already associated with the plan."""

    code: str = "ALREADY_ASSOCIATED"

    def __init__(self, plan_id: Any, cliente_id: Any):
        self.plan_id = str(plan_id)
        self.cliente_id = str(cliente_id)
        super().__init__(f"Client {cliente_id} is already associated with plan {plan_id}")


class NotAssociatedError(ConflictError):
    """Client is not associated with the plan."""

    code: str = "NOT_ASSOCIATED"

    def __init__(self, plan_id: Any, cliente_id: Any):
        self.plan_id = str(plan_id)
        self.cliente_id = str(cliente_id)
        super().__init__(f"Client {cliente_id} is not associated with plan {plan_id}")


class LevelIncompatibleError(ConflictError):
    """Client level is not allowed to join the plan level."""

    code: str = "LEVEL_INCOMPATIBLE"

    def __init__(self, client_level: str, plan_level: str):
        self.client_level = client_level
        self.plan_level = plan_level
        super().__init__(
            f"A '{client_level}' client cannot join a '{plan_level}' plan"
        )


class ActiveContractExistsError(ConflictError):
    """A vigente contract blocks the requested operation."""

    code: str = "ACTIVE_CONTRACT_EXISTS"

    def __init__(self, cliente_id: Any, plan_id: Any | None = None):
        self.cliente_id = str(cliente_id)
        self.plan_id = str(plan_id) if plan_id is not None else None
        if plan_id is None:
            msg = f"Client {cliente_id} holds active contracts; cancel them first"
        else:
            msg = (
                f"Client {cliente_id} holds an active contract for plan {plan_id}; "
                "cancel it first"
            )
        super().__init__(msg)


class DuplicateNameError(ConflictError):
    """A plan with the same name already exists."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, nombre: str):
        self.nombre = nombre
        super().__init__(f"A plan named '{nombre}' already exists")


class DuplicateEmailError(ConflictError):
    """A client with the same email already exists."""

    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A client with email '{email}' already exists")


class EntityInUseError(ConflictError):
    """Deletion is blocked by dependent records."""

    code: str = "ENTITY_IN_USE"

    def __init__(self, entity: str, entity_id: Any, reason: str):
        self.entity = entity
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(f"Cannot delete {entity} {entity_id}: {reason}")


# Dependencies


class DependencyError(GymKernelError):
    """A related entity needed by a cascade or guard could not be loaded."""

    code: str = "DEPENDENCY_ERROR"

    def __init__(self, entity: str, entity_id: Any, context: str):
        self.entity = entity
        self.entity_id = str(entity_id)
        self.context = context
        super().__init__(f"Required {entity} {entity_id} is missing during {context}")


class CascadeAbortedError(DependencyError):
    """
    Contract cancellation failed for one client during a plan cascade.

    Clients listed in ``completed_client_ids`` had their contracts cancelled
    and committed before the failure; those are not rolled back.  The plan
    state was not changed.
    """

    code: str = "CASCADE_ABORTED"

    def __init__(
        self,
        plan_id: Any,
        cliente_id: Any,
        completed_client_ids: Sequence[Any],
        cause: Exception,
    ):
        self.plan_id = str(plan_id)
        self.cliente_id = str(cliente_id)
        self.completed_client_ids = tuple(str(c) for c in completed_client_ids)
        self.cause_code = getattr(cause, "code", type(cause).__name__)
        GymKernelError.__init__(
            self,
            f"Cascade for plan {plan_id} stopped at client {cliente_id}: {cause}",
        )


# Persistence


class PersistenceError(GymKernelError):
    """The store rejected or failed an operation issued by a gateway."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, entity: str, operation: str, detail: str):
        self.entity = entity
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {entity}.{operation}: {detail}")


# Compensation


class CompensationFailure(GymKernelError):
    """
    Best-effort progress-log cleanup failed.

    Never raised out of the cascade: stored in the compensation phase of the
    result and logged at WARNING.
    """

    code: str = "COMPENSATION_FAILURE"

    def __init__(self, target: str, target_id: Any, detail: str):
        self.target = target
        self.target_id = str(target_id)
        self.detail = detail
        super().__init__(
            f"Progress-log cleanup for {target} {target_id} failed: {detail}"
        )
