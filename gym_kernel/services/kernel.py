"""
gym_kernel.services.kernel -- Dependency container for the lifecycle services.

Responsibility:
    Creates every service exactly once over one session and clock, and
    applies the runtime settings that shape them (level policy, expiry
    window).  Callers use this instead of constructing services by hand.

Architecture position:
    Kernel > Services.  Top of the service layer; the only module that
    reads ``KernelSettings`` on the services' behalf.

Invariants enforced:
    - All services share the same Session, Clock and progress-log cleaner.
    - PlanService and AssociationService enforce the same LevelPolicy.

Usage:
    from gym_kernel.db.engine import get_session
    from gym_kernel.services.kernel import build_kernel

    kernel = build_kernel(get_session())
    kernel.plans.change_state(plan_id, "cancelado")
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from gym_kernel.config import KernelSettings, load_settings
from gym_kernel.domain.clock import Clock, SystemClock
from gym_kernel.domain.policy import LevelPolicy
from gym_kernel.domain.progress_cleanup import ProgressLogCleaner
from gym_kernel.gateways.progress_log_gateway import ProgressLogGateway
from gym_kernel.services.association_service import AssociationService
from gym_kernel.services.client_service import ClientService
from gym_kernel.services.contract_service import ContractService
from gym_kernel.services.payment_service import PaymentService
from gym_kernel.services.plan_service import PlanService
from gym_kernel.services.progress_log_service import ProgressLogService


class GymKernel:
    """Central factory for the lifecycle services.

    Contract:
        Receives a Session, optional Clock and settings.  With
        ``auto_commit=True`` every service commits its own operations;
        with ``auto_commit=False`` the caller owns the transaction.

    Non-goals:
        - Does NOT own the Session lifecycle (no close).
    """

    def __init__(
        self,
        session: Session,
        settings: KernelSettings | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
        actor_id: str | None = None,
        cleaner: ProgressLogCleaner | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.settings = settings or KernelSettings()
        self.level_policy = LevelPolicy.from_mapping(self.settings.level_policy)
        self.cleaner = cleaner if cleaner is not None else ProgressLogGateway(session)

        common = {"clock": self._clock, "auto_commit": auto_commit, "actor_id": actor_id}
        self.clients = ClientService(session, cleaner=self.cleaner, **common)
        self.associations = AssociationService(session, level_policy=self.level_policy, **common)
        self.plans = PlanService(
            session, cleaner=self.cleaner, level_policy=self.level_policy, **common
        )
        self.contracts = ContractService(
            session,
            cleaner=self.cleaner,
            near_expiration_days=self.settings.near_expiration_days,
            **common,
        )
        self.payments = PaymentService(session, **common)
        self.progress_logs = ProgressLogService(session, **common)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock


def build_kernel(
    session: Session,
    settings: KernelSettings | None = None,
    clock: Clock | None = None,
    actor_id: str | None = None,
) -> GymKernel:
    """Build a GymKernel from loaded settings (defaults, YAML file, environment)."""
    return GymKernel(
        session,
        settings=settings or load_settings(),
        clock=clock,
        actor_id=actor_id,
    )
