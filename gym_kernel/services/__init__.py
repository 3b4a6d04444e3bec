"""
Lifecycle services.

Each service owns the unit of work for its public operations
(``auto_commit=True``) or leaves it to the caller (``auto_commit=False``).
"""

from gym_kernel.services.association_service import AssociationService
from gym_kernel.services.base import BaseService
from gym_kernel.services.cascade import CascadeEngine
from gym_kernel.services.client_service import ClientService
from gym_kernel.services.contract_service import ContractService
from gym_kernel.services.kernel import GymKernel, build_kernel
from gym_kernel.services.payment_service import PaymentService
from gym_kernel.services.plan_service import PlanService
from gym_kernel.services.progress_log_service import ProgressLogService

__all__ = [
    "AssociationService",
    "BaseService",
    "CascadeEngine",
    "ClientService",
    "ContractService",
    "GymKernel",
    "PaymentService",
    "PlanService",
    "ProgressLogService",
    "build_kernel",
]
