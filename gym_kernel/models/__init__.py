"""ORM models for the gym kernel."""

from gym_kernel.models.client import Client
from gym_kernel.models.contract import VIGENTE_PAIR_INDEX, Contract
from gym_kernel.models.payment import Payment
from gym_kernel.models.plan import TrainingPlan
from gym_kernel.models.progress_log import ProgressLog

__all__ = [
    "Client",
    "Contract",
    "VIGENTE_PAIR_INDEX",
    "Payment",
    "TrainingPlan",
    "ProgressLog",
]
