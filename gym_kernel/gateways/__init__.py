"""Persistence gateways, one per entity type (flush-only, entity-returning)."""

from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.contract_gateway import ContractGateway
from gym_kernel.gateways.payment_gateway import PaymentGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.gateways.progress_log_gateway import ProgressLogGateway

__all__ = [
    "ClientGateway",
    "ContractGateway",
    "PaymentGateway",
    "PlanGateway",
    "ProgressLogGateway",
]
