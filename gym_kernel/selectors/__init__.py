"""Read-only aggregation selectors."""

from gym_kernel.selectors.contract_selector import ContractSelector, ContractStats
from gym_kernel.selectors.payment_selector import (
    BalanceSummary,
    MonthlyBalance,
    PaymentSelector,
    PaymentStats,
)
from gym_kernel.selectors.plan_selector import PlanPopularity, PlanSelector, PlanStats

__all__ = [
    "BalanceSummary",
    "ContractSelector",
    "ContractStats",
    "MonthlyBalance",
    "PaymentSelector",
    "PaymentStats",
    "PlanPopularity",
    "PlanSelector",
    "PlanStats",
]
