"""
Withdrawal services.

Allocation across sources, pooled and single-contract withdrawals, and the
payout fulfillment callbacks.
"""

from settlement.services.withdrawal.allocator import (
    AllocationPlan,
    ContractCandidate,
    SourceLine,
    allocate,
)
from settlement.services.withdrawal.payout_fulfillment import (
    PayoutFulfillmentService,
)
from settlement.services.withdrawal.pooled_withdrawal_service import (
    PooledWithdrawalService,
    WithdrawableSummary,
)


__all__ = [
    "AllocationPlan",
    "ContractCandidate",
    "SourceLine",
    "allocate",
    "PayoutFulfillmentService",
    "PooledWithdrawalService",
    "WithdrawableSummary",
]
