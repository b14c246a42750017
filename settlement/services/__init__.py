"""
Settlement services.

Business logic for contracts, withdrawals, the MANA reward pool and the
PIN gate.
"""

from settlement.services.base_service import BaseService, ServiceResult
from settlement.services.contract import (
    ContractLifecycleManager,
    EligibilityResult,
    calculate_eligibility,
)
from settlement.services.reward import RewardPoolService
from settlement.services.user import PinGate
from settlement.services.withdrawal import (
    PayoutFulfillmentService,
    PooledWithdrawalService,
    allocate,
)

__all__ = [
    "BaseService",
    "ServiceResult",
    "ContractLifecycleManager",
    "EligibilityResult",
    "calculate_eligibility",
    "RewardPoolService",
    "PinGate",
    "PayoutFulfillmentService",
    "PooledWithdrawalService",
    "allocate",
]
