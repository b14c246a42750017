"""
Donation contract services.

Eligibility rules and lifecycle transitions.
"""

from settlement.services.contract.eligibility import (
    EligibilityResult,
    calculate_eligibility,
    days_until_next_withdrawal,
    get_withdrawal_details,
)
from settlement.services.contract.lifecycle import ContractLifecycleManager


__all__ = [
    "ContractLifecycleManager",
    "EligibilityResult",
    "calculate_eligibility",
    "days_until_next_withdrawal",
    "get_withdrawal_details",
]
