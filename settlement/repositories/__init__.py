"""
Repositories.

Data access layer for all models.
"""

from settlement.repositories.base import BaseRepository
from settlement.repositories.donation_contract_repository import (
    DonationContractRepository,
)
from settlement.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from settlement.repositories.reward_claim_repository import RewardClaimRepository
from settlement.repositories.reward_pool_repository import RewardPoolRepository
from settlement.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "DonationContractRepository",
    "PayoutRequestRepository",
    "RewardClaimRepository",
    "RewardPoolRepository",
    "UserRepository",
]
