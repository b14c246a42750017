"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from settlement.models.base import Base
from settlement.models.donation_contract import DonationContract
from settlement.models.enums import (
    ContractStatus,
    KycStatus,
    PayoutStatus,
    SourceKind,
)
from settlement.models.payout_request import PayoutRequest, PayoutSource
from settlement.models.reward_claim import RewardClaim
from settlement.models.reward_pool import RewardPool
from settlement.models.user import User

__all__ = [
    # Base
    "Base",
    # Enums
    "ContractStatus",
    "KycStatus",
    "PayoutStatus",
    "SourceKind",
    # Core Models
    "User",
    "DonationContract",
    "PayoutRequest",
    "PayoutSource",
    # Reward Models
    "RewardPool",
    "RewardClaim",
]
