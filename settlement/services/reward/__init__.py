"""
MANA reward pool services.
"""

from settlement.services.reward.reward_pool_service import RewardPoolService
from settlement.services.reward.schemas import ClaimRequest


__all__ = ["ClaimRequest", "RewardPoolService"]
