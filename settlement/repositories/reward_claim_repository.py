"""
RewardClaim repository.

Data access layer for RewardClaim model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.reward_claim import RewardClaim
from settlement.repositories.base import BaseRepository


class RewardClaimRepository(BaseRepository[RewardClaim]):
    """RewardClaim repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reward claim repository."""
        super().__init__(RewardClaim, session)

    async def get_by_user_and_pool(
        self, user_id: int, pool_id: int
    ) -> RewardClaim | None:
        """Get the claim of a member for one pool generation."""
        return await self.get_by(user_id=user_id, pool_id=pool_id)

    async def get_by_idempotency_key(
        self, user_id: int, idempotency_key: str
    ) -> RewardClaim | None:
        """Get the claim created with a client-supplied key."""
        return await self.get_by(
            user_id=user_id, idempotency_key=idempotency_key
        )

    async def get_by_pool(self, pool_id: int) -> list[RewardClaim]:
        """Get claim history of one pool generation, oldest first."""
        return await self.find_all(pool_id=pool_id)
