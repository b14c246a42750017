"""
RewardPool repository.

Data access layer for RewardPool model.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.reward_pool import RewardPool
from settlement.repositories.base import BaseRepository


class RewardPoolRepository(BaseRepository[RewardPool]):
    """RewardPool repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reward pool repository."""
        super().__init__(RewardPool, session)

    async def get_active(self, for_update: bool = False) -> RewardPool | None:
        """
        Get the active pool generation.

        Args:
            for_update: Lock the row and reload cached state

        Returns:
            Active RewardPool or None
        """
        stmt = (
            select(RewardPool)
            .where(RewardPool.is_active.is_(True))
            .order_by(RewardPool.generation.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest_generation(self) -> int:
        """
        Get the highest generation number ever issued.

        Returns:
            Generation number, 0 if no pool exists yet
        """
        stmt = select(func.max(RewardPool.generation))
        result = await self.session.execute(stmt)
        return result.scalar() or 0
