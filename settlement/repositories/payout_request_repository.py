"""
PayoutRequest repository.

Data access layer for PayoutRequest model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.enums import PayoutStatus
from settlement.models.payout_request import PayoutRequest
from settlement.repositories.base import BaseRepository


class PayoutRequestRepository(BaseRepository[PayoutRequest]):
    """PayoutRequest repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout request repository."""
        super().__init__(PayoutRequest, session)

    async def get_by_idempotency_key(
        self, owner_id: int, idempotency_key: str
    ) -> PayoutRequest | None:
        """
        Get payout previously created with the same idempotency key.

        Args:
            owner_id: Member ID
            idempotency_key: Client-supplied key

        Returns:
            PayoutRequest or None
        """
        return await self.get_by(
            owner_id=owner_id, idempotency_key=idempotency_key
        )

    async def get_by_owner(
        self, owner_id: int, limit: int | None = None
    ) -> list[PayoutRequest]:
        """
        Get payout history of a member, newest first.

        Args:
            owner_id: Member ID
            limit: Max number of results

        Returns:
            List of payout requests
        """
        stmt = (
            select(PayoutRequest)
            .where(PayoutRequest.owner_id == owner_id)
            .order_by(PayoutRequest.requested_at.desc(), PayoutRequest.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_open(self, limit: int = 100) -> list[PayoutRequest]:
        """
        Get payouts waiting for the administrator, oldest first.

        Args:
            limit: Max number of results

        Returns:
            Pending and processing payout requests
        """
        stmt = (
            select(PayoutRequest)
            .where(
                PayoutRequest.status.in_(
                    [PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value]
                )
            )
            .order_by(PayoutRequest.requested_at, PayoutRequest.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
