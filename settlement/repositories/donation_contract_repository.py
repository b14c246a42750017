"""
DonationContract repository.

Data access layer for DonationContract model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.donation_contract import DonationContract
from settlement.models.enums import ContractStatus
from settlement.repositories.base import BaseRepository


class DonationContractRepository(BaseRepository[DonationContract]):
    """DonationContract repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize donation contract repository."""
        super().__init__(DonationContract, session)

    async def get_by_owner(
        self, owner_id: int, status: str | None = None
    ) -> list[DonationContract]:
        """
        Get contracts of one member ordered by ID.

        Args:
            owner_id: Member ID
            status: Optional status filter

        Returns:
            List of contracts
        """
        filters: dict = {"owner_id": owner_id}
        if status:
            filters["status"] = status
        return await self.find_all(**filters)

    async def get_active_by_owner_for_update(
        self, owner_id: int
    ) -> list[DonationContract]:
        """
        Get and lock all active contracts of a member in allocator order.

        Args:
            owner_id: Member ID

        Returns:
            Active contracts ordered by ascending ID
        """
        stmt = (
            select(DonationContract)
            .where(
                DonationContract.owner_id == owner_id,
                DonationContract.status == ContractStatus.ACTIVE.value,
            )
            .order_by(DonationContract.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_pending(self, limit: int = 100) -> list[DonationContract]:
        """
        Get contracts awaiting administrator approval, oldest first.

        Args:
            limit: Max number of results

        Returns:
            List of pending contracts
        """
        return await self.find_all(
            limit=limit, status=ContractStatus.PENDING.value
        )
