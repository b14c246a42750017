"""
Payout fulfillment callbacks.

The administrator moves money off-system and reports back through these
calls. Completed and failed payouts are immutable; a failed payout returns
its total to the member's balance exactly once.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.enums import PayoutStatus
from settlement.models.payout_request import PayoutRequest
from settlement.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from settlement.repositories.user_repository import UserRepository
from settlement.services.base_service import BaseService
from settlement.utils.db_decorators import retry_on_conflict
from settlement.utils.exceptions import (
    InvalidTransition,
    PayoutNotFound,
    UserNotFound,
)


class PayoutFulfillmentService(BaseService):
    """Applies terminal outcomes reported by the payout channel."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout fulfillment service."""
        super().__init__(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.user_repo = UserRepository(session)

    async def get_payout(self, payout_id: int) -> PayoutRequest:
        """
        Get payout request or raise.

        Raises:
            PayoutNotFound: If no such payout
        """
        payout = await self.payout_repo.get_by_id(payout_id)
        if not payout:
            raise PayoutNotFound()
        return payout

    async def get_open_payouts(self, limit: int = 100) -> list[PayoutRequest]:
        """Get payouts still waiting for the administrator."""
        return await self.payout_repo.get_open(limit=limit)

    async def mark_processing(
        self, payout_id: int, admin_id: str, now: datetime | None = None
    ) -> PayoutRequest:
        """
        Mark a pending payout as being processed.

        Args:
            payout_id: PayoutRequest ID
            admin_id: Administrator handling it
            now: Transition instant

        Returns:
            Updated payout
        """
        return await self._transition(
            payout_id,
            PayoutStatus.PROCESSING,
            admin_id,
            self.resolve_now(now),
            allowed_from=(PayoutStatus.PENDING,),
        )

    async def mark_completed(
        self, payout_id: int, admin_id: str, now: datetime | None = None
    ) -> PayoutRequest:
        """
        Mark a payout as paid out.

        Args:
            payout_id: PayoutRequest ID
            admin_id: Administrator who sent the money
            now: Transition instant

        Returns:
            Completed payout
        """
        return await self._transition(
            payout_id,
            PayoutStatus.COMPLETED,
            admin_id,
            self.resolve_now(now),
            allowed_from=(PayoutStatus.PENDING, PayoutStatus.PROCESSING),
        )

    async def mark_failed(
        self,
        payout_id: int,
        admin_id: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> PayoutRequest:
        """
        Mark a payout as failed and return its total to the balance.

        Args:
            payout_id: PayoutRequest ID
            admin_id: Administrator reporting the failure
            reason: Failure reason
            now: Transition instant

        Returns:
            Failed payout
        """
        return await self._transition(
            payout_id,
            PayoutStatus.FAILED,
            admin_id,
            self.resolve_now(now),
            allowed_from=(PayoutStatus.PENDING, PayoutStatus.PROCESSING),
            reason=reason,
        )

    @retry_on_conflict
    async def _transition(
        self,
        payout_id: int,
        new_status: PayoutStatus,
        admin_id: str,
        now: datetime,
        allowed_from: tuple[PayoutStatus, ...],
        reason: str | None = None,
    ) -> PayoutRequest:
        payout = await self.payout_repo.get_for_update(payout_id)
        if not payout:
            raise PayoutNotFound()

        if payout.status not in allowed_from:
            raise InvalidTransition(
                f"Payout {payout_id} is {payout.status}, cannot mark {new_status}"
            )

        payout.status = new_status.value
        payout.processed_by = admin_id
        if new_status.is_terminal:
            payout.processed_at = now

        if new_status == PayoutStatus.FAILED:
            payout.failure_reason = reason
            await self._refund(payout, now)

        self.logger.info(
            f"Payout {payout_id} marked {new_status}",
            extra={
                "payout_id": payout_id,
                "owner_id": payout.owner_id,
                "amount": str(payout.total_amount),
                "admin_id": admin_id,
            },
        )
        return payout

    async def _refund(self, payout: PayoutRequest, now: datetime) -> None:
        if payout.refunded_at is not None:
            return

        user = await self.user_repo.get_for_update(payout.owner_id)
        if not user:
            raise UserNotFound()

        user.balance = user.balance + payout.total_amount
        payout.refunded_amount = payout.total_amount
        payout.refunded_at = now

        self.logger.info(
            f"Refunded {payout.total_amount} to user {user.id}",
            extra={"payout_id": payout.id, "user_id": user.id},
        )
