"""
Contract lifecycle manager.

Owns every status transition of a donation contract:

    pending --approve--> active --settle--> active | completed
    active --end date passed--> expired
    pending --reject--> rejected

Administrator operations commit on their own. ``settle`` and
``expire_if_due`` never commit: they run inside the caller's transaction
together with the payout write.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config.business_constants import MAX_WITHDRAWALS_PER_CONTRACT
from settlement.config.settings import settings
from settlement.models.donation_contract import DonationContract
from settlement.models.enums import ContractStatus
from settlement.repositories.donation_contract_repository import (
    DonationContractRepository,
)
from settlement.repositories.user_repository import UserRepository
from settlement.services.base_service import BaseService, log_operation, transaction
from settlement.services.contract.eligibility import calculate_eligibility
from settlement.utils.datetime_utils import ensure_utc
from settlement.utils.exceptions import (
    ContractNotActive,
    ContractNotFound,
    InsufficientAvailableBalance,
    InvalidAmount,
    InvalidTransition,
    UserNotFound,
)
from settlement.validators.common import validate_amount


def add_years(value: datetime, years: int) -> datetime:
    """
    Add calendar years, mapping Feb 29 to Feb 28 in non-leap years.

    Args:
        value: Start instant
        years: Number of years

    Returns:
        Shifted instant
    """
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


class ContractLifecycleManager(BaseService):
    """Manages donation contract status transitions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize lifecycle manager."""
        super().__init__(session)
        self.contract_repo = DonationContractRepository(session)
        self.user_repo = UserRepository(session)

    async def get_contract(self, contract_id: int) -> DonationContract:
        """
        Get contract or raise.

        Raises:
            ContractNotFound: If no such contract
        """
        contract = await self.contract_repo.get_by_id(contract_id)
        if not contract:
            raise ContractNotFound()
        return contract

    async def get_pending_contracts(self, limit: int = 100) -> list[DonationContract]:
        """Get pledges waiting in the approval queue, oldest first."""
        return await self.contract_repo.get_pending(limit=limit)

    @transaction
    async def create_contract(
        self,
        owner_id: int,
        principal: Decimal | str,
        payment_method: str | None = None,
        receipt_reference: str | None = None,
    ) -> DonationContract:
        """
        Register a pledge awaiting administrator approval.

        Args:
            owner_id: Member ID
            principal: Pledged amount
            payment_method: How the member says they paid
            receipt_reference: Pointer to the uploaded receipt

        Returns:
            Pending contract
        """
        is_valid, amount, error = validate_amount(principal)
        if not is_valid:
            raise InvalidAmount(error)

        if not await self.user_repo.exists(id=owner_id):
            raise UserNotFound()

        contract = await self.contract_repo.create(
            owner_id=owner_id,
            principal=amount,
            status=ContractStatus.PENDING.value,
            payment_method=payment_method,
            receipt_reference=receipt_reference,
            withdrawal_count=0,
            total_withdrawn=Decimal("0"),
        )

        self.logger.info(
            "Contract created",
            extra={
                "contract_id": contract.id,
                "owner_id": owner_id,
                "principal": str(amount),
            },
        )
        return contract

    @log_operation
    @transaction
    async def approve(
        self,
        contract_id: int,
        admin_id: str,
        now: datetime | None = None,
    ) -> DonationContract:
        """
        Approve a pending contract and start its term.

        Args:
            contract_id: Contract ID
            admin_id: Approving administrator
            now: Approval instant

        Returns:
            Active contract

        Raises:
            ContractNotFound: Unknown contract
            InvalidTransition: Contract is already active
            ContractNotActive: Contract is in a terminal state
        """
        now = self.resolve_now(now)
        contract = await self.contract_repo.get_for_update(contract_id)
        if not contract:
            raise ContractNotFound()

        self._require_pending(contract, "approve")

        contract.status = ContractStatus.ACTIVE.value
        contract.start_at = now
        contract.end_at = add_years(now, settings.contract_term_years)
        contract.approved_at = now
        contract.approved_by = admin_id
        await self.session.flush()

        self.logger.info(
            f"Contract {contract_id} approved by {admin_id}",
            extra={
                "contract_id": contract_id,
                "start_at": contract.start_at.isoformat(),
                "end_at": contract.end_at.isoformat(),
            },
        )
        return contract

    @log_operation
    @transaction
    async def reject(
        self,
        contract_id: int,
        admin_id: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> DonationContract:
        """
        Reject a pending contract.

        Args:
            contract_id: Contract ID
            admin_id: Rejecting administrator
            reason: Rejection reason shown to the member
            now: Rejection instant

        Returns:
            Rejected contract
        """
        now = self.resolve_now(now)
        contract = await self.contract_repo.get_for_update(contract_id)
        if not contract:
            raise ContractNotFound()

        self._require_pending(contract, "reject")

        contract.status = ContractStatus.REJECTED.value
        contract.rejected_at = now
        contract.rejected_by = admin_id
        contract.rejection_reason = reason
        await self.session.flush()

        self.logger.info(
            f"Contract {contract_id} rejected by {admin_id}",
            extra={"contract_id": contract_id, "reason": reason},
        )
        return contract

    def settle(
        self,
        contract: DonationContract,
        amount: Decimal,
        now: datetime | None = None,
    ) -> DonationContract:
        """
        Apply one settlement to a contract in the current transaction.

        The withdrawable amount is recomputed here; callers cannot settle
        more than the per-period rule allows.

        Args:
            contract: Contract loaded in this session
            amount: Amount to settle
            now: Settlement instant

        Returns:
            Mutated contract, completed when a limit was reached

        Raises:
            ContractNotActive: Contract is not active or has expired
            InvalidAmount: Amount is not positive
            InsufficientAvailableBalance: Amount exceeds what is withdrawable
        """
        now = self.resolve_now(now)

        if self.expire_if_due(contract, now) or contract.status != ContractStatus.ACTIVE:
            raise ContractNotActive(
                f"Contract {contract.id} is {contract.status}"
            )

        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmount("Settlement amount must be positive")

        eligibility = calculate_eligibility(contract, now)
        if not eligibility.can_withdraw or amount > eligibility.withdrawable:
            raise InsufficientAvailableBalance(amount, eligibility.withdrawable)

        contract.total_withdrawn = (contract.total_withdrawn or Decimal("0")) + amount
        contract.withdrawal_count = (contract.withdrawal_count or 0) + 1
        contract.last_withdrawal_at = now

        if (
            contract.withdrawal_count >= MAX_WITHDRAWALS_PER_CONTRACT
            or contract.total_withdrawn >= contract.principal
        ):
            contract.status = ContractStatus.COMPLETED.value
            contract.completed_at = now

        self.logger.info(
            f"Contract {contract.id} settled {amount}",
            extra={
                "contract_id": contract.id,
                "amount": str(amount),
                "total_withdrawn": str(contract.total_withdrawn),
                "withdrawal_count": contract.withdrawal_count,
                "status": contract.status,
            },
        )
        return contract

    def expire_if_due(
        self, contract: DonationContract, now: datetime | None = None
    ) -> bool:
        """
        Expire an active contract whose end date has passed.

        Args:
            contract: Contract loaded in this session
            now: Evaluation instant

        Returns:
            True if the contract was expired by this call
        """
        now = self.resolve_now(now)
        end_at = ensure_utc(contract.end_at)

        if contract.status != ContractStatus.ACTIVE or end_at is None:
            return False
        if now <= end_at:
            return False

        contract.status = ContractStatus.EXPIRED.value
        contract.expired_at = now

        self.logger.info(
            f"Contract {contract.id} expired",
            extra={
                "contract_id": contract.id,
                "end_at": end_at.isoformat(),
                "total_withdrawn": str(contract.total_withdrawn),
            },
        )
        return True

    @staticmethod
    def _require_pending(contract: DonationContract, action: str) -> None:
        if contract.status == ContractStatus.PENDING:
            return
        if ContractStatus(contract.status).is_terminal:
            raise ContractNotActive(
                f"Cannot {action} contract {contract.id}: it is {contract.status}"
            )
        raise InvalidTransition(
            f"Cannot {action} contract {contract.id}: it is already {contract.status}"
        )
