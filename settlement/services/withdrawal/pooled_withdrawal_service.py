"""
Pooled withdrawal service.

Turns one member request into one payout request: PIN gate, lazy expiry,
eligibility per contract, allocation across balance and contracts, then a
single transaction writing every settlement, the balance draw and the
payout with its source lines. The transaction is re-run when it loses a
race with a concurrent writer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config.settings import settings
from settlement.models.enums import ContractStatus, PayoutStatus, SourceKind
from settlement.models.payout_request import PayoutRequest, PayoutSource
from settlement.models.user import User
from settlement.repositories.donation_contract_repository import (
    DonationContractRepository,
)
from settlement.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from settlement.repositories.user_repository import UserRepository
from settlement.services.base_service import BaseService
from settlement.services.contract.eligibility import (
    EligibilityResult,
    calculate_eligibility,
)
from settlement.services.contract.lifecycle import ContractLifecycleManager
from settlement.services.user.pin_gate import PinGate
from settlement.services.withdrawal.allocator import (
    AllocationPlan,
    ContractCandidate,
    SourceLine,
    allocate,
)
from settlement.utils.db_decorators import retry_on_conflict
from settlement.utils.exceptions import (
    ContractNotActive,
    ContractNotFound,
    InsufficientAvailableBalance,
    InvalidAmount,
    Unauthorized,
    UserNotFound,
    VerificationRequired,
)
from settlement.validators.common import validate_amount


@dataclass
class WithdrawableSummary:
    """What a member could withdraw right now."""

    balance: Decimal
    contracts_total: Decimal
    contracts: list[tuple[int, EligibilityResult]] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return self.balance + self.contracts_total


class PooledWithdrawalService(BaseService):
    """Orchestrates withdrawals across balance and donation contracts."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize pooled withdrawal service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.contract_repo = DonationContractRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.lifecycle = ContractLifecycleManager(session)
        self.pin_gate = PinGate(session)

    async def request_withdrawal(
        self,
        user_id: int,
        pin: str,
        amount: Decimal | str,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> PayoutRequest:
        """
        Withdraw an amount pooled from balance and eligible contracts.

        Args:
            user_id: Member ID
            pin: Member's PIN
            amount: Requested amount, at most 2 decimals
            idempotency_key: Optional client key; a repeat returns the
                payout created by the first call
            now: Request instant

        Returns:
            Pending PayoutRequest with its source lines

        Raises:
            PinLocked, IncorrectPin, PinNotSet: PIN gate refused
            InvalidAmount: Amount is malformed
            VerificationRequired: KYC not completed
            InsufficientAvailableBalance: Not enough available
            Conflict: Kept losing to concurrent writers
        """
        now = self.resolve_now(now)
        await self.pin_gate.verify(user_id, pin, now)

        is_valid, target, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmount(error)

        return await self._attempt_pooled_withdrawal(
            user_id, target, idempotency_key, now
        )

    @retry_on_conflict
    async def _attempt_pooled_withdrawal(
        self,
        user_id: int,
        target: Decimal,
        idempotency_key: str | None,
        now: datetime,
    ) -> PayoutRequest:
        user = await self._get_user_for_withdrawal(user_id)

        replay = await self._find_replay(user_id, idempotency_key)
        if replay:
            return replay

        contracts = await self.contract_repo.get_active_by_owner_for_update(user_id)
        candidates = []
        for contract in contracts:
            if self.lifecycle.expire_if_due(contract, now):
                continue
            eligibility = calculate_eligibility(contract, now)
            candidates.append(
                ContractCandidate(contract.id, eligibility.withdrawable)
            )

        plan = allocate(target, user.balance, candidates, user.id)
        contracts_by_id = {contract.id: contract for contract in contracts}

        for line in plan.contract_lines:
            self.lifecycle.settle(contracts_by_id[line.source_id], line.amount, now)

        if plan.balance_amount:
            user.balance = user.balance - plan.balance_amount

        payout = await self._create_payout(user_id, plan.lines, idempotency_key, now)

        self.logger.info(
            "Pooled withdrawal created",
            extra={
                "payout_id": payout.id,
                "user_id": user_id,
                "amount": str(plan.total),
                "sources": [f"{line.kind}:{line.source_id}={line.amount}" for line in plan.lines],
            },
        )
        return payout

    async def withdraw_from_contract(
        self,
        user_id: int,
        pin: str,
        contract_id: int,
        amount: Decimal | str | None = None,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> PayoutRequest:
        """
        Withdraw from one contract only.

        Args:
            user_id: Member ID
            pin: Member's PIN
            contract_id: Contract to settle
            amount: Amount, defaults to everything withdrawable now
            idempotency_key: Optional client key
            now: Request instant

        Returns:
            Pending PayoutRequest with a single contract line

        Raises:
            ContractNotFound: Unknown contract
            Unauthorized: Contract belongs to someone else
            ContractNotActive: Contract is not active
            InsufficientAvailableBalance: Nothing or not enough withdrawable
        """
        now = self.resolve_now(now)
        await self.pin_gate.verify(user_id, pin, now)

        target = None
        if amount is not None:
            is_valid, target, error = validate_amount(amount)
            if not is_valid:
                raise InvalidAmount(error)

        return await self._attempt_contract_withdrawal(
            user_id, contract_id, target, idempotency_key, now
        )

    @retry_on_conflict
    async def _attempt_contract_withdrawal(
        self,
        user_id: int,
        contract_id: int,
        target: Decimal | None,
        idempotency_key: str | None,
        now: datetime,
    ) -> PayoutRequest:
        await self._get_user_for_withdrawal(user_id)

        replay = await self._find_replay(user_id, idempotency_key)
        if replay:
            return replay

        contract = await self.contract_repo.get_for_update(contract_id)
        if not contract:
            raise ContractNotFound()
        if contract.owner_id != user_id:
            raise Unauthorized("Contract belongs to another member")

        if self.lifecycle.expire_if_due(contract, now) or contract.status != ContractStatus.ACTIVE:
            raise ContractNotActive(f"Contract {contract_id} is {contract.status}")

        eligibility = calculate_eligibility(contract, now)
        amount = eligibility.withdrawable if target is None else target
        if not eligibility.can_withdraw or amount > eligibility.withdrawable:
            raise InsufficientAvailableBalance(amount, eligibility.withdrawable)

        self.lifecycle.settle(contract, amount, now)
        line = SourceLine(kind=SourceKind.CONTRACT, source_id=contract.id, amount=amount)
        payout = await self._create_payout(user_id, [line], idempotency_key, now)

        self.logger.info(
            "Contract withdrawal created",
            extra={
                "payout_id": payout.id,
                "user_id": user_id,
                "contract_id": contract_id,
                "amount": str(amount),
            },
        )
        return payout

    async def get_withdrawable_summary(
        self, user_id: int, now: datetime | None = None
    ) -> WithdrawableSummary:
        """
        Get what the member could withdraw now.

        Contracts whose end date passed are expired on the way.

        Args:
            user_id: Member ID
            now: Evaluation instant

        Returns:
            WithdrawableSummary
        """
        now = self.resolve_now(now)
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFound()

        contracts = await self.contract_repo.get_by_owner(
            user_id, status=ContractStatus.ACTIVE.value
        )
        expired = [c for c in contracts if self.lifecycle.expire_if_due(c, now)]
        if expired:
            await self.commit()

        summary = WithdrawableSummary(
            balance=user.balance, contracts_total=Decimal("0")
        )
        for contract in contracts:
            if contract in expired:
                continue
            eligibility = calculate_eligibility(contract, now)
            summary.contracts.append((contract.id, eligibility))
            summary.contracts_total += eligibility.withdrawable

        return summary

    async def plan_withdrawal(
        self, user_id: int, amount: Decimal | str, now: datetime | None = None
    ) -> AllocationPlan:
        """
        Preview how a pooled withdrawal would be split, without applying it.
        """
        is_valid, target, error = validate_amount(amount)
        if not is_valid:
            raise InvalidAmount(error)

        summary = await self.get_withdrawable_summary(user_id, now)
        candidates = [
            ContractCandidate(contract_id, eligibility.withdrawable)
            for contract_id, eligibility in summary.contracts
        ]
        return allocate(target, summary.balance, candidates, user_id)

    async def get_payout_history(
        self, user_id: int, limit: int | None = None
    ) -> list[PayoutRequest]:
        """Get the member's payout requests, newest first."""
        return await self.payout_repo.get_by_owner(user_id, limit=limit)

    async def _get_user_for_withdrawal(self, user_id: int) -> User:
        user = await self.user_repo.get_for_update(user_id)
        if not user:
            raise UserNotFound()

        if settings.kyc_required_for_withdrawal and not user.is_kyc_verified:
            raise VerificationRequired()

        return user

    async def _find_replay(
        self, user_id: int, idempotency_key: str | None
    ) -> PayoutRequest | None:
        if not idempotency_key:
            return None

        existing = await self.payout_repo.get_by_idempotency_key(user_id, idempotency_key)
        if existing:
            self.logger.info(
                f"Replaying payout {existing.id} for idempotency key",
                extra={"user_id": user_id, "payout_id": existing.id},
            )
        return existing

    async def _create_payout(
        self,
        user_id: int,
        lines: list[SourceLine],
        idempotency_key: str | None,
        now: datetime,
    ) -> PayoutRequest:
        payout = PayoutRequest(
            owner_id=user_id,
            total_amount=sum((line.amount for line in lines), Decimal("0")),
            status=PayoutStatus.PENDING.value,
            idempotency_key=idempotency_key,
            requested_at=now,
            sources=[
                PayoutSource(
                    position=position,
                    source_kind=line.kind.value,
                    source_id=line.source_id,
                    amount=line.amount,
                )
                for position, line in enumerate(lines)
            ],
        )
        self.session.add(payout)
        await self.session.flush()
        return payout
