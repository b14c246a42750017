"""
MANA reward pool service.

A shared, depleting pool unlocked by a rotating secret code. Each member
may claim once per pool generation; the amount is random in whole cents
within the configured range and never more than what is left.

The claim runs as one transaction over the pool row, the claim row and the
member's balance. The pool row is version-checked and the claim row is
unique per (member, generation), so concurrent claims cannot overdraw the
pool or pay a member twice.
"""

import random
from datetime import datetime, timedelta
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config.business_constants import MONEY_QUANTUM, quantize_money
from settlement.config.settings import settings
from settlement.models.reward_claim import RewardClaim
from settlement.models.reward_pool import RewardPool
from settlement.repositories.reward_claim_repository import RewardClaimRepository
from settlement.repositories.reward_pool_repository import RewardPoolRepository
from settlement.repositories.user_repository import UserRepository
from settlement.services.base_service import (
    BaseService,
    ServiceResult,
    log_operation,
    transaction,
)
from settlement.services.reward.schemas import ClaimRequest
from settlement.utils.datetime_utils import ensure_utc
from settlement.utils.db_decorators import retry_on_conflict
from settlement.utils.exceptions import (
    AlreadyClaimed,
    CodeMismatch,
    InvalidAmount,
    PoolDepleted,
    PoolExpired,
    PoolNotFound,
    SettlementError,
    UserNotFound,
)
from settlement.validators.common import validate_amount


def normalize_code(code: str) -> str:
    """Codes are compared trimmed and upper-cased."""
    return (code or "").strip().upper()


class RewardPoolService(BaseService):
    """Claims and rotation of the MANA reward pool."""

    def __init__(
        self, session: AsyncSession, rng: random.Random | None = None
    ) -> None:
        """
        Initialize reward pool service.

        Args:
            session: Database session
            rng: Random source for reward amounts
        """
        super().__init__(session)
        self.pool_repo = RewardPoolRepository(session)
        self.claim_repo = RewardClaimRepository(session)
        self.user_repo = UserRepository(session)
        self.rng = rng or random.SystemRandom()

    async def get_active_pool(self) -> RewardPool | None:
        """Get the active pool generation, if any."""
        return await self.pool_repo.get_active()

    async def get_claim_history(self, pool_id: int | None = None) -> list[RewardClaim]:
        """
        Get claims of one generation, defaulting to the active one.

        Args:
            pool_id: RewardPool ID

        Returns:
            Claims oldest first, empty when there is no such pool
        """
        if pool_id is None:
            pool = await self.pool_repo.get_active()
            if not pool:
                return []
            pool_id = pool.id
        return await self.claim_repo.get_by_pool(pool_id)

    def pick_amount(self, remaining: Decimal) -> Decimal:
        """
        Pick a reward in whole cents, clamped to what is left.

        Args:
            remaining: Amount left in the pool

        Returns:
            Reward amount
        """
        min_cents = int(settings.reward_min_amount / MONEY_QUANTUM)
        max_cents = int(settings.reward_max_amount / MONEY_QUANTUM)
        amount = Decimal(self.rng.randint(min_cents, max_cents)) * MONEY_QUANTUM
        return min(amount, quantize_money(remaining))

    async def claim(
        self,
        user_id: int,
        code: str,
        now: datetime | None = None,
        user_display_name: str | None = None,
        idempotency_key: str | None = None,
    ) -> Decimal:
        """
        Claim a MANA reward with the active code.

        Args:
            user_id: Member ID
            code: Code as typed, case-insensitive
            now: Claim instant
            user_display_name: Shown in claim history
            idempotency_key: Optional client key; a repeat returns the
                amount granted by the first call

        Returns:
            Granted amount, already credited to the balance

        Raises:
            PoolNotFound: No active pool
            CodeMismatch: Wrong code
            PoolExpired: Code expired
            PoolDepleted: Nothing left
            AlreadyClaimed: Member already claimed this generation
            Conflict: Kept losing to concurrent writers
        """
        return await self._attempt_claim(
            user_id,
            normalize_code(code),
            self.resolve_now(now),
            user_display_name,
            idempotency_key,
        )

    @retry_on_conflict
    async def _attempt_claim(
        self,
        user_id: int,
        code: str,
        now: datetime,
        user_display_name: str | None,
        idempotency_key: str | None,
    ) -> Decimal:
        if idempotency_key:
            previous = await self.claim_repo.get_by_idempotency_key(
                user_id, idempotency_key
            )
            if previous:
                return previous.amount

        pool = await self.pool_repo.get_active(for_update=True)
        if not pool:
            raise PoolNotFound()
        if code != pool.active_code:
            raise CodeMismatch()
        if now > ensure_utc(pool.expires_at):
            raise PoolExpired()
        if pool.remaining_pool <= 0:
            raise PoolDepleted()

        # Fast path only; the unique constraint decides under concurrency
        if await self.claim_repo.get_by_user_and_pool(user_id, pool.id):
            raise AlreadyClaimed()

        user = await self.user_repo.get_for_update(user_id)
        if not user:
            raise UserNotFound()

        amount = self.pick_amount(pool.remaining_pool)
        if amount <= 0:
            raise PoolDepleted()

        pool_before = pool.remaining_pool
        pool.remaining_pool = pool_before - amount
        user.balance = user.balance + amount
        user.total_rewards = (user.total_rewards or Decimal("0")) + amount

        self.session.add(
            RewardClaim(
                user_id=user_id,
                pool_id=pool.id,
                code=code,
                amount=amount,
                user_display_name=user_display_name or user.display_name,
                pool_before=pool_before,
                pool_after=pool.remaining_pool,
                idempotency_key=idempotency_key,
                claimed_at=now,
            )
        )
        await self.session.flush()

        self.logger.info(
            f"User {user_id} claimed {amount} MANA",
            extra={
                "user_id": user_id,
                "pool_id": pool.id,
                "generation": pool.generation,
                "amount": str(amount),
                "pool_after": str(pool.remaining_pool),
            },
        )
        return amount

    async def handle_claim_request(
        self, request: ClaimRequest | dict, now: datetime | None = None
    ) -> ServiceResult:
        """
        Claim entry point for the member-facing collaborator.

        Args:
            request: ClaimRequest or a dict with the same fields
            now: Claim instant

        Returns:
            ServiceResult with ``{"amount": ...}`` or a structured error
        """
        if not isinstance(request, ClaimRequest):
            try:
                request = ClaimRequest.model_validate(request)
            except ValidationError as e:
                self.logger.info(
                    "Rejected malformed claim request",
                    extra={"errors": e.error_count()},
                )
                return ServiceResult(
                    success=False,
                    error="Invalid claim request",
                    error_code="INVALID_REQUEST",
                )

        try:
            amount = await self.claim(
                request.user_id,
                request.code,
                now=now,
                user_display_name=request.user_display_name,
                idempotency_key=request.idempotency_key,
            )
        except SettlementError as e:
            return ServiceResult.from_error(e)

        return ServiceResult(success=True, data={"amount": amount})

    @log_operation
    @transaction
    async def rotate_pool(
        self,
        code: str,
        total_pool: Decimal | str | None = None,
        expires_at: datetime | None = None,
        rotated_by: str | None = None,
        now: datetime | None = None,
    ) -> RewardPool:
        """
        Start a new pool generation and retire the current one.

        Args:
            code: New secret code
            total_pool: Pool size, defaults to settings.reward_default_pool
            expires_at: Code expiry, defaults to now + reward_code_ttl_hours
            rotated_by: Administrator performing the rotation
            now: Rotation instant

        Returns:
            New active RewardPool
        """
        now = self.resolve_now(now)
        code = normalize_code(code)
        if not code:
            raise ValueError("Reward code cannot be empty")

        is_valid, total, error = validate_amount(
            settings.reward_default_pool if total_pool is None else total_pool
        )
        if not is_valid:
            raise InvalidAmount(error)

        expires_at = ensure_utc(expires_at) or now + timedelta(
            hours=settings.reward_code_ttl_hours
        )
        if expires_at <= now:
            raise ValueError("Reward code must expire after the rotation")

        current = await self.pool_repo.get_active(for_update=True)
        if current:
            current.is_active = False
            current.deactivated_at = now
            await self.session.flush()

        generation = await self.pool_repo.get_latest_generation() + 1
        pool = await self.pool_repo.create(
            generation=generation,
            active_code=code,
            total_pool=total,
            remaining_pool=total,
            expires_at=expires_at,
            is_active=True,
            rotated_by=rotated_by,
            created_at=now,
        )

        self.logger.info(
            f"Reward pool rotated to generation {generation}",
            extra={
                "generation": generation,
                "previous_generation": current.generation if current else None,
                "previous_claimed": str(current.claimed_amount) if current else None,
                "total_pool": str(total),
                "expires_at": expires_at.isoformat(),
                "rotated_by": rotated_by,
            },
        )
        return pool
