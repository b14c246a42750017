"""
Integration tests for the MANA reward pool.

Covers rotation, claiming, the refusal order, idempotent replays and
concurrent claims against the same pool.
"""

import asyncio
import random
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from settlement.models import RewardClaim, RewardPool, User
from settlement.services.reward.reward_pool_service import RewardPoolService
from settlement.services.reward.schemas import ClaimRequest
from settlement.utils.datetime_utils import ensure_utc
from settlement.utils.exceptions import (
    AlreadyClaimed,
    CodeMismatch,
    Conflict,
    PoolDepleted,
    PoolExpired,
    PoolNotFound,
)

pytestmark = pytest.mark.integration


class FixedRandom(random.Random):
    """Always picks the top of the range."""

    def randint(self, a, b):
        return b


async def count_claims(session_maker) -> int:
    async with session_maker() as session:
        result = await session.execute(select(func.count()).select_from(RewardClaim))
        return result.scalar()


class TestRotation:
    """Test pool rotation."""

    @pytest.mark.asyncio
    async def test_first_rotation(self, session, now):
        """The first pool gets generation 1 and the default expiry."""
        service = RewardPoolService(session)

        pool = await service.rotate_pool(" mana-one ", total_pool="1500", now=now)

        assert pool.generation == 1
        assert pool.active_code == "MANA-ONE"
        assert pool.remaining_pool == Decimal("1500")
        assert ensure_utc(pool.expires_at) == now + timedelta(hours=24)
        assert pool.is_active is True

    @pytest.mark.asyncio
    async def test_rotation_retires_previous(self, session, make_pool, fetch, now):
        """Rotation deactivates the current generation."""
        old_id = await make_pool(code="OLD")
        service = RewardPoolService(session)

        pool = await service.rotate_pool("NEW", total_pool="200", rotated_by="admin-1", now=now)

        assert pool.generation == 2
        assert pool.rotated_by == "admin-1"
        old = await fetch(RewardPool, old_id)
        assert old.is_active is False
        assert old.deactivated_at is not None
        assert (await service.get_active_pool()).id == pool.id

    @pytest.mark.asyncio
    async def test_empty_code(self, session, now):
        service = RewardPoolService(session)

        with pytest.raises(ValueError):
            await service.rotate_pool("   ", now=now)

    @pytest.mark.asyncio
    async def test_past_expiry_keeps_current_pool(self, session, make_pool, fetch, now):
        """A code that is already expired does not replace the live one."""
        old_id = await make_pool(code="LIVE")
        service = RewardPoolService(session)

        for expires_at in (now - timedelta(days=1), now):
            with pytest.raises(ValueError):
                await service.rotate_pool("STALE", expires_at=expires_at, now=now)

        old = await fetch(RewardPool, old_id)
        assert old.is_active is True
        assert old.generation == 1


class TestClaim:
    """Test claiming from the pool."""

    @pytest.mark.asyncio
    async def test_claim_credits_balance(
        self, session, session_maker, make_user, make_pool, fetch, now
    ):
        """A claim moves a whole-cent amount from pool to balance."""
        user_id = await make_user(balance="10")
        pool_id = await make_pool(total="1500")
        service = RewardPoolService(session)

        amount = await service.claim(user_id, "mana2026", now=now)

        assert Decimal("1.00") <= amount <= Decimal("5.00")
        assert amount == amount.quantize(Decimal("0.01"))
        user = await fetch(User, user_id)
        assert user.balance == Decimal("10") + amount
        assert user.total_rewards == amount
        pool = await fetch(RewardPool, pool_id)
        assert pool.remaining_pool == Decimal("1500") - amount
        assert await count_claims(session_maker) == 1

    @pytest.mark.asyncio
    async def test_low_pool(self, session, make_user, make_pool, fetch, now):
        """With 40 left, the reward stays within range and the pool shrinks by it."""
        user_id = await make_user()
        pool_id = await make_pool(total="1500", remaining="40")
        service = RewardPoolService(session)

        amount = await service.claim(user_id, "MANA2026", now=now)

        assert amount <= Decimal("40")
        pool = await fetch(RewardPool, pool_id)
        assert pool.remaining_pool == Decimal("40") - amount

    @pytest.mark.asyncio
    async def test_clamped_to_remaining(self, session, make_user, make_pool, fetch, now):
        """The last claim empties the pool exactly."""
        user_id = await make_user()
        pool_id = await make_pool(remaining="0.40")
        service = RewardPoolService(session, rng=FixedRandom())

        amount = await service.claim(user_id, "MANA2026", now=now)

        assert amount == Decimal("0.40")
        assert (await fetch(RewardPool, pool_id)).remaining_pool == Decimal("0")

    @pytest.mark.asyncio
    async def test_claim_snapshot(self, session, session_maker, make_user, make_pool, now):
        """The claim row records the pool before and after."""
        user_id = await make_user(display_name="alice")
        pool_id = await make_pool(remaining="100")
        service = RewardPoolService(session, rng=FixedRandom())

        await service.claim(user_id, "MANA2026", now=now)

        async with session_maker() as check:
            claim = (
                await check.execute(select(RewardClaim).where(RewardClaim.pool_id == pool_id))
            ).scalar_one()
        assert claim.amount == Decimal("5.00")
        assert claim.pool_before == Decimal("100")
        assert claim.pool_after == Decimal("95")
        assert claim.user_display_name == "alice"
        assert claim.code == "MANA2026"


class TestClaimHistory:
    """Test claim history per generation."""

    @pytest.mark.asyncio
    async def test_history_of_active_pool(self, session, make_user, make_pool, now):
        first_user = await make_user()
        second_user = await make_user()
        await make_pool()
        service = RewardPoolService(session)

        await service.claim(first_user, "MANA2026", now=now)
        await service.claim(second_user, "MANA2026", now=now)

        history = await service.get_claim_history()

        assert [claim.user_id for claim in history] == [first_user, second_user]

    @pytest.mark.asyncio
    async def test_history_after_rotation(self, session, make_user, make_pool, now):
        """Rotation starts an empty history; the old one stays readable."""
        user_id = await make_user()
        old_pool = await make_pool()
        service = RewardPoolService(session)
        await service.claim(user_id, "MANA2026", now=now)

        await service.rotate_pool("NEXT", now=now)

        assert await service.get_claim_history() == []
        assert len(await service.get_claim_history(old_pool)) == 1

    @pytest.mark.asyncio
    async def test_history_without_pool(self, session):
        service = RewardPoolService(session)

        assert await service.get_claim_history() == []


class TestClaimRefusals:
    """Test the order in which claims are refused."""

    @pytest.mark.asyncio
    async def test_no_pool(self, session, make_user, now):
        user_id = await make_user()
        service = RewardPoolService(session)

        with pytest.raises(PoolNotFound):
            await service.claim(user_id, "ANY", now=now)

    @pytest.mark.asyncio
    async def test_code_checked_before_expiry(self, session, make_user, make_pool, now):
        """A wrong code on an expired pool reports the wrong code."""
        user_id = await make_user()
        await make_pool(expires_at=now - timedelta(minutes=1))
        service = RewardPoolService(session)

        with pytest.raises(CodeMismatch):
            await service.claim(user_id, "WRONG", now=now)

    @pytest.mark.asyncio
    async def test_expiry_checked_before_depletion(self, session, make_user, make_pool, now):
        user_id = await make_user()
        await make_pool(remaining="0", expires_at=now - timedelta(minutes=1))
        service = RewardPoolService(session)

        with pytest.raises(PoolExpired):
            await service.claim(user_id, "MANA2026", now=now)

    @pytest.mark.asyncio
    async def test_depletion_checked_before_duplicate(
        self, session, make_user, make_pool, now
    ):
        """Emptying the pool then claiming again reports depletion."""
        user_id = await make_user()
        await make_pool(remaining="1.00")
        service = RewardPoolService(session, rng=FixedRandom())

        await service.claim(user_id, "MANA2026", now=now)

        with pytest.raises(PoolDepleted):
            await service.claim(user_id, "MANA2026", now=now)

    @pytest.mark.asyncio
    async def test_second_claim_refused(self, session, make_user, make_pool, fetch, now):
        """One claim per member per generation."""
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session)

        amount = await service.claim(user_id, "MANA2026", now=now)

        with pytest.raises(AlreadyClaimed):
            await service.claim(user_id, "MANA2026", now=now)

        assert (await fetch(User, user_id)).balance == amount

    @pytest.mark.asyncio
    async def test_new_generation_allows_new_claim(self, session, make_user, make_pool, now):
        """Rotation opens a fresh claim for everyone."""
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session, rng=FixedRandom())

        await service.claim(user_id, "MANA2026", now=now)
        await service.rotate_pool("NEXT", total_pool="100", now=now)
        amount = await service.claim(user_id, "next", now=now)

        assert amount == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_old_code_after_rotation(self, session, make_user, make_pool, now):
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session)

        await service.rotate_pool("NEXT", now=now)

        with pytest.raises(CodeMismatch):
            await service.claim(user_id, "MANA2026", now=now)


class TestClaimIdempotency:
    """Test idempotent claim replays."""

    @pytest.mark.asyncio
    async def test_replay_returns_first_amount(
        self, session, session_maker, make_user, make_pool, fetch, now
    ):
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session)

        first = await service.claim(user_id, "MANA2026", now=now, idempotency_key="tap-1")
        second = await service.claim(user_id, "MANA2026", now=now, idempotency_key="tap-1")

        assert second == first
        assert await count_claims(session_maker) == 1
        assert (await fetch(User, user_id)).balance == first


class TestClaimRequest:
    """Test the structured claim entry point."""

    @pytest.mark.asyncio
    async def test_success(self, session, make_user, make_pool, now):
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session, rng=FixedRandom())

        result = await service.handle_claim_request(
            {"user_id": user_id, "code": " mana2026 "}, now=now
        )

        assert result.success is True
        assert result.data == {"amount": Decimal("5.00")}

    @pytest.mark.asyncio
    async def test_domain_error(self, session, make_user, make_pool, now):
        user_id = await make_user()
        await make_pool()
        service = RewardPoolService(session)

        result = await service.handle_claim_request(
            ClaimRequest(user_id=user_id, code="WRONG"), now=now
        )

        assert result.success is False
        assert result.error_code == "CODE_MISMATCH"

    @pytest.mark.asyncio
    async def test_malformed_request(self, session, now):
        service = RewardPoolService(session)

        result = await service.handle_claim_request(
            {"user_id": 0, "code": "", "unexpected": True}, now=now
        )

        assert result.success is False
        assert result.error_code == "INVALID_REQUEST"


class TestConcurrentClaims:
    """Test claims racing for the same pool."""

    @pytest.mark.asyncio
    async def test_same_member_claims_once(
        self, session_maker, make_user, make_pool, fetch, now
    ):
        """Five simultaneous claims by one member pay exactly once."""
        user_id = await make_user()
        pool_id = await make_pool()

        async def claim():
            async with session_maker() as session:
                return await RewardPoolService(session).claim(user_id, "MANA2026", now=now)

        results = await asyncio.gather(*(claim() for _ in range(5)), return_exceptions=True)

        amounts = [r for r in results if isinstance(r, Decimal)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(amounts) == 1
        assert all(isinstance(e, (AlreadyClaimed, Conflict)) for e in errors)
        assert await count_claims(session_maker) == 1
        assert (await fetch(User, user_id)).balance == amounts[0]
        pool = await fetch(RewardPool, pool_id)
        assert pool.remaining_pool == Decimal("1500") - amounts[0]

    @pytest.mark.asyncio
    async def test_pool_never_overdrawn(self, session_maker, make_user, make_pool, fetch, now):
        """Many members on a small pool: granted amounts add up to what left it."""
        user_ids = [await make_user() for _ in range(6)]
        pool_id = await make_pool(total="12", remaining="12")

        async def claim(user_id):
            async with session_maker() as session:
                service = RewardPoolService(session, rng=FixedRandom())
                return await service.claim(user_id, "MANA2026", now=now)

        results = await asyncio.gather(
            *(claim(user_id) for user_id in user_ids), return_exceptions=True
        )

        amounts = [r for r in results if isinstance(r, Decimal)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert all(isinstance(e, (PoolDepleted, Conflict)) for e in errors)
        granted = sum(amounts, Decimal("0"))
        assert granted <= Decimal("12")
        pool = await fetch(RewardPool, pool_id)
        assert pool.remaining_pool == Decimal("12") - granted
        assert pool.remaining_pool >= 0
        assert await count_claims(session_maker) == len(amounts)
