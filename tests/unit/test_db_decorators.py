"""
Tests for the conflict retry decorator.
"""

from unittest.mock import AsyncMock

import pytest
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from settlement.config.settings import settings
from settlement.utils.db_decorators import retry_on_conflict
from settlement.utils.exceptions import Conflict, InvalidAmount


class FakeService:
    """Minimal object with a session, like a BaseService."""

    def __init__(self, failures: list[Exception]):
        self.session = AsyncMock()
        self.logger = logger
        self.failures = list(failures)
        self.calls = 0

    @retry_on_conflict
    async def attempt(self, value):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return value * 2


class TestRetryOnConflict:
    """Test commit, rollback and retry behaviour."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        service = FakeService([])

        assert await service.attempt(21) == 42
        service.session.commit.assert_awaited_once()
        service.session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_after_conflict(self):
        service = FakeService([StaleDataError("stale"), StaleDataError("stale")])

        assert await service.attempt(1) == 2
        assert service.calls == 3
        assert service.session.rollback.await_count == 2
        service.session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_raises_conflict_when_exhausted(self):
        failures = [StaleDataError("stale")] * settings.conflict_max_retries
        service = FakeService(failures)

        with pytest.raises(Conflict):
            await service.attempt(1)

        assert service.calls == settings.conflict_max_retries
        service.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_domain_error_not_retried(self):
        service = FakeService([InvalidAmount("bad")])

        with pytest.raises(InvalidAmount):
            await service.attempt(1)

        assert service.calls == 1
        service.session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unique_violation_retried(self):
        error = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: reward_claims.pool_id")
        )
        service = FakeService([error])

        assert await service.attempt(2) == 4
        assert service.calls == 2

    @pytest.mark.asyncio
    async def test_check_violation_not_retried(self):
        """A broken invariant surfaces as itself, not as Conflict."""
        error = IntegrityError(
            "UPDATE",
            {},
            Exception("CHECK constraint failed: check_contract_withdrawal_count_range"),
        )
        service = FakeService([error] * settings.conflict_max_retries)

        with pytest.raises(IntegrityError):
            await service.attempt(1)

        assert service.calls == 1
        service.session.rollback.assert_awaited_once()
        service.session.commit.assert_not_awaited()
