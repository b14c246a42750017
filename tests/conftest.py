"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests, set before settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("CONFLICT_MAX_RETRIES", "5")
os.environ.setdefault("CONFLICT_RETRY_BASE_DELAY", "0.01")
os.environ.setdefault("KYC_REQUIRED_FOR_WITHDRAWAL", "true")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from settlement.config.database import create_session_maker
from settlement.models import Base, DonationContract, RewardPool, User
from settlement.models.enums import ContractStatus, KycStatus
from settlement.services.contract.lifecycle import add_years


DEFAULT_PIN = "123456"

# Fixed clock for deterministic tests
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant."""
    return NOW


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Async engine on a temporary SQLite file.

    A file (not :memory:) so that separate sessions use separate
    connections and really compete for rows.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    """Session for the code under test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def fetch(session_maker):
    """Load an entity through a fresh session to see committed state."""
    async def _fetch(model, entity_id):
        async with session_maker() as session:
            return await session.get(model, entity_id)
    return _fetch


@pytest.fixture
def make_user(session_maker):
    """Create a committed member and return its ID."""
    async def _make(
        balance: str | Decimal = "0",
        kyc_status: str = KycStatus.VERIFIED.value,
        pin: str | None = DEFAULT_PIN,
        **fields,
    ) -> int:
        async with session_maker() as session:
            user = User(
                external_uid=fields.pop("external_uid", f"uid-{uuid4().hex[:12]}"),
                balance=Decimal(balance),
                total_rewards=Decimal("0"),
                kyc_status=kyc_status,
                pin_failed_attempts=0,
                **fields,
            )
            if pin:
                user.set_pin(pin)
            session.add(user)
            await session.commit()
            return user.id
    return _make


@pytest.fixture
def make_contract(session_maker):
    """Create a committed donation contract and return its ID."""
    async def _make(
        owner_id: int,
        principal: str | Decimal = "10000",
        status: str = ContractStatus.ACTIVE.value,
        start_at: datetime | None = None,
        **fields,
    ) -> int:
        if status != ContractStatus.PENDING and start_at is None:
            start_at = NOW - timedelta(days=31)
        async with session_maker() as session:
            contract = DonationContract(
                owner_id=owner_id,
                principal=Decimal(principal),
                status=status,
                start_at=start_at,
                end_at=add_years(start_at, 1) if start_at else None,
                withdrawal_count=fields.pop("withdrawal_count", 0),
                total_withdrawn=Decimal(fields.pop("total_withdrawn", "0")),
                **fields,
            )
            session.add(contract)
            await session.commit()
            return contract.id
    return _make


@pytest.fixture
def make_pool(session_maker):
    """Create a committed active reward pool and return its ID."""
    async def _make(
        code: str = "MANA2026",
        total: str | Decimal = "1500",
        remaining: str | Decimal | None = None,
        expires_at: datetime | None = None,
        generation: int = 1,
    ) -> int:
        async with session_maker() as session:
            pool = RewardPool(
                generation=generation,
                active_code=code,
                total_pool=Decimal(total),
                remaining_pool=Decimal(total if remaining is None else remaining),
                expires_at=expires_at or NOW + timedelta(hours=24),
                is_active=True,
            )
            session.add(pool)
            await session.commit()
            return pool.id
    return _make


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the minimum bcrypt cost so PIN tests stay fast."""
    import bcrypt

    original = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": original(rounds, prefix))
