"""
Shared fixtures for unit tests.

Unit tests work on transient model instances; no database is involved.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from settlement.models.donation_contract import DonationContract
from settlement.models.enums import ContractStatus


@pytest.fixture
def contract_factory():
    """
    Build a transient DonationContract.

    Returns:
        Callable creating contracts with sensible active defaults
    """
    def _build(
        principal: str = "10000",
        status: str = ContractStatus.ACTIVE.value,
        start_at: datetime | None = datetime(2026, 1, 1, tzinfo=UTC),
        end_at: datetime | None = None,
        last_withdrawal_at: datetime | None = None,
        withdrawal_count: int = 0,
        total_withdrawn: str = "0",
        contract_id: int = 1,
    ) -> DonationContract:
        if end_at is None and start_at is not None:
            end_at = start_at + timedelta(days=365)
        return DonationContract(
            id=contract_id,
            owner_id=1,
            principal=Decimal(principal),
            status=status,
            start_at=start_at,
            end_at=end_at,
            last_withdrawal_at=last_withdrawal_at,
            withdrawal_count=withdrawal_count,
            total_withdrawn=Decimal(total_withdrawn),
        )
    return _build
