"""
Tests for MANA reward amount picking and code normalization.
"""

import random
from decimal import Decimal

from settlement.services.reward.reward_pool_service import (
    RewardPoolService,
    normalize_code,
)


class FixedRandom(random.Random):
    """Random source that always returns one bound."""

    def __init__(self, pick_max: bool):
        super().__init__()
        self.pick_max = pick_max

    def randint(self, a, b):
        return b if self.pick_max else a


class TestPickAmount:
    """Test reward amount selection."""

    def test_amount_within_range_in_cents(self):
        """Amounts are whole cents within [1.00, 5.00]."""
        service = RewardPoolService(None, rng=random.Random(7))

        for _ in range(200):
            amount = service.pick_amount(Decimal("1500"))
            assert Decimal("1.00") <= amount <= Decimal("5.00")
            assert amount == amount.quantize(Decimal("0.01"))

    def test_bounds(self):
        """Both ends of the range are reachable."""
        low = RewardPoolService(None, rng=FixedRandom(pick_max=False))
        high = RewardPoolService(None, rng=FixedRandom(pick_max=True))

        assert low.pick_amount(Decimal("1500")) == Decimal("1.00")
        assert high.pick_amount(Decimal("1500")) == Decimal("5.00")

    def test_clamped_to_remaining(self):
        """Never more than what is left in the pool."""
        service = RewardPoolService(None, rng=FixedRandom(pick_max=True))

        assert service.pick_amount(Decimal("0.40")) == Decimal("0.40")


class TestNormalizeCode:
    """Test code normalization."""

    def test_trim_and_upper(self):
        assert normalize_code("  mana2026 ") == "MANA2026"

    def test_empty(self):
        assert normalize_code(None) == ""
