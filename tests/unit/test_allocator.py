"""
Tests for the pooled withdrawal allocator.

Covers:
- Balance first, then contracts by ascending ID
- Exact sums, including sub-cent targets
- Capacity check before planning
"""

from decimal import Decimal

import pytest

from settlement.models.enums import SourceKind
from settlement.services.withdrawal.allocator import ContractCandidate, allocate
from settlement.utils.exceptions import InsufficientAvailableBalance, InvalidAmount


OWNER_ID = 7


def lines_of(plan):
    return [(line.kind, line.source_id, line.amount) for line in plan.lines]


class TestAllocationOrder:
    """Test draw order and amounts."""

    def test_balance_then_contracts(self):
        """T=500, balance 200, contracts 100 and 300."""
        plan = allocate(
            Decimal("500"),
            Decimal("200"),
            [ContractCandidate(1, Decimal("100")), ContractCandidate(2, Decimal("300"))],
            OWNER_ID,
        )

        assert lines_of(plan) == [
            (SourceKind.BALANCE, OWNER_ID, Decimal("200")),
            (SourceKind.CONTRACT, 1, Decimal("100")),
            (SourceKind.CONTRACT, 2, Decimal("200")),
        ]
        assert plan.total == Decimal("500")
        assert plan.balance_amount == Decimal("200")

    def test_contracts_sorted_by_id(self):
        """Candidate order does not matter."""
        plan = allocate(
            Decimal("150"),
            Decimal("0"),
            [ContractCandidate(9, Decimal("100")), ContractCandidate(3, Decimal("100"))],
            OWNER_ID,
        )

        assert lines_of(plan) == [
            (SourceKind.CONTRACT, 3, Decimal("100")),
            (SourceKind.CONTRACT, 9, Decimal("50")),
        ]

    def test_balance_covers_everything(self):
        """No contract line when the balance suffices."""
        plan = allocate(
            Decimal("50"),
            Decimal("200"),
            [ContractCandidate(1, Decimal("100"))],
            OWNER_ID,
        )

        assert lines_of(plan) == [(SourceKind.BALANCE, OWNER_ID, Decimal("50"))]
        assert plan.contract_lines == []

    def test_zero_withdrawable_contracts_skipped(self):
        """Contracts with nothing withdrawable get no line."""
        plan = allocate(
            Decimal("100"),
            Decimal("0"),
            [ContractCandidate(1, Decimal("0")), ContractCandidate(2, Decimal("100"))],
            OWNER_ID,
        )

        assert lines_of(plan) == [(SourceKind.CONTRACT, 2, Decimal("100"))]

    def test_exact_capacity(self):
        """Target equal to capacity drains every source."""
        plan = allocate(
            Decimal("600"),
            Decimal("200"),
            [ContractCandidate(1, Decimal("100")), ContractCandidate(2, Decimal("300"))],
            OWNER_ID,
        )

        assert [line.amount for line in plan.lines] == [
            Decimal("200"), Decimal("100"), Decimal("300"),
        ]


class TestExactSums:
    """Test that lines always sum to the target."""

    def test_sub_cent_remainder_goes_to_first_line(self):
        """A fraction of a cent lands on the first source line."""
        plan = allocate(
            Decimal("100.005"),
            Decimal("200"),
            [],
            OWNER_ID,
        )

        assert plan.lines[0].amount == Decimal("100.005")
        assert plan.total == Decimal("100.005")

    @pytest.mark.parametrize(
        "target", ["0.01", "299.99", "333.33", "400.00", "599.99"]
    )
    def test_sum_equals_target(self, target):
        """Sum of lines equals any target within capacity."""
        plan = allocate(
            Decimal(target),
            Decimal("200"),
            [ContractCandidate(1, Decimal("100")), ContractCandidate(2, Decimal("300"))],
            OWNER_ID,
        )

        assert plan.total == Decimal(target)
        assert all(line.amount > 0 for line in plan.lines)


class TestCapacity:
    """Test failures."""

    def test_insufficient_capacity(self):
        """Target above capacity fails with the available amount."""
        with pytest.raises(InsufficientAvailableBalance) as exc_info:
            allocate(
                Decimal("601"),
                Decimal("200"),
                [ContractCandidate(1, Decimal("100")), ContractCandidate(2, Decimal("300"))],
                OWNER_ID,
            )

        assert exc_info.value.available == Decimal("600")
        assert exc_info.value.requested == Decimal("601")
        assert exc_info.value.error_code == "INSUFFICIENT_AVAILABLE_BALANCE"

    def test_nothing_available(self):
        """No balance and no contracts."""
        with pytest.raises(InsufficientAvailableBalance):
            allocate(Decimal("1"), Decimal("0"), [], OWNER_ID)

    def test_non_positive_target(self):
        """Zero and negative targets are rejected."""
        with pytest.raises(InvalidAmount):
            allocate(Decimal("0"), Decimal("100"), [], OWNER_ID)
        with pytest.raises(InvalidAmount):
            allocate(Decimal("-5"), Decimal("100"), [], OWNER_ID)
