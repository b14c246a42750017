"""
Pooled withdrawal allocator.

Splits one requested amount across the member's spendable balance and
their eligible contracts. Pure: it plans, the caller applies.

Draw order is the balance first, then contracts by ascending ID.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from settlement.config.business_constants import quantize_money
from settlement.models.enums import SourceKind
from settlement.utils.exceptions import InsufficientAvailableBalance, InvalidAmount


@dataclass(frozen=True)
class ContractCandidate:
    """A contract and what it may release now."""

    contract_id: int
    withdrawable: Decimal


@dataclass(frozen=True)
class SourceLine:
    """One line of an allocation: where the money comes from."""

    kind: SourceKind
    source_id: int
    amount: Decimal


@dataclass
class AllocationPlan:
    """Ordered source lines summing to the requested target."""

    target: Decimal
    lines: list[SourceLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))

    @property
    def balance_amount(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.kind == SourceKind.BALANCE),
            Decimal("0"),
        )

    @property
    def contract_lines(self) -> list[SourceLine]:
        return [line for line in self.lines if line.kind == SourceKind.CONTRACT]


def allocate(
    target: Decimal,
    balance: Decimal,
    candidates: list[ContractCandidate],
    owner_id: int,
) -> AllocationPlan:
    """
    Plan a pooled withdrawal.

    Capacity is checked before anything is planned. The balance is drawn
    first, then each contract up to its withdrawable amount. Lines are
    computed in money quanta; a sub-quantum remainder of the target goes to
    the first line that can absorb it, so the lines sum to the target
    exactly.

    Args:
        target: Requested amount
        balance: Member's spendable balance
        candidates: Contracts with their withdrawable amounts
        owner_id: Member ID, used as the balance line's source ID

    Returns:
        AllocationPlan

    Raises:
        InvalidAmount: Target is not positive
        InsufficientAvailableBalance: Balance plus contracts cannot cover target
    """
    target = Decimal(target)
    if target <= 0:
        raise InvalidAmount("Amount must be positive")

    balance = max(Decimal("0"), Decimal(balance or 0))
    eligible = sorted(
        (c for c in candidates if c.withdrawable > 0),
        key=lambda c: c.contract_id,
    )

    capacity = balance + sum((c.withdrawable for c in eligible), Decimal("0"))
    if capacity < target:
        raise InsufficientAvailableBalance(target, capacity)

    # (kind, id, available) in draw order
    sources: list[tuple[SourceKind, int, Decimal]] = []
    if balance > 0:
        sources.append((SourceKind.BALANCE, owner_id, balance))
    sources.extend(
        (SourceKind.CONTRACT, c.contract_id, c.withdrawable) for c in eligible
    )

    remaining = quantize_money(target)
    takes: list[list] = []
    for kind, source_id, available in sources:
        if remaining <= 0:
            break
        take = quantize_money(min(remaining, available))
        if take <= 0:
            continue
        takes.append([kind, source_id, available, take])
        remaining -= take

    leftover = target - sum((t[3] for t in takes), Decimal("0"))
    if leftover:
        _absorb_leftover(takes, sources, leftover, target, capacity)

    plan = AllocationPlan(target=target)
    for kind, source_id, _available, take in takes:
        if take > 0:
            plan.lines.append(SourceLine(kind=kind, source_id=source_id, amount=take))

    return plan


def _absorb_leftover(
    takes: list[list],
    sources: list[tuple[SourceKind, int, Decimal]],
    leftover: Decimal,
    target: Decimal,
    capacity: Decimal,
) -> None:
    # Prefer the first planned line, then any further source in draw order
    for entry in takes:
        if entry[2] - entry[3] >= leftover:
            entry[3] += leftover
            return

    planned = {(t[0], t[1]) for t in takes}
    for kind, source_id, available in sources:
        if (kind, source_id) in planned:
            continue
        if available >= leftover:
            takes.append([kind, source_id, available, leftover])
            return

    # Sources hold sub-quantum fractions that cannot form the remainder
    raise InsufficientAvailableBalance(target, capacity)
