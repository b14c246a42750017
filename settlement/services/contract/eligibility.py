"""
Contract eligibility calculator.

Pure functions deciding how much a donation contract may release right now.
The per-period rule (30% of principal once a full period has elapsed since
the last settlement) is the only gate; the accrual estimate is for display.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal

from settlement.config.business_constants import (
    MAX_WITHDRAWALS_PER_CONTRACT,
    quantize_money,
)
from settlement.config.settings import settings
from settlement.models.donation_contract import DonationContract
from settlement.models.enums import ContractStatus
from settlement.utils.datetime_utils import ensure_utc, utc_now


SECONDS_PER_DAY = Decimal("86400")
MONTHS_PRECISION = Decimal("0.0001")

# Reasons reported when nothing can be withdrawn
REASON_NOT_ACTIVE = "not_active"
REASON_NOT_STARTED = "not_started"
REASON_EXPIRED = "expired"
REASON_MAX_WITHDRAWALS = "max_withdrawals_reached"
REASON_FULLY_WITHDRAWN = "fully_withdrawn"
REASON_PERIOD_NOT_ELAPSED = "period_not_elapsed"


@dataclass(frozen=True)
class EligibilityResult:
    """
    Eligibility of one contract at one instant.

    Attributes:
        withdrawable: Amount that may be settled now
        months_elapsed: Periods since the last settlement (or approval)
        estimated_available: Accrual-based estimate, 0 unless withdrawable
        reason: Why nothing is withdrawable, None when something is
        next_eligible_at: When the next period completes
    """

    withdrawable: Decimal
    months_elapsed: Decimal
    estimated_available: Decimal = Decimal("0")
    reason: str | None = None
    next_eligible_at: datetime | None = None

    @property
    def can_withdraw(self) -> bool:
        """Check whether a settlement is permitted."""
        return self.withdrawable > 0


def _ineligible(
    reason: str,
    months_elapsed: Decimal = Decimal("0"),
    next_eligible_at: datetime | None = None,
) -> EligibilityResult:
    return EligibilityResult(
        withdrawable=Decimal("0"),
        months_elapsed=months_elapsed,
        reason=reason,
        next_eligible_at=next_eligible_at,
    )


def months_between(start: datetime, end: datetime, period_days: int | None = None) -> Decimal:
    """
    Count fractional periods between two instants.

    Args:
        start: Earlier instant
        end: Later instant
        period_days: Period length, defaults to settings.period_days

    Returns:
        Non-negative number of periods, truncated to 4 decimals
    """
    period_days = period_days or settings.period_days
    seconds = Decimal(str((ensure_utc(end) - ensure_utc(start)).total_seconds()))
    months = seconds / (SECONDS_PER_DAY * period_days)
    return max(Decimal("0"), months.quantize(MONTHS_PRECISION, rounding=ROUND_DOWN))


def per_period_amount(principal: Decimal, rate: Decimal | None = None) -> Decimal:
    """Amount released per elapsed period."""
    rate = settings.withdrawal_rate if rate is None else rate
    return quantize_money(Decimal(principal) * rate)


def calculate_eligibility(
    contract: DonationContract,
    now: datetime | None = None,
) -> EligibilityResult:
    """
    Calculate how much a contract may release at ``now``.

    Eligible when the contract is active, not past its end date, below the
    settlement count ceiling, and at least one full period has elapsed since
    the last settlement (or since approval). The amount is one period's
    share of the principal, capped at the principal not yet withdrawn.

    Args:
        contract: Donation contract
        now: Evaluation instant, defaults to current UTC time

    Returns:
        EligibilityResult
    """
    now = ensure_utc(now) if now is not None else utc_now()
    start_at = ensure_utc(contract.start_at)
    end_at = ensure_utc(contract.end_at)

    if contract.status != ContractStatus.ACTIVE:
        return _ineligible(REASON_NOT_ACTIVE)

    if start_at is None:
        return _ineligible(REASON_NOT_STARTED)

    if end_at is not None and now > end_at:
        return _ineligible(REASON_EXPIRED)

    reference = ensure_utc(contract.last_withdrawal_at) or start_at
    months_elapsed = months_between(reference, now)

    if (contract.withdrawal_count or 0) >= MAX_WITHDRAWALS_PER_CONTRACT:
        return _ineligible(REASON_MAX_WITHDRAWALS, months_elapsed)

    remaining = quantize_money(contract.remaining_principal)
    if remaining <= 0:
        return _ineligible(REASON_FULLY_WITHDRAWN, months_elapsed)

    next_eligible_at = reference + timedelta(days=settings.period_days)

    if months_elapsed < 1:
        return _ineligible(REASON_PERIOD_NOT_ELAPSED, months_elapsed, next_eligible_at)

    withdrawable = min(per_period_amount(contract.principal), remaining)

    return EligibilityResult(
        withdrawable=withdrawable,
        months_elapsed=months_elapsed,
        estimated_available=estimate_accrued(contract, now),
        reason=None,
        next_eligible_at=now,
    )


def estimate_accrued(contract: DonationContract, now: datetime | None = None) -> Decimal:
    """
    Estimate the amount accrued since approval and not yet withdrawn.

    Linear accrual of the per-period rate over all periods since approval,
    capped at the principal. Informational only.

    Args:
        contract: Donation contract
        now: Evaluation instant

    Returns:
        Estimated available amount, never negative
    """
    now = ensure_utc(now) if now is not None else utc_now()
    start_at = ensure_utc(contract.start_at)
    if start_at is None:
        return Decimal("0")

    months_since_start = months_between(start_at, now)
    earned = min(
        Decimal(contract.principal) * settings.withdrawal_rate * months_since_start,
        Decimal(contract.principal),
    )
    withdrawn = contract.total_withdrawn or Decimal("0")
    return quantize_money(max(Decimal("0"), earned - withdrawn))


def days_until_next_withdrawal(
    contract: DonationContract, now: datetime | None = None
) -> int:
    """
    Get whole days until the next settlement becomes possible.

    Args:
        contract: Donation contract
        now: Evaluation instant

    Returns:
        0 if withdrawable now or never again, otherwise days rounded up
    """
    result = calculate_eligibility(contract, now)
    if result.can_withdraw or result.next_eligible_at is None:
        return 0

    now = ensure_utc(now) if now is not None else utc_now()
    remaining = result.next_eligible_at - now
    days = remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)
    return max(0, days)


def get_withdrawal_details(
    contract: DonationContract, now: datetime | None = None
) -> dict:
    """
    Get withdrawal details of a contract for display.

    Args:
        contract: Donation contract
        now: Evaluation instant

    Returns:
        Dict with eligibility and remaining limits
    """
    result = calculate_eligibility(contract, now)
    return {
        "contract_id": contract.id,
        "status": contract.status,
        "principal": contract.principal,
        "total_withdrawn": contract.total_withdrawn,
        "remaining_principal": contract.remaining_principal,
        "withdrawal_count": contract.withdrawal_count,
        "remaining_withdrawals": contract.remaining_withdrawals,
        "per_period_amount": per_period_amount(contract.principal),
        "withdrawable": result.withdrawable,
        "estimated_available": result.estimated_available,
        "months_elapsed": result.months_elapsed,
        "can_withdraw": result.can_withdraw,
        "reason": result.reason,
        "next_eligible_at": result.next_eligible_at,
        "days_until_next": days_until_next_withdrawal(contract, now),
    }
