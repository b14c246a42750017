"""
Business logic constants for the settlement core.

Central location for business rules shared by services, models and settings.
"""

from decimal import ROUND_DOWN, Decimal


# Smallest money unit. All money arithmetic is quantized to this.
MONEY_QUANTUM = Decimal("0.01")

# Money columns are DECIMAL(18,8): ten integer digits.
MAX_MONEY_AMOUNT = Decimal(10) ** 10

# Donation contract terms
WITHDRAWAL_RATE = Decimal("0.30")  # 30% of principal per period
MAX_WITHDRAWALS_PER_CONTRACT = 12
PERIOD_DAYS = 30
CONTRACT_TERM_YEARS = 1

# PIN gate
PIN_LENGTH = 6
PIN_MAX_ATTEMPTS = 5
PIN_LOCKOUT_MINUTES = 15

# MANA reward pool
REWARD_MIN_AMOUNT = Decimal("1.00")
REWARD_MAX_AMOUNT = Decimal("5.00")
REWARD_DEFAULT_POOL = Decimal("1500")
REWARD_CODE_TTL_HOURS = 24


def quantize_money(amount: Decimal) -> Decimal:
    """
    Round an amount down to the money quantum.

    Rounding down never pays out more than was earned.

    Args:
        amount: Amount to quantize

    Returns:
        Amount with at most two decimal places
    """
    return Decimal(amount).quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)
