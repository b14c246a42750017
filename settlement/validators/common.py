"""
Common validators for member input.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
"""

from decimal import Decimal, InvalidOperation

from settlement.config.business_constants import MAX_MONEY_AMOUNT, MONEY_QUANTUM
from settlement.config.settings import settings


def validate_amount(
    value: Decimal | str | int,
) -> tuple[bool, Decimal | None, str | None]:
    """
    Validate a money amount.

    Amounts must be positive, below 10 billion and have at most two
    decimal places.

    Args:
        value: Amount as Decimal, int or string

    Returns:
        Tuple of (is_valid, parsed_amount, error_message)

    Examples:
        >>> validate_amount("100.50")
        (True, Decimal('100.50'), None)
        >>> validate_amount("0")
        (False, None, 'Amount must be positive')
        >>> validate_amount("1.001")
        (False, None, 'Amount must have at most 2 decimal places')
    """
    if value is None or isinstance(value, (bool, float)):
        return False, None, "Amount must be a decimal number"

    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return False, None, "Amount cannot be empty"

    try:
        amount = Decimal(value)
    except (InvalidOperation, ValueError):
        return False, None, "Amount must be a decimal number"

    if not amount.is_finite():
        return False, None, "Amount must be a decimal number"

    if amount <= 0:
        return False, None, "Amount must be positive"

    if amount >= MAX_MONEY_AMOUNT:
        return False, None, "Amount is too large"

    if amount != amount.quantize(MONEY_QUANTUM):
        return False, None, "Amount must have at most 2 decimal places"

    return True, amount, None


def validate_pin_format(pin: str) -> tuple[bool, str | None, str | None]:
    """
    Validate PIN format.

    Args:
        pin: PIN as typed by the member

    Returns:
        Tuple of (is_valid, pin, error_message)

    Examples:
        >>> validate_pin_format("123456")
        (True, '123456', None)
        >>> validate_pin_format("12a456")
        (False, None, 'PIN must be exactly 6 digits')
    """
    error = f"PIN must be exactly {settings.pin_length} digits"

    if not pin or not isinstance(pin, str):
        return False, None, error

    pin = pin.strip()

    # isdigit() accepts superscripts and other unicode digits
    if len(pin) != settings.pin_length or not (pin.isascii() and pin.isdigit()):
        return False, None, error

    return True, pin, None
