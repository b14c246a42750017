"""
Input validators.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
"""

from settlement.validators.common import validate_amount, validate_pin_format

__all__ = ["validate_amount", "validate_pin_format"]
