"""
Exception handling utilities.

Defines the settlement error taxonomy and categorizes database errors
into retryable conflicts and everything else.
"""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError


class SettlementError(Exception):
    """
    Base class for all settlement errors.

    Carries a stable machine-readable error_code and a message that can be
    shown to the member as is.
    """

    error_code = "SETTLEMENT_ERROR"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Lifecycle

class InvalidTransition(SettlementError):
    """Raised when a state change is not allowed from the current state."""

    error_code = "INVALID_TRANSITION"
    default_message = "Operation is not allowed in the current state"


class ContractNotActive(SettlementError):
    """Raised when a contract is not active for the requested operation."""

    error_code = "CONTRACT_NOT_ACTIVE"
    default_message = "Contract is not active"


# Withdrawals

class InsufficientAvailableBalance(SettlementError):
    """Raised when balance plus eligible contracts cannot cover a target."""

    error_code = "INSUFFICIENT_AVAILABLE_BALANCE"

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} exceeds available {available}"
        )


class InvalidAmount(SettlementError):
    """Raised when an amount is not positive or has too many decimals."""

    error_code = "INVALID_AMOUNT"
    default_message = "Invalid amount"


class VerificationRequired(SettlementError):
    """Raised when a withdrawal needs a completed KYC verification."""

    error_code = "VERIFICATION_REQUIRED"
    default_message = "Identity verification is required before withdrawing"


class Unauthorized(SettlementError):
    """Raised when a member acts on an entity owned by someone else."""

    error_code = "UNAUTHORIZED"
    default_message = "Not allowed"


# PIN gate

class PinLocked(SettlementError):
    """Raised while the PIN gate is locked after too many failures."""

    error_code = "LOCKED"

    def __init__(self, locked_until) -> None:
        self.locked_until = locked_until
        super().__init__(
            f"Too many incorrect PIN attempts. Try again after {locked_until:%H:%M} UTC"
        )


class IncorrectPin(SettlementError):
    """Raised on a PIN mismatch that did not trigger the lockout."""

    error_code = "INCORRECT_PIN"

    def __init__(self, attempts_left: int) -> None:
        self.attempts_left = attempts_left
        super().__init__(f"Incorrect PIN. {attempts_left} attempt(s) left")


class PinNotSet(SettlementError):
    """Raised when a gated operation is attempted before PIN setup."""

    error_code = "PIN_NOT_SET"
    default_message = "Set up a PIN first"


class InvalidPinFormat(SettlementError):
    """Raised when a PIN does not have the required format."""

    error_code = "INVALID_PIN_FORMAT"
    default_message = "PIN must be exactly 6 digits"


# Reward pool

class PoolNotFound(SettlementError):
    """Raised when no active reward pool exists."""

    error_code = "POOL_NOT_FOUND"
    default_message = "No active reward pool"


class CodeMismatch(SettlementError):
    """Raised when the submitted code is not the active one."""

    error_code = "CODE_MISMATCH"
    default_message = "Invalid code"


class PoolExpired(SettlementError):
    """Raised when the active code has expired."""

    error_code = "POOL_EXPIRED"
    default_message = "This code has expired"


class PoolDepleted(SettlementError):
    """Raised when the pool has nothing left."""

    error_code = "POOL_DEPLETED"
    default_message = "The reward pool is empty"


class AlreadyClaimed(SettlementError):
    """Raised when the member already claimed from this pool generation."""

    error_code = "ALREADY_CLAIMED"
    default_message = "You have already claimed this code"


# Lookups

class NotFound(SettlementError):
    """Raised when an entity does not exist."""

    error_code = "NOT_FOUND"
    default_message = "Not found"


class UserNotFound(NotFound):
    error_code = "USER_NOT_FOUND"
    default_message = "User not found"


class ContractNotFound(NotFound):
    error_code = "CONTRACT_NOT_FOUND"
    default_message = "Contract not found"


class PayoutNotFound(NotFound):
    error_code = "PAYOUT_NOT_FOUND"
    default_message = "Payout request not found"


# Concurrency

class Conflict(SettlementError):
    """Raised when a transaction kept losing to concurrent writers."""

    error_code = "CONFLICT"
    default_message = "The system is busy. Please try again in a few seconds"


# Exception categories based on handling strategy

# Retry - another transaction won the race
RETRYABLE = (
    StaleDataError,    # Version check failed on UPDATE/DELETE
)

# IntegrityError text that means a unique constraint lost to a concurrent insert.
# CHECK and foreign key violations are real errors and propagate.
UNIQUE_MARKERS = (
    "unique constraint",
    "duplicate key",
    "uniqueviolation",
)

# OperationalError text that means lock contention rather than a broken DB
LOCK_MARKERS = (
    "could not obtain lock",
    "lock_not_available",
    "database is locked",
    "deadlock detected",
    "could not serialize access",
)


def is_conflict_error(exc: Exception) -> bool:
    """
    Check if exception is a concurrency conflict worth retrying.

    Args:
        exc: Exception to check

    Returns:
        True if the transaction should be re-run
    """
    if isinstance(exc, RETRYABLE):
        return True
    if isinstance(exc, IntegrityError):
        error_str = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in error_str for marker in UNIQUE_MARKERS)
    if isinstance(exc, OperationalError):
        error_str = str(exc).lower()
        return any(marker in error_str for marker in LOCK_MARKERS)
    return False
