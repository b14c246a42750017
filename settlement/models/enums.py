"""
Enumerations used by models and services.
"""

from enum import StrEnum


class ContractStatus(StrEnum):
    """Donation contract lifecycle states."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Terminal states accept no further transitions."""
        return self in (
            ContractStatus.COMPLETED,
            ContractStatus.EXPIRED,
            ContractStatus.REJECTED,
        )


class PayoutStatus(StrEnum):
    """Payout request states set by the fulfillment channel."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed payouts are immutable."""
        return self in (PayoutStatus.COMPLETED, PayoutStatus.FAILED)


class SourceKind(StrEnum):
    """Where a payout line draws its money from."""

    CONTRACT = "contract"
    BALANCE = "balance"


class KycStatus(StrEnum):
    """KYC review result, written by the external KYC reviewer."""

    NOT_SUBMITTED = "NOT_SUBMITTED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
