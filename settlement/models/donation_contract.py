"""
DonationContract model.

Represents one pledge: an immutable principal released back to the member
in periodic settlements.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from settlement.config.business_constants import MAX_WITHDRAWALS_PER_CONTRACT
from settlement.models.base import Base
from settlement.models.enums import ContractStatus
from settlement.models.types import MoneyType


class DonationContract(Base):
    """
    DonationContract entity.

    Attributes:
        id: Primary key, also the allocator's draw order
        owner_id: Member who pledged
        principal: Pledged amount, never reduced
        status: pending, active, completed, expired or rejected
        start_at: Set on approval
        end_at: start_at + contract term
        last_withdrawal_at: Time of the latest settlement
        withdrawal_count: Number of settlements (0..12)
        total_withdrawn: Sum of all settlements, never above principal
    """

    __tablename__ = "donation_contracts"
    __table_args__ = (
        CheckConstraint(
            "principal > 0", name="check_contract_principal_positive"
        ),
        CheckConstraint(
            "total_withdrawn >= 0",
            name="check_contract_total_withdrawn_non_negative",
        ),
        CheckConstraint(
            "total_withdrawn <= principal",
            name="check_contract_total_withdrawn_not_exceeds_principal",
        ),
        CheckConstraint(
            f"withdrawal_count >= 0 AND withdrawal_count <= {MAX_WITHDRAWALS_PER_CONTRACT}",
            name="check_contract_withdrawal_count_range",
        ),
        CheckConstraint(
            "status <> 'completed' OR "
            f"withdrawal_count = {MAX_WITHDRAWALS_PER_CONTRACT} OR total_withdrawn = principal",
            name="check_contract_completed_when_exhausted",
        ),
        CheckConstraint(
            "status = 'completed' OR "
            f"(withdrawal_count < {MAX_WITHDRAWALS_PER_CONTRACT} AND total_withdrawn < principal)",
            name="check_contract_open_until_exhausted",
        ),
        CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'expired', 'rejected')",
            name="check_contract_status_valid",
        ),
        Index("idx_contract_owner_status", "owner_id", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Owner reference
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Pledge
    principal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payment_method: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    receipt_reference: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
        comment="Opaque pointer to the uploaded receipt",
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.PENDING.value,
        index=True,
    )
    start_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Settlement tracking
    last_withdrawal_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    withdrawal_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_withdrawn: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )

    # Administrator attribution
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_by: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Terminal timestamps
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<DonationContract(id={self.id}, owner_id={self.owner_id}, "
            f"principal={self.principal}, status={self.status}, "
            f"withdrawn={self.total_withdrawn}, count={self.withdrawal_count})>"
        )

    @property
    def remaining_principal(self) -> Decimal:
        """Principal not yet released."""
        return self.principal - (self.total_withdrawn or Decimal("0"))

    @property
    def remaining_withdrawals(self) -> int:
        """Settlements left before the count ceiling."""
        return max(0, MAX_WITHDRAWALS_PER_CONTRACT - (self.withdrawal_count or 0))
