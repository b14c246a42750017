"""
User model.

Represents a member account: spendable balance, KYC result and PIN gate state.
"""

from datetime import UTC, datetime
from decimal import Decimal

import bcrypt
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.enums import KycStatus
from settlement.models.types import MoneyType


class User(Base):
    """User model - member accounts owning contracts and balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "balance >= 0", name="check_user_balance_non_negative"
        ),
        CheckConstraint(
            "total_rewards >= 0",
            name="check_user_total_rewards_non_negative",
        ),
        CheckConstraint(
            "pin_failed_attempts >= 0",
            name="check_user_pin_attempts_non_negative",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity collaborator reference
    external_uid: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    display_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Balances
    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_rewards: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False,
        comment="Lifetime MANA rewards credited to balance",
    )

    # KYC result (read-only for this core)
    kyc_status: Mapped[str] = mapped_column(
        String(32),
        default=KycStatus.NOT_SUBMITTED.value,
        nullable=False,
    )

    # PIN gate
    pin_hash: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    pin_set_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pin_failed_attempts: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    pin_locked_until: Mapped[datetime | None] = mapped_column(
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

    @property
    def has_pin(self) -> bool:
        """Check whether a PIN has been set up."""
        return bool(self.pin_hash)

    @property
    def is_kyc_verified(self) -> bool:
        """Check whether the KYC reviewer has accepted this member."""
        return self.kyc_status in (KycStatus.VERIFIED, KycStatus.APPROVED)

    def set_pin(self, pin: str) -> None:
        """
        Set PIN with bcrypt hashing.

        Args:
            pin: Plain PIN to hash and store
        """
        self.pin_hash = bcrypt.hashpw(pin.encode(), bcrypt.gensalt()).decode()

    def check_pin(self, pin: str) -> bool:
        """
        Verify PIN against stored hash.

        Args:
            pin: Plain PIN to verify

        Returns:
            True if PIN matches, False otherwise
        """
        if not self.pin_hash:
            return False
        return bcrypt.checkpw(pin.encode(), self.pin_hash.encode())

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, external_uid={self.external_uid}, "
            f"balance={self.balance})>"
        )
