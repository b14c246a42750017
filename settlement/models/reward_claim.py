"""
RewardClaim model.

Append-only record of one MANA grant. At most one per member per pool
generation, enforced by a unique constraint.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.types import MoneyType


class RewardClaim(Base):
    """RewardClaim entity - one granted MANA reward."""

    __tablename__ = "reward_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "pool_id", name="uq_reward_claim_user_pool"),
        UniqueConstraint(
            "user_id", "idempotency_key", name="uq_reward_claim_user_idempotency_key"
        ),
        CheckConstraint("amount > 0", name="check_reward_claim_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pool_id: Mapped[int] = mapped_column(
        ForeignKey("reward_pools.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    user_display_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Pool snapshot for audit
    pool_before: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    pool_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RewardClaim(user_id={self.user_id}, pool_id={self.pool_id}, "
            f"code={self.code}, amount={self.amount})>"
        )
