"""
RewardPool model.

One row per pool generation. Exactly one generation is active; rotation
deactivates it and inserts the next one.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.types import MoneyType


class RewardPool(Base):
    """
    RewardPool entity.

    Shared, depleting MANA reward pool keyed by a rotating secret code.

    Attributes:
        generation: Monotonic rotation number
        active_code: Upper-cased secret code
        total_pool: Amount the generation started with
        remaining_pool: Amount still claimable
        expires_at: Claims after this instant are rejected
        is_active: Whether this is the current generation
    """

    __tablename__ = "reward_pools"
    __table_args__ = (
        CheckConstraint("total_pool > 0", name="check_pool_total_positive"),
        CheckConstraint(
            "remaining_pool >= 0", name="check_pool_remaining_non_negative"
        ),
        CheckConstraint(
            "remaining_pool <= total_pool",
            name="check_pool_remaining_not_exceeds_total",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    generation: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True
    )
    active_code: Mapped[str] = mapped_column(String(64), nullable=False)
    total_pool: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    remaining_pool: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )

    # Rotation audit
    rotated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RewardPool(generation={self.generation}, code={self.active_code}, "
            f"remaining={self.remaining_pool}/{self.total_pool}, "
            f"active={self.is_active})>"
        )

    @property
    def claimed_amount(self) -> Decimal:
        """Amount already granted from this generation."""
        return self.total_pool - self.remaining_pool
