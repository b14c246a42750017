"""
PayoutRequest model.

One settlement action handed to the manual payout channel. Lists the
sources (balance and contracts) it drew from, in draw order.
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement.models.base import Base
from settlement.models.enums import PayoutStatus
from settlement.models.types import MoneyType


class PayoutRequest(Base):
    """PayoutRequest entity - aggregated withdrawal awaiting manual payout."""

    __tablename__ = "payout_requests"
    __table_args__ = (
        CheckConstraint(
            "total_amount > 0", name="check_payout_total_positive"
        ),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_payout_status_valid",
        ),
        UniqueConstraint(
            "owner_id", "idempotency_key", name="uq_payout_owner_idempotency_key"
        ),
        Index("idx_payout_status_requested", "status", "requested_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PayoutStatus.PENDING.value,
        index=True,
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_by: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Refund of failed payouts back to the member's balance
    refunded_amount: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    refunded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    sources: Mapped[list["PayoutSource"]] = relationship(
        "PayoutSource",
        back_populates="payout_request",
        cascade="all, delete-orphan",
        order_by="PayoutSource.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PayoutRequest(id={self.id}, owner_id={self.owner_id}, "
            f"total={self.total_amount}, status={self.status})>"
        )

    @property
    def sources_total(self) -> Decimal:
        """Sum of all source lines; equals total_amount."""
        return sum((source.amount for source in self.sources), Decimal("0"))


class PayoutSource(Base):
    """One line of a payout's source breakdown."""

    __tablename__ = "payout_request_sources"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_payout_source_amount_positive"),
        CheckConstraint(
            "source_kind IN ('contract', 'balance')",
            name="check_payout_source_kind_valid",
        ),
        UniqueConstraint(
            "payout_request_id", "position", name="uq_payout_source_position"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    payout_request_id: Mapped[int] = mapped_column(
        ForeignKey("payout_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    source_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    source_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Contract id for contract lines, owner id for balance lines",
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    payout_request: Mapped["PayoutRequest"] = relationship(
        "PayoutRequest", back_populates="sources"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PayoutSource({self.source_kind}:{self.source_id}, "
            f"amount={self.amount})>"
        )
