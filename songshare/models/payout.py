"""Payout model for per-investor revenue distributions."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Numeric, Integer, ForeignKey, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from songshare.core.database import Base

if TYPE_CHECKING:
    from songshare.models.investment import Investment


class PayoutStatus(str, Enum):
    """Status of a payout."""
    PENDING = "pending"   # Recorded, transfer not attempted yet
    PAID = "paid"         # Transfer succeeded, immutable
    FAILED = "failed"     # Transfer failed, flagged for retry


class Payout(Base):
    """
    One investor's share of a song's revenue for one period.

    Unique per (investment, period) so a re-run distribution can never
    pay the same investment twice.
    """

    __tablename__ = "payouts"
    __table_args__ = (
        UniqueConstraint("investment_id", "period", name="uq_payout_investment_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    investment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("investments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Denormalized for period lookups without joining investments
    song_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("songs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    period: Mapped[str] = mapped_column(String(7), nullable=False, index=True)  # YYYY-MM
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        SAEnum(
            PayoutStatus,
            name="payoutstatus",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=PayoutStatus.PENDING,
        nullable=False,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Last time a transfer attempt was claimed; stale PENDING payouts are retried
    attempted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transfer_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    investment: Mapped["Investment"] = relationship(
        "Investment",
        back_populates="payouts",
    )

    def __repr__(self) -> str:
        return f"<Payout {self.id} investment={self.investment_id} period={self.period} amount={self.amount}>"
