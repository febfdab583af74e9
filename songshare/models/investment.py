"""Investment model: one investor's cumulative stake in one song."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Numeric, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from songshare.core.database import Base

if TYPE_CHECKING:
    from songshare.models.song import Song
    from songshare.models.payout import Payout


class Investment(Base):
    """
    Investor stake in a song.

    At most one row per (song, user): later contributions increment
    amount_invested. royalty_percentage is derived and rewritten for every
    investment of the song on each settlement:

      royalty_percentage = amount_invested / song.total_royalty_pool * 100
    """

    __tablename__ = "investments"
    __table_args__ = (
        UniqueConstraint("song_id", "user_id", name="uq_investment_song_user"),
        CheckConstraint("amount_invested >= 0", name="check_amount_invested_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    song_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("songs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    amount_invested: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    royalty_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=8),
        default=Decimal("0"),
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    song: Mapped["Song"] = relationship(
        "Song",
        back_populates="investments",
    )
    payouts: Mapped[List["Payout"]] = relationship(
        "Payout",
        back_populates="investment",
        order_by="Payout.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Investment {self.id} song={self.song_id} user={self.user_id} pct={self.royalty_percentage}>"
