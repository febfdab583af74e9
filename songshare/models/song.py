"""Song model: a listed track and its royalty pool."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime, Numeric, Boolean, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from songshare.core.database import Base

if TYPE_CHECKING:
    from songshare.models.investment import Investment


class Song(Base):
    """
    A song listed for fractional royalty investment.

    POOL CONVENTION:
      total_royalty_pool is the denominator of every ownership percentage.
      It starts at the artist's listed value and grows by each settled
      contribution. Only the settlement routine writes it.

    `version` is the optimistic-concurrency counter: every flush of a
    changed song bumps it, and a flush against a stale version raises
    StaleDataError.
    """

    __tablename__ = "songs"
    __table_args__ = (
        CheckConstraint("total_royalty_pool >= 0", name="check_pool_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    artist_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Auth provider identity of the uploading artist
    artist_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    album_art_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Accounting
    total_royalty_pool: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    monthly_revenue: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

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
    investments: Mapped[List["Investment"]] = relationship(
        "Investment",
        back_populates="song",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Song {self.id} title={self.title} pool={self.total_royalty_pool}>"
