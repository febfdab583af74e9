"""SettledPayment model: dedup record for confirmed payments."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from songshare.core.database import Base


class SettledPayment(Base):
    """
    A confirmed payment that has been applied to the ledger.

    payment_reference is the gateway's unique id for the payment (the
    checkout session id). It is written in the same transaction as the
    pool update, so a redelivered confirmation finds it and does nothing.
    A second, separate payment by the same investor has its own reference.
    """

    __tablename__ = "settled_payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    payment_reference: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    song_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("songs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    investment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("investments.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )

    settled_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SettledPayment {self.payment_reference} song={self.song_id} amount={self.amount}>"
