"""
Ledger store.

Key-based reads, writes and upserts for songs, investments, payouts and
settled payments. The store holds no business rules: callers own the
transaction and decide what to write.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from songshare.core.exceptions import SongNotFoundError
from songshare.models.investment import Investment
from songshare.models.payout import Payout, PayoutStatus
from songshare.models.settled_payment import SettledPayment
from songshare.models.song import Song

logger = logging.getLogger(__name__)


class LedgerStore:
    """Persistence operations bound to one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_song(self, song_id: UUID, for_update: bool = False) -> Song:
        """
        Get a song by ID.

        Args:
            song_id: Song UUID
            for_update: Take a row lock (SELECT ... FOR UPDATE) for the
                rest of the transaction

        Raises:
            SongNotFoundError: if the song does not exist
        """
        query = select(Song).where(Song.id == song_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.db.execute(query)
        song = result.scalar_one_or_none()

        if song is None:
            raise SongNotFoundError(song_id)

        return song

    async def get_investments(self, song_id: UUID, for_update: bool = False) -> List[Investment]:
        """Get all investments of a song, oldest first."""
        query = (
            select(Investment)
            .where(Investment.song_id == song_id)
            .order_by(Investment.created_at, Investment.id)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_investment(self, song_id: UUID, user_id: str) -> Investment | None:
        """Get the investment row for a (song, user) pair."""
        result = await self.db.execute(
            select(Investment).where(
                Investment.song_id == song_id,
                Investment.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_investment(
        self,
        song_id: UUID,
        user_id: str,
        amount_delta: Decimal,
    ) -> Investment:
        """
        Create the (song, user) investment or increment its amount.

        Atomic when the caller holds the song row lock; the unique
        constraint on (song_id, user_id) rejects a racing duplicate insert.
        """
        investment = await self.get_investment(song_id, user_id)

        if investment is None:
            investment = Investment(
                song_id=song_id,
                user_id=user_id,
                amount_invested=amount_delta,
                royalty_percentage=Decimal("0"),
            )
            self.db.add(investment)
        else:
            investment.amount_invested = investment.amount_invested + amount_delta

        await self.db.flush()
        return investment

    async def update_song_pool(self, song: Song, new_total: Decimal) -> Song:
        """Persist a new total_royalty_pool; the flush checks song.version."""
        song.total_royalty_pool = new_total
        await self.db.flush()
        return song

    async def create_payout(
        self,
        investment: Investment,
        period: str,
        amount: Decimal,
    ) -> Payout:
        """Record a pending payout for an investment and period."""
        payout = Payout(
            investment_id=investment.id,
            song_id=investment.song_id,
            period=period,
            amount=amount,
            status=PayoutStatus.PENDING,
            attempts=0,
        )
        self.db.add(payout)
        await self.db.flush()
        return payout

    async def list_payouts_for_period(self, song_id: UUID, period: str) -> List[Payout]:
        """Get every payout recorded for a song and period."""
        result = await self.db.execute(
            select(Payout)
            .where(Payout.song_id == song_id, Payout.period == period)
            .order_by(Payout.created_at, Payout.id)
        )
        return list(result.scalars().all())

    async def get_settled_payment(self, payment_reference: str) -> SettledPayment | None:
        """Look up a previously applied payment by its gateway reference."""
        result = await self.db.execute(
            select(SettledPayment).where(SettledPayment.payment_reference == payment_reference)
        )
        return result.scalar_one_or_none()

    async def record_settled_payment(
        self,
        payment_reference: str,
        event_id: str | None,
        investment: Investment,
        amount: Decimal,
    ) -> SettledPayment:
        """Mark a payment as applied."""
        settled = SettledPayment(
            payment_reference=payment_reference,
            event_id=event_id,
            song_id=investment.song_id,
            user_id=investment.user_id,
            investment_id=investment.id,
            amount=amount,
        )
        self.db.add(settled)
        await self.db.flush()
        return settled
