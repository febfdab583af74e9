"""
Settlement service: applies a confirmed payment to a song's royalty pool.

Sequence, in one transaction per attempt:
1. Skip if the payment reference was already settled (redelivery).
2. Lock the song row, read total_royalty_pool.
3. new_total_pool = total_royalty_pool + amount.
4. Upsert the (song, investor) investment with the incremented amount.
5. Persist new_total_pool on the song.
6. Recompute royalty_percentage of every investment of the song.
7. Record the settled payment.

Serialization per song:
- in-process: one asyncio.Lock per song id, acquired in arrival order
- across processes: SELECT ... FOR UPDATE on the song row, plus the
  song.version optimistic check for databases without row locks

A version mismatch or a unique-key race is a ConcurrencyConflictError and
the whole settlement is retried from a fresh read.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from songshare.core.config import settings
from songshare.core.database import async_session_maker
from songshare.core.exceptions import (
    ConcurrencyConflictError,
    InvestmentNotFoundError,
    TransientFailureError,
)
from songshare.models.settled_payment import SettledPayment
from songshare.services.ledger import LedgerStore
from songshare.services.pool_math import ownership_percentage, plan_settlement, validate_contribution

logger = logging.getLogger(__name__)


class SongLocks:
    """
    Registry of one asyncio.Lock per song id.

    Locks are held weakly: an entry lives only while some caller holds or
    waits on the lock, so idle songs do not accumulate.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, song_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(song_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[song_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class SettlementResult:
    """State of the song and investor after a settlement."""
    song_id: UUID
    user_id: str
    investment_id: UUID
    payment_reference: str
    amount: Decimal
    amount_invested: Decimal
    royalty_percentage: Decimal
    total_royalty_pool: Decimal
    duplicate: bool = False
    percentages: Dict[UUID, Decimal] = field(default_factory=dict)


class SettlementService:
    """
    Applies confirmed payments to the ledger.

    Each attempt opens its own session from session_factory so that a
    retry always starts from a fresh read.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: SongLocks | None = None,
        max_retries: int | None = None,
    ):
        """
        Initialize settlement service.

        Args:
            session_factory: Session factory (defaults to the app's)
            locks: Per-song lock registry (defaults to the shared one)
            max_retries: Attempts before TransientFailureError
        """
        self.session_factory = session_factory or async_session_maker
        self.locks = locks or song_locks
        self.max_retries = settings.SETTLEMENT_MAX_RETRIES if max_retries is None else max_retries

    async def settle(
        self,
        song_id: UUID,
        user_id: str,
        amount,
        payment_reference: str,
        event_id: str | None = None,
    ) -> SettlementResult:
        """
        Settle a confirmed contribution.

        Args:
            song_id: Song receiving the contribution
            user_id: Contributing investor
            amount: Confirmed amount (re-validated here)
            payment_reference: Gateway's unique payment id, used for dedup
            event_id: Gateway event id, stored for audit

        Returns:
            SettlementResult (duplicate=True when already settled)

        Raises:
            InvalidAmountError: amount is not a positive monetary value
            SongNotFoundError: song does not exist, nothing written
            TransientFailureError: conflicts persisted past max_retries
        """
        amount = validate_contribution(amount)
        if not user_id:
            raise ValueError("user_id is required")
        if not payment_reference:
            raise ValueError("payment_reference is required")

        async with self.locks.get(song_id):
            for attempt in range(1, self.max_retries + 1):
                try:
                    return await self._settle_once(song_id, user_id, amount, payment_reference, event_id)
                except ConcurrencyConflictError as e:
                    logger.warning(
                        f"Settlement conflict for song {song_id} "
                        f"(payment {payment_reference}, attempt {attempt}/{self.max_retries}): {e}"
                    )

        logger.error(f"Settlement of payment {payment_reference} for song {song_id} gave up after {self.max_retries} attempts")
        raise TransientFailureError(
            f"Could not settle payment {payment_reference} for song {song_id}, retry later"
        )

    async def _settle_once(
        self,
        song_id: UUID,
        user_id: str,
        amount: Decimal,
        payment_reference: str,
        event_id: str | None,
    ) -> SettlementResult:
        async with self.session_factory() as db:
            try:
                async with db.begin():
                    store = LedgerStore(db)

                    settled = await store.get_settled_payment(payment_reference)
                    if settled is not None:
                        logger.info(f"Payment {payment_reference} already settled, skipping")
                        return await self._duplicate_result(store, settled)

                    song = await store.get_song(song_id, for_update=True)
                    investments = await store.get_investments(song_id, for_update=True)

                    plan = plan_settlement(
                        song.total_royalty_pool,
                        {inv.user_id: inv.amount_invested for inv in investments},
                        user_id,
                        amount,
                    )

                    investment = await store.upsert_investment(song_id, user_id, amount)
                    investment.royalty_percentage = plan.investor_percentage

                    await store.update_song_pool(song, plan.new_total_pool)

                    percentages = await self._recompute_percentages(store, song_id, plan.new_total_pool)

                    await store.record_settled_payment(payment_reference, event_id, investment, amount)

                    result = SettlementResult(
                        song_id=song_id,
                        user_id=user_id,
                        investment_id=investment.id,
                        payment_reference=payment_reference,
                        amount=amount,
                        amount_invested=investment.amount_invested,
                        royalty_percentage=investment.royalty_percentage,
                        total_royalty_pool=plan.new_total_pool,
                        percentages=percentages,
                    )
            except (StaleDataError, IntegrityError) as e:
                raise ConcurrencyConflictError(str(e)) from e

        logger.info(
            f"Investment settled: {amount} in song {song_id} by user {user_id}, "
            f"pool={result.total_royalty_pool}, share={result.royalty_percentage}%"
        )
        return result

    async def _recompute_percentages(
        self,
        store: LedgerStore,
        song_id: UUID,
        total_pool: Decimal,
    ) -> Dict[UUID, Decimal]:
        """Rewrite every investment's percentage against total_pool."""
        percentages: Dict[UUID, Decimal] = {}
        for investment in await store.get_investments(song_id):
            investment.royalty_percentage = ownership_percentage(investment.amount_invested, total_pool)
            percentages[investment.id] = investment.royalty_percentage
        await store.db.flush()
        return percentages

    async def _duplicate_result(self, store: LedgerStore, settled: SettledPayment) -> SettlementResult:
        song = await store.get_song(settled.song_id)
        investment = await store.get_investment(settled.song_id, settled.user_id)
        if investment is None:
            raise InvestmentNotFoundError(settled.investment_id)

        return SettlementResult(
            song_id=settled.song_id,
            user_id=settled.user_id,
            investment_id=investment.id,
            payment_reference=settled.payment_reference,
            amount=settled.amount,
            amount_invested=investment.amount_invested,
            royalty_percentage=investment.royalty_percentage,
            total_royalty_pool=song.total_royalty_pool,
            duplicate=True,
        )


# Shared lock registry and default service instance
song_locks = SongLocks()
settlement_service = SettlementService()
