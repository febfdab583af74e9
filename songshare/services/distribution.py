"""
Revenue distribution service.

Business rules:
1. Only investments with royalty_percentage > 0 are paid.
2. payout = monthly_revenue * royalty_percentage / 100, ROUND_HALF_UP to
   cents (see pool_math.payout_amount).
3. A period is distributed once per song. Once any payout exists for
   (song, period), distributing that period again creates nothing and
   leaves the song untouched; the call reports the existing payouts.
4. Payout rows are recorded first, then each downstream transfer is
   attempted independently. A failed transfer marks only its own payout
   FAILED; the rest of the batch is kept.
5. FAILED payouts, and PENDING ones whose last attempt never finished, are
   re-sent by retry_failed. Each re-send first claims the payout with a
   compare-and-set on its attempt counter and commits the claim before
   sending, so overlapping retries send at most once.
6. The rounding residual is reported on the result and left unallocated.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Protocol, Tuple
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from songshare.core.config import settings
from songshare.core.exceptions import InvalidAmountError, InvalidPeriodError
from songshare.models.investment import Investment
from songshare.models.payout import Payout, PayoutStatus
from songshare.services.ledger import LedgerStore
from songshare.services.pool_math import HUNDRED, payout_amount, to_money
from songshare.services.settlement import SongLocks, song_locks as default_song_locks

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class PayoutTransfer(Protocol):
    """Protocol for moving a payout to the investor."""

    async def send(self, payout: Payout, investment: Investment) -> str:
        """Transfer the payout, returning a transfer reference. Raise on failure."""
        ...


class LedgerOnlyTransfer:
    """
    Transfer that only books the payout.

    Used when funds are moved outside the service (manual bank transfer).
    The payout is marked paid with a ledger reference.
    """

    async def send(self, payout: Payout, investment: Investment) -> str:
        return f"ledger:{payout.id}"


@dataclass
class PayoutLine:
    """One investor's line in a distribution."""
    payout_id: UUID
    investment_id: UUID
    user_id: str
    royalty_percentage: Decimal
    amount: Decimal
    status: str
    failure_reason: str | None = None


@dataclass
class DistributionResult:
    """Result of distributing one period of revenue for a song."""
    song_id: UUID
    period: str
    monthly_revenue: Decimal
    total_percentage: Decimal = Decimal("0")
    expected_total: Decimal = Decimal("0")
    total_distributed: Decimal = Decimal("0")
    rounding_residual: Decimal = Decimal("0")
    payouts: List[PayoutLine] = field(default_factory=list)
    skipped_investment_ids: List[UUID] = field(default_factory=list)
    failed_count: int = 0
    already_distributed: bool = False
    existing_payouts: List[PayoutLine] = field(default_factory=list)


def validate_period(period: str) -> str:
    """Validate a YYYY-MM period label."""
    if not isinstance(period, str) or not PERIOD_PATTERN.match(period):
        raise InvalidPeriodError(f"Period must be YYYY-MM, got {period!r}")
    return period


class DistributionService:
    """
    Service for distributing song revenue to investors.

    All database operations are passed through the session parameter; the
    caller commits.
    """

    def __init__(
        self,
        transfer: PayoutTransfer | None = None,
        locks: SongLocks | None = None,
        pending_stale_seconds: int | None = None,
    ):
        """
        Initialize distribution service.

        Args:
            transfer: Downstream payout transfer (defaults to ledger-only)
            locks: Per-song lock registry shared with settlement
            pending_stale_seconds: Age after which a PENDING payout is
                considered abandoned and eligible for retry
        """
        self.transfer = transfer or LedgerOnlyTransfer()
        self.locks = locks or default_song_locks
        self.pending_stale_seconds = (
            settings.PAYOUT_PENDING_STALE_SECONDS if pending_stale_seconds is None else pending_stale_seconds
        )

    async def distribute(
        self,
        db: AsyncSession,
        song_id: UUID,
        period: str,
        monthly_revenue,
    ) -> DistributionResult:
        """
        Distribute a period's revenue across a song's investors.

        Args:
            db: Database session
            song_id: Song UUID
            period: Period label (YYYY-MM)
            monthly_revenue: Revenue to distribute for the period

        Returns:
            DistributionResult with one line per payout created in this call.
            For a period already distributed, nothing is created:
            already_distributed is set, existing_payouts lists the period's
            payouts and every investment is in skipped_investment_ids.

        Raises:
            InvalidPeriodError: malformed period
            InvalidAmountError: revenue negative or not monetary
            SongNotFoundError: song does not exist
        """
        period = validate_period(period)
        revenue = to_money(monthly_revenue)
        if revenue < 0:
            raise InvalidAmountError(f"Monthly revenue must not be negative, got {revenue}")

        async with self.locks.get(song_id):
            store = LedgerStore(db)

            song = await store.get_song(song_id, for_update=True)

            result = DistributionResult(
                song_id=song_id,
                period=period,
                monthly_revenue=revenue,
            )

            existing = await self._payouts_with_investments(db, song_id, period)
            if existing:
                result.already_distributed = True
                result.existing_payouts = [self._line(payout, investment) for payout, investment in existing]
                result.skipped_investment_ids = [inv.id for inv in await store.get_investments(song_id)]
                logger.warning(
                    f"Period {period} already distributed for song {song_id} "
                    f"({len(existing)} payouts), nothing created"
                )
                return result

            song.monthly_revenue = revenue

            investments = [
                inv for inv in await store.get_investments(song_id)
                if inv.royalty_percentage > 0
            ]

            created: List[Tuple[Payout, Investment]] = []
            for investment in investments:
                amount = payout_amount(revenue, investment.royalty_percentage)
                payout = await store.create_payout(investment, period, amount)
                created.append((payout, investment))

                result.total_percentage += investment.royalty_percentage
                result.expected_total += revenue * investment.royalty_percentage / HUNDRED
                result.total_distributed += amount

            for payout, investment in created:
                await self._attempt_transfer(payout, investment)
                result.payouts.append(self._line(payout, investment))
                if payout.status == PayoutStatus.FAILED:
                    result.failed_count += 1

            result.rounding_residual = result.expected_total - result.total_distributed
            await db.flush()

        logger.info(
            f"Distributed {result.total_distributed} of {revenue} for song {song_id} period {period}: "
            f"{len(result.payouts)} payouts, {result.failed_count} failed, "
            f"residual={result.rounding_residual}"
        )
        return result

    async def retry_failed(
        self,
        db: AsyncSession,
        song_id: UUID,
        period: str,
    ) -> List[PayoutLine]:
        """
        Re-attempt transfers of unfinished payouts for a song and period.

        Picks up FAILED payouts and PENDING payouts whose last attempt is
        older than pending_stale_seconds. A payout already claimed by an
        overlapping retry is left to that retry. Each claim is committed on
        the session before its transfer is sent.

        Returns:
            Lines for every payout retried, with their new status
        """
        period = validate_period(period)

        async with self.locks.get(song_id):
            store = LedgerStore(db)
            await store.get_song(song_id, for_update=True)

            stale_before = datetime.utcnow() - timedelta(seconds=self.pending_stale_seconds)
            retryable = or_(
                Payout.status == PayoutStatus.FAILED,
                and_(
                    Payout.status == PayoutStatus.PENDING,
                    func.coalesce(Payout.attempted_at, Payout.created_at) < stale_before,
                ),
            )

            lines: List[PayoutLine] = []
            for payout, investment in await self._payouts_with_investments(db, song_id, period, retryable):
                if not await self._claim(db, payout):
                    logger.info(f"Payout {payout.id} already claimed by another retry, skipping")
                    continue
                await self._send(payout, investment)
                lines.append(self._line(payout, investment))

            await db.flush()

        logger.info(f"Retried {len(lines)} unfinished payouts for song {song_id} period {period}")
        return lines

    async def list_payouts(
        self,
        db: AsyncSession,
        song_id: UUID,
        period: str | None = None,
    ) -> List[PayoutLine]:
        """List payouts of a song, optionally for one period."""
        store = LedgerStore(db)
        await store.get_song(song_id)

        if period is not None:
            period = validate_period(period)

        rows = await self._payouts_with_investments(db, song_id, period)
        return [self._line(payout, investment) for payout, investment in rows]

    async def _payouts_with_investments(
        self,
        db: AsyncSession,
        song_id: UUID,
        period: str | None = None,
        criteria=None,
    ) -> List[Tuple[Payout, Investment]]:
        query = (
            select(Payout, Investment)
            .join(Investment, Payout.investment_id == Investment.id)
            .where(Payout.song_id == song_id)
            .order_by(Payout.period.desc(), Payout.created_at, Payout.id)
            .execution_options(populate_existing=True)
        )
        if period is not None:
            query = query.where(Payout.period == period)
        if criteria is not None:
            query = query.where(criteria)

        result = await db.execute(query)
        return [(payout, investment) for payout, investment in result.all()]

    async def _claim(self, db: AsyncSession, payout: Payout) -> bool:
        """
        Claim a payout for one transfer attempt.

        Moves it to PENDING and bumps attempts only if status and attempts
        still match what was read; zero rows updated means someone else
        got there first. A successful claim is committed right away.
        """
        claimed = await db.execute(
            update(Payout)
            .where(
                Payout.id == payout.id,
                Payout.status == payout.status,
                Payout.attempts == payout.attempts,
            )
            .values(
                status=PayoutStatus.PENDING,
                attempts=Payout.attempts + 1,
                attempted_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            return False

        await db.commit()
        await db.refresh(payout)
        return True

    async def _attempt_transfer(self, payout: Payout, investment: Investment) -> None:
        payout.attempts += 1
        payout.attempted_at = datetime.utcnow()
        await self._send(payout, investment)

    async def _send(self, payout: Payout, investment: Investment) -> None:
        """Send one payout; a failure is recorded on that payout only."""
        try:
            reference = await self.transfer.send(payout, investment)
        except Exception as e:
            logger.error(f"Payout {payout.id} to user {investment.user_id} failed: {e}")
            payout.status = PayoutStatus.FAILED
            payout.failure_reason = str(e)
            return

        payout.status = PayoutStatus.PAID
        payout.transfer_reference = reference
        payout.failure_reason = None
        payout.paid_at = datetime.utcnow()

    @staticmethod
    def _line(payout: Payout, investment: Investment) -> PayoutLine:
        return PayoutLine(
            payout_id=payout.id,
            investment_id=investment.id,
            user_id=investment.user_id,
            royalty_percentage=investment.royalty_percentage,
            amount=payout.amount,
            status=PayoutStatus(payout.status).value,
            failure_reason=payout.failure_reason,
        )


# Default distribution service instance
distribution_service = DistributionService()
