"""
Pytest configuration for SongShare.

Provides fixtures for:
- A fresh SQLite database per test (aiosqlite, file-backed so that
  concurrent sessions see each other's commits)
- Services bound to that database
- Song seeding and ledger state inspection
- Stripe-Signature headers for webhook payloads
"""

from __future__ import annotations

import hashlib
import hmac
import os
import time

# Settings are read at import time; point them at test values first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./songshare-test.db"
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_key")

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator, Dict
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from songshare.core.database import Base
from songshare.models import Investment, Song
from songshare.services.distribution import DistributionService
from songshare.services.pool_math import ownership_percentage
from songshare.services.settlement import SettlementService, SongLocks


@dataclass
class LedgerState:
    """Snapshot of one song's accounting state."""
    total_royalty_pool: Decimal
    amounts: Dict[str, Decimal]
    percentages: Dict[str, Decimal]

    @property
    def total_invested(self) -> Decimal:
        return sum(self.amounts.values(), Decimal("0"))

    @property
    def total_percentage(self) -> Decimal:
        return sum(self.percentages.values(), Decimal("0"))


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over a throwaway SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def song_locks() -> SongLocks:
    return SongLocks()


@pytest.fixture
def settlement(session_factory, song_locks) -> SettlementService:
    return SettlementService(session_factory=session_factory, locks=song_locks, max_retries=3)


@pytest.fixture
def distribution(song_locks) -> DistributionService:
    return DistributionService(locks=song_locks)


@pytest.fixture
def create_song(session_factory):
    """
    Factory seeding a song, optionally with pre-existing investments.

    Percentages of seeded investments are computed against the seeded pool.
    """

    async def _create(
        total_royalty_pool="0",
        holdings: Dict[str, str] | None = None,
        title: str = "Test Song",
        artist_user_id: str = "artist-1",
    ) -> UUID:
        async with session_factory() as db:
            song = Song(
                title=title,
                artist_name="Test Artist",
                artist_user_id=artist_user_id,
                total_royalty_pool=Decimal(str(total_royalty_pool)),
                monthly_revenue=Decimal("0"),
                is_active=True,
            )
            db.add(song)
            await db.flush()

            for user_id, amount in (holdings or {}).items():
                db.add(
                    Investment(
                        song_id=song.id,
                        user_id=user_id,
                        amount_invested=Decimal(str(amount)),
                        royalty_percentage=ownership_percentage(Decimal(str(amount)), song.total_royalty_pool),
                    )
                )

            await db.commit()
            return song.id

    return _create


@pytest.fixture
def ledger_state(session_factory):
    """Read a song's pool and every investment's amount and percentage."""

    async def _read(song_id: UUID) -> LedgerState:
        async with session_factory() as db:
            song = (await db.execute(select(Song).where(Song.id == song_id))).scalar_one()
            investments = (
                await db.execute(select(Investment).where(Investment.song_id == song_id))
            ).scalars().all()
            return LedgerState(
                total_royalty_pool=Decimal(song.total_royalty_pool),
                amounts={inv.user_id: Decimal(inv.amount_invested) for inv in investments},
                percentages={inv.user_id: Decimal(inv.royalty_percentage) for inv in investments},
            )

    return _read


@pytest.fixture
def sign_webhook():
    """Build a Stripe-Signature header (t=...,v1=...) for a payload."""

    def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{timestamp}.".encode() + payload
        signature = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign
