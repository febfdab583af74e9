"""
Songs Router

Song listing, ownership preview, and artist song management.
"""

import logging
from decimal import Decimal
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from songshare.core.auth import get_current_user_id
from songshare.core.database import get_db
from songshare.models.song import Song
from songshare.schemas.songs import (
    InvestmentSummary,
    OwnershipPreviewResponse,
    SongCreate,
    SongResponse,
    SongUpdate,
)
from songshare.services.preview import available_to_invest, estimate_ownership_percentage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/songs", tags=["songs"])


def song_response(song: Song) -> SongResponse:
    """Build a SongResponse from a song with investments loaded."""
    amounts = [inv.amount_invested for inv in song.investments]
    return SongResponse(
        id=song.id,
        title=song.title,
        artist_name=song.artist_name,
        artist_user_id=song.artist_user_id,
        album_art_url=song.album_art_url,
        total_royalty_pool=song.total_royalty_pool,
        monthly_revenue=song.monthly_revenue,
        is_active=song.is_active,
        total_invested=sum(amounts, Decimal("0")),
        available_to_invest=available_to_invest(song.total_royalty_pool, amounts),
        investments=[InvestmentSummary.model_validate(inv) for inv in song.investments],
        created_at=song.created_at,
        updated_at=song.updated_at,
    )


async def get_active_song(db: AsyncSession, song_id: UUID) -> Song:
    """Load an active song with its investments or raise 404."""
    result = await db.execute(
        select(Song)
        .options(selectinload(Song.investments))
        .where(Song.id == song_id, Song.is_active.is_(True))
    )
    song = result.scalar_one_or_none()

    if song is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Song {song_id} not found",
        )
    return song


async def get_owned_song(db: AsyncSession, song_id: UUID, user_id: str) -> Song:
    """Load an active song owned by user_id."""
    song = await get_active_song(db, song_id)
    if song.artist_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the song's artist can modify it",
        )
    return song


@router.get("", response_model=List[SongResponse])
async def list_songs(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> List[SongResponse]:
    """List active songs, newest first."""
    result = await db.execute(
        select(Song)
        .options(selectinload(Song.investments))
        .where(Song.is_active.is_(True))
        .order_by(Song.created_at.desc())
    )
    return [song_response(song) for song in result.scalars().all()]


@router.post("", response_model=SongResponse, status_code=status.HTTP_201_CREATED)
async def create_song(
    data: SongCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> SongResponse:
    """
    List a new song for investment.

    The artist sets the initial royalty pool value; it only grows
    afterwards, as investments settle.
    """
    result = await db.execute(
        select(Song).where(
            Song.title == data.title,
            Song.artist_user_id == user_id,
            Song.is_active.is_(True),
        )
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'You already have a song titled "{data.title}". Please choose a different title.',
        )

    song = Song(
        title=data.title,
        artist_name=data.artist_name,
        artist_user_id=user_id,
        album_art_url=data.album_art_url,
        total_royalty_pool=data.total_royalty_pool,
        monthly_revenue=Decimal("0"),
        is_active=True,
        investments=[],
    )
    db.add(song)
    await db.commit()

    logger.info(f"Song created: {song.title} (id={song.id}) by user {user_id}")
    return song_response(song)


@router.get("/{song_id}", response_model=SongResponse)
async def get_song(
    song_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SongResponse:
    """Get an active song with its investments."""
    return song_response(await get_active_song(db, song_id))


@router.get("/{song_id}/preview", response_model=OwnershipPreviewResponse)
async def preview_ownership(
    song_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    amount: Annotated[Decimal, Query(gt=0)],
) -> OwnershipPreviewResponse:
    """
    Estimate the share a proposed contribution would buy.

    Advisory only: the settled percentage is computed against the
    song's full royalty pool once payment is confirmed.
    """
    song = await get_active_song(db, song_id)
    available = available_to_invest(
        song.total_royalty_pool,
        [inv.amount_invested for inv in song.investments],
    )
    return OwnershipPreviewResponse(
        song_id=song.id,
        amount=amount,
        available_to_invest=available,
        estimated_percentage=estimate_ownership_percentage(available, amount),
    )


@router.put("/{song_id}", response_model=SongResponse)
async def update_song(
    song_id: UUID,
    data: SongUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> SongResponse:
    """Edit a song's descriptive fields."""
    song = await get_owned_song(db, song_id, user_id)

    if data.title is not None:
        song.title = data.title
    if data.artist_name is not None:
        song.artist_name = data.artist_name
    if data.album_art_url is not None:
        song.album_art_url = data.album_art_url

    await db.commit()
    return song_response(song)


@router.delete("/{song_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_song(
    song_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> None:
    """
    Deactivate a song.

    Only allowed while nothing has been invested in it.
    """
    song = await get_owned_song(db, song_id, user_id)

    if any(inv.amount_invested > 0 for inv in song.investments):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete a song that has investments",
        )

    song.is_active = False
    await db.commit()
    logger.info(f"Song {song_id} deactivated by user {user_id}")


# Artist songs router (separate prefix)
artist_songs_router = APIRouter(prefix="/artist-songs", tags=["songs"])


@artist_songs_router.get("", response_model=List[SongResponse])
async def list_artist_songs(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> List[SongResponse]:
    """List the current user's active songs, newest first."""
    result = await db.execute(
        select(Song)
        .options(selectinload(Song.investments))
        .where(Song.artist_user_id == user_id, Song.is_active.is_(True))
        .order_by(Song.created_at.desc())
    )
    return [song_response(song) for song in result.scalars().all()]
