"""Pydantic schemas for songs API."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from pydantic import BaseModel, Field


# Request schemas

class SongCreate(BaseModel):
    """Request schema for listing a song."""
    title: str = Field(min_length=1, max_length=100)
    artist_name: str = Field(min_length=1, max_length=100)
    album_art_url: Optional[str] = Field(default=None, max_length=500)
    total_royalty_pool: Decimal = Field(ge=0, decimal_places=2, description="Value of the royalty stream")


class SongUpdate(BaseModel):
    """Request schema for editing a song. The pool is not editable."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    artist_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    album_art_url: Optional[str] = Field(default=None, max_length=500)


# Response schemas

class InvestmentSummary(BaseModel):
    """Public view of one investment in a song."""
    amount_invested: Decimal
    royalty_percentage: Decimal

    class Config:
        from_attributes = True


class SongResponse(BaseModel):
    """Response schema for a song."""
    id: UUID
    title: str
    artist_name: str
    artist_user_id: str
    album_art_url: Optional[str] = None
    total_royalty_pool: Decimal
    monthly_revenue: Decimal
    is_active: bool
    total_invested: Decimal = Field(description="Sum of amount_invested over all investments")
    available_to_invest: Decimal = Field(description="Pool value not yet covered by investments")
    investments: List[InvestmentSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OwnershipPreviewResponse(BaseModel):
    """Advisory estimate shown before payment."""
    song_id: UUID
    amount: Decimal
    available_to_invest: Decimal
    estimated_percentage: Decimal = Field(description="Estimate only, not the settled share")
