"""Pydantic schemas for investments and payouts API."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from pydantic import BaseModel, Field


# Request schemas

class InvestmentCreate(BaseModel):
    """Request schema for starting an investment checkout."""
    song_id: UUID
    amount: Decimal = Field(ge=1, decimal_places=2, description="Contribution, minimum 1")


class DistributionCreate(BaseModel):
    """Request schema for distributing a period's revenue."""
    period: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="Period label YYYY-MM")
    monthly_revenue: Decimal = Field(ge=0, decimal_places=2)


# Response schemas

class CheckoutResponse(BaseModel):
    """Redirect target for payment."""
    checkout_url: str
    session_id: str


class PayoutResponse(BaseModel):
    """Response schema for a payout."""
    id: UUID
    period: str
    amount: Decimal
    status: str
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvestmentSongSummary(BaseModel):
    id: UUID
    title: str
    artist_name: str
    album_art_url: Optional[str] = None
    monthly_revenue: Decimal

    class Config:
        from_attributes = True


class InvestmentResponse(BaseModel):
    """Response schema for an investor's holding."""
    id: UUID
    song_id: UUID
    amount_invested: Decimal
    royalty_percentage: Decimal
    song: InvestmentSongSummary
    payouts: List[PayoutResponse] = Field(default_factory=list, description="Most recent payouts")
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutLineResponse(BaseModel):
    """One line of a distribution."""
    payout_id: UUID
    investment_id: UUID
    user_id: str
    royalty_percentage: Decimal
    amount: Decimal
    status: str
    failure_reason: Optional[str] = None

    class Config:
        from_attributes = True


class DistributionResponse(BaseModel):
    """Response schema for a distribution run."""
    song_id: UUID
    period: str
    monthly_revenue: Decimal
    total_percentage: Decimal
    total_distributed: Decimal
    rounding_residual: Decimal = Field(description="Expected total minus sum of rounded payouts, left unallocated")
    failed_count: int
    payouts: List[PayoutLineResponse]
    skipped_investment_ids: List[UUID] = Field(
        default_factory=list,
        description="Investments not paid by this call because the period was already distributed",
    )
    already_distributed: bool = False
    existing_payouts: List[PayoutLineResponse] = Field(
        default_factory=list,
        description="Payouts recorded earlier for this period",
    )

    class Config:
        from_attributes = True
