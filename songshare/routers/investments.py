"""
Investments Router

Investor holdings and checkout initiation. Initiating an investment
never writes to the ledger; settlement happens on payment confirmation.
"""

import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from songshare.core.auth import get_current_user_id
from songshare.core.config import settings
from songshare.core.database import get_db
from songshare.core.exceptions import InvalidAmountError, PaymentGatewayError
from songshare.models.investment import Investment
from songshare.schemas.investments import (
    CheckoutResponse,
    InvestmentCreate,
    InvestmentResponse,
    InvestmentSongSummary,
    PayoutResponse,
)
from songshare.services.checkout import CheckoutGateway, checkout_gateway
from songshare.services.pool_math import validate_contribution
from songshare.routers.songs import get_active_song

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/investments", tags=["investments"])

RECENT_PAYOUTS = 5


def get_checkout_gateway() -> CheckoutGateway:
    return checkout_gateway


@router.get("", response_model=List[InvestmentResponse])
async def list_investments(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> List[InvestmentResponse]:
    """
    Get the current user's investments.

    Each holding carries its song summary and the most recent payouts.
    """
    result = await db.execute(
        select(Investment)
        .options(
            selectinload(Investment.song),
            selectinload(Investment.payouts),
        )
        .where(Investment.user_id == user_id)
        .order_by(Investment.created_at.desc())
    )

    return [
        InvestmentResponse(
            id=inv.id,
            song_id=inv.song_id,
            amount_invested=inv.amount_invested,
            royalty_percentage=inv.royalty_percentage,
            song=InvestmentSongSummary.model_validate(inv.song),
            payouts=[
                PayoutResponse(
                    id=p.id,
                    period=p.period,
                    amount=p.amount,
                    status=p.status.value,
                    paid_at=p.paid_at,
                    created_at=p.created_at,
                )
                for p in inv.payouts[:RECENT_PAYOUTS]
            ],
            created_at=inv.created_at,
        )
        for inv in result.scalars().all()
    ]


@router.post("", response_model=CheckoutResponse)
async def create_investment(
    data: InvestmentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    gateway: Annotated[CheckoutGateway, Depends(get_checkout_gateway)],
) -> CheckoutResponse:
    """
    Start an investment.

    Validates the amount, looks up the song and returns the payment
    provider's checkout URL. The investment is recorded only once the
    provider confirms payment.
    """
    try:
        amount = validate_contribution(data.amount, minimum=settings.MIN_INVESTMENT_AMOUNT)
    except InvalidAmountError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    song = await get_active_song(db, data.song_id)

    if not gateway.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment system not configured",
        )

    try:
        session = await gateway.create_checkout_session(song, user_id, amount)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return CheckoutResponse(checkout_url=session.checkout_url, session_id=session.session_id)
