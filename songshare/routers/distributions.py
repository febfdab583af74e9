"""
Distributions Router

Administrative revenue distribution and payout listings.
"""

import logging
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from songshare.core.auth import verify_admin_token
from songshare.core.database import get_db
from songshare.core.exceptions import InvalidAmountError, InvalidPeriodError, SongNotFoundError
from songshare.schemas.investments import (
    DistributionCreate,
    DistributionResponse,
    PayoutLineResponse,
)
from songshare.services.distribution import DistributionService, distribution_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/songs", tags=["distributions"])


def get_distribution_service() -> DistributionService:
    return distribution_service


@router.post("/{song_id}/distributions", response_model=DistributionResponse)
async def create_distribution(
    song_id: UUID,
    data: DistributionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[DistributionService, Depends(get_distribution_service)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> DistributionResponse:
    """
    Distribute a period's revenue to the song's investors.

    A period is distributed once: re-running it creates nothing and
    returns the payouts already recorded.
    Failed transfers are reported per payout and can be retried.
    """
    try:
        result = await service.distribute(db, song_id, data.period, data.monthly_revenue)
    except SongNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InvalidAmountError, InvalidPeriodError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()

    return DistributionResponse(
        song_id=result.song_id,
        period=result.period,
        monthly_revenue=result.monthly_revenue,
        total_percentage=result.total_percentage,
        total_distributed=result.total_distributed,
        rounding_residual=result.rounding_residual,
        failed_count=result.failed_count,
        payouts=[PayoutLineResponse.model_validate(line) for line in result.payouts],
        skipped_investment_ids=result.skipped_investment_ids,
        already_distributed=result.already_distributed,
        existing_payouts=[PayoutLineResponse.model_validate(line) for line in result.existing_payouts],
    )


@router.post("/{song_id}/distributions/{period}/retry", response_model=List[PayoutLineResponse])
async def retry_failed_payouts(
    song_id: UUID,
    period: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[DistributionService, Depends(get_distribution_service)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> List[PayoutLineResponse]:
    """Re-attempt failed or abandoned payout transfers for a period."""
    try:
        lines = await service.retry_failed(db, song_id, period)
    except SongNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidPeriodError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    return [PayoutLineResponse.model_validate(line) for line in lines]


@router.get("/{song_id}/payouts", response_model=List[PayoutLineResponse])
async def list_payouts(
    song_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[DistributionService, Depends(get_distribution_service)],
    _token: Annotated[str, Depends(verify_admin_token)],
    period: Annotated[Optional[str], Query()] = None,
) -> List[PayoutLineResponse]:
    """List a song's payouts, optionally for one period."""
    try:
        lines = await service.list_payouts(db, song_id, period)
    except SongNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidPeriodError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return [PayoutLineResponse.model_validate(line) for line in lines]
