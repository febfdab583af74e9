"""
Webhooks Router

Inbound payment confirmations from the payment provider.

Responses drive the provider's redelivery: 2xx acknowledges, 5xx asks
for a retry. Settlement is idempotent per payment, so a retried delivery
never credits an investor twice.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from songshare.core.exceptions import (
    InvalidAmountError,
    NotFoundError,
    TransientFailureError,
    WebhookVerificationError,
)
from songshare.routers.investments import get_checkout_gateway
from songshare.services.checkout import CheckoutGateway, confirmation_from_event
from songshare.services.settlement import SettlementService, settlement_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_settlement_service() -> SettlementService:
    return settlement_service


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    gateway: Annotated[CheckoutGateway, Depends(get_checkout_gateway)],
    settlement: Annotated[SettlementService, Depends(get_settlement_service)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict:
    """Verify a payment event and settle completed checkouts."""
    body = await request.body()

    try:
        event = gateway.construct_event(body, stripe_signature)
    except WebhookVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        confirmation = confirmation_from_event(event)
    except ValueError as e:
        logger.error(f"Webhook event {event.get('id')} rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if confirmation is None:
        logger.info(f"Unhandled event type: {event.get('type')}")
        return {"received": True}

    try:
        result = await settlement.settle(
            song_id=confirmation.song_id,
            user_id=confirmation.user_id,
            amount=confirmation.amount,
            payment_reference=confirmation.payment_reference,
            event_id=confirmation.event_id,
        )
    except InvalidAmountError as e:
        logger.error(f"Payment {confirmation.payment_reference} has invalid amount: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError as e:
        logger.error(f"Payment {confirmation.payment_reference} references missing record: {e}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TransientFailureError as e:
        logger.error(f"Webhook processing error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook processing failed",
        )

    return {"received": True, "duplicate": result.duplicate}
