"""
Payment gateway adapter for Stripe Checkout.

Outbound: create a hosted checkout session for a proposed investment.
The ledger is not touched; settlement only happens on confirmation.

Inbound: verify the `Stripe-Signature` header of webhook deliveries and
turn a `checkout.session.completed` event into a PaymentConfirmation.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

import stripe

from songshare.core.config import settings
from songshare.core.exceptions import PaymentGatewayError, WebhookVerificationError
from songshare.models.song import Song
from songshare.services.pool_math import HUNDRED, to_money

logger = logging.getLogger(__name__)

COMPLETED_EVENT = "checkout.session.completed"


@dataclass
class CheckoutSession:
    """Redirect target for a pending investment."""
    session_id: str
    checkout_url: str


@dataclass
class PaymentConfirmation:
    """A verified, paid checkout ready for settlement."""
    event_id: str
    payment_reference: str
    song_id: UUID
    user_id: str
    amount: Decimal


class CheckoutGateway:
    """
    Client for the hosted checkout provider.

    Handles checkout session creation and webhook verification.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        tolerance: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.tolerance = settings.WEBHOOK_TOLERANCE_SECONDS if tolerance is None else tolerance

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def create_checkout_session(
        self,
        song: Song,
        user_id: str,
        amount: Decimal,
    ) -> CheckoutSession:
        """
        Create a hosted checkout session for an investment.

        Args:
            song: Song being invested in
            user_id: Investor identity, carried back in the webhook metadata
            amount: Validated contribution

        Returns:
            CheckoutSession with the provider's redirect URL

        Raises:
            PaymentGatewayError: provider not configured or request failed
        """
        if not self.is_configured:
            raise PaymentGatewayError("Payment system not configured")

        try:
            session = await stripe.checkout.Session.create_async(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": settings.CHECKOUT_CURRENCY,
                            "product_data": {
                                "name": f'Investment in "{song.title}"',
                                "description": f"Royalty investment in {song.title} by {song.artist_name}",
                            },
                            "unit_amount": int((amount * HUNDRED).to_integral_value()),
                        },
                        "quantity": 1,
                    }
                ],
                success_url=f"{settings.APP_URL}/dashboard?success=true",
                cancel_url=f"{settings.APP_URL}/song/{song.id}?canceled=true",
                metadata={
                    "song_id": str(song.id),
                    "user_id": user_id,
                    "amount": str(amount),
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Checkout session creation failed: {e}")
            raise PaymentGatewayError("Failed to create checkout session") from e

        logger.info(f"Checkout session {session.id} created: {amount} in song {song.id} by user {user_id}")
        return CheckoutSession(session_id=session.id, checkout_url=session.url)

    def verify_signature(self, payload: bytes, signature_header: Optional[str]) -> None:
        """
        Verify a webhook delivery's signature.

        Raises:
            WebhookVerificationError: missing secret/header, stale
                timestamp, or no matching signature
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret not configured")
        if not signature_header:
            raise WebhookVerificationError("Missing signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature_header,
                self.webhook_secret,
                tolerance=self.tolerance,
            )
        except UnicodeDecodeError as e:
            raise WebhookVerificationError("Payload is not valid UTF-8") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(str(e)) from e

    def construct_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """Verify and decode a webhook delivery."""
        self.verify_signature(payload, signature_header)
        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookVerificationError("Payload is not valid JSON") from e


def confirmation_from_event(event: Dict[str, Any]) -> Optional[PaymentConfirmation]:
    """
    Extract a settlement trigger from a verified event.

    Returns:
        PaymentConfirmation for a paid checkout.session.completed event,
        None for any other event type

    Raises:
        ValueError: completed session without usable metadata
    """
    if event.get("type") != COMPLETED_EVENT:
        return None

    session = event.get("data", {}).get("object", {})
    if session.get("payment_status", "paid") != "paid":
        logger.info(f"Checkout session {session.get('id')} completed without payment, ignoring")
        return None

    metadata = session.get("metadata") or {}
    try:
        payment_reference = session["id"]
        song_id = UUID(metadata["song_id"])
        user_id = metadata["user_id"]
        amount = to_money(metadata["amount"])
    except (KeyError, ValueError, TypeError) as e:
        raise ValueError(f"Checkout session {session.get('id')} has invalid metadata: {e}")

    amount_total = session.get("amount_total")
    if amount_total is not None:
        confirmed = (Decimal(amount_total) / HUNDRED).quantize(Decimal("0.01"))
        if confirmed != amount:
            logger.warning(
                f"Checkout session {session.get('id')}: metadata amount {amount} "
                f"differs from amount_total {confirmed}, settling confirmed amount"
            )
            amount = confirmed

    return PaymentConfirmation(
        event_id=event.get("id", ""),
        payment_reference=payment_reference,
        song_id=song_id,
        user_id=user_id,
        amount=amount,
    )


# Default gateway instance
checkout_gateway = CheckoutGateway()
