"""
Tests for the checkout gateway adapter (songshare/services/checkout.py).

Stripe session creation is replaced with monkeypatch; webhook payloads
are signed with the sign_webhook fixture.
"""

import json
import time
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from songshare.core.exceptions import PaymentGatewayError, WebhookVerificationError
from songshare.services.checkout import CheckoutGateway, confirmation_from_event

SECRET = "whsec_unit"

SONG = SimpleNamespace(id=uuid.uuid4(), title="Midnight Drive", artist_name="The Parkers")


def make_gateway(api_key="sk_test_unit", webhook_secret=SECRET):
    return CheckoutGateway(api_key=api_key, webhook_secret=webhook_secret, tolerance=300)


def completed_event(song_id, user_id="alice", amount="100.00", amount_total=10000, **session):
    obj = {
        "id": "cs_test_1",
        "payment_status": "paid",
        "amount_total": amount_total,
        "metadata": {"song_id": str(song_id), "user_id": user_id, "amount": amount},
    }
    obj.update(session)
    return {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": obj}}


@pytest.fixture
def stripe_sessions(monkeypatch):
    """Record Session.create_async calls and answer with a fixed session."""
    calls = []

    async def create_async(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_123", url="https://checkout.test/cs_test_123")

    monkeypatch.setattr(stripe.checkout.Session, "create_async", create_async)
    return calls


# ============================================================
# Checkout sessions
# ============================================================

class TestCreateCheckoutSession:

    @pytest.mark.asyncio
    async def test_creates_session_and_returns_url(self, stripe_sessions):
        session = await make_gateway().create_checkout_session(SONG, "alice", Decimal("25.50"))

        assert session.session_id == "cs_test_123"
        assert session.checkout_url == "https://checkout.test/cs_test_123"

        params = stripe_sessions[0]
        assert params["api_key"] == "sk_test_unit"
        assert params["mode"] == "payment"
        assert params["line_items"][0]["price_data"]["unit_amount"] == 2550
        assert params["line_items"][0]["quantity"] == 1
        assert params["metadata"] == {"song_id": str(SONG.id), "user_id": "alice", "amount": "25.50"}

    @pytest.mark.asyncio
    async def test_provider_error(self, monkeypatch):
        async def create_async(**params):
            raise stripe.InvalidRequestError("No such price", param="line_items")

        monkeypatch.setattr(stripe.checkout.Session, "create_async", create_async)

        with pytest.raises(PaymentGatewayError):
            await make_gateway().create_checkout_session(SONG, "alice", Decimal("10"))

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, monkeypatch):
        async def create_async(**params):
            raise stripe.APIConnectionError("connection refused")

        monkeypatch.setattr(stripe.checkout.Session, "create_async", create_async)

        with pytest.raises(PaymentGatewayError):
            await make_gateway().create_checkout_session(SONG, "alice", Decimal("10"))

    @pytest.mark.asyncio
    async def test_not_configured(self, stripe_sessions):
        gateway = make_gateway(api_key="")

        assert gateway.is_configured is False
        with pytest.raises(PaymentGatewayError):
            await gateway.create_checkout_session(SONG, "alice", Decimal("10"))
        assert stripe_sessions == []


# ============================================================
# Webhook signatures
# ============================================================

class TestWebhookSignature:

    def test_valid_signature(self, sign_webhook):
        payload = json.dumps({"id": "evt_1", "type": "ping"}).encode()

        event = make_gateway().construct_event(payload, sign_webhook(payload, SECRET))

        assert event["id"] == "evt_1"

    def test_tampered_payload(self, sign_webhook):
        header = sign_webhook(b'{"amount": 100}', SECRET)

        with pytest.raises(WebhookVerificationError):
            make_gateway().verify_signature(b'{"amount": 999}', header)

    def test_wrong_secret(self, sign_webhook):
        payload = b'{"id": "evt_1"}'

        with pytest.raises(WebhookVerificationError):
            make_gateway().verify_signature(payload, sign_webhook(payload, "whsec_other"))

    def test_stale_timestamp(self, sign_webhook):
        payload = b'{"id": "evt_1"}'
        header = sign_webhook(payload, SECRET, timestamp=int(time.time()) - 3600)

        with pytest.raises(WebhookVerificationError):
            make_gateway().verify_signature(payload, header)

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "t=123"])
    def test_malformed_header(self, header):
        with pytest.raises(WebhookVerificationError):
            make_gateway().verify_signature(b"{}", header)

    def test_any_v1_signature_may_match(self, sign_webhook):
        payload = b'{"id": "evt_1"}'
        timestamp = int(time.time())
        valid = sign_webhook(payload, SECRET, timestamp=timestamp).split("v1=")[1]

        make_gateway().verify_signature(payload, f"t={timestamp},v1=deadbeef,v1={valid}")

    def test_missing_secret(self, sign_webhook):
        payload = b"{}"

        with pytest.raises(WebhookVerificationError):
            make_gateway(webhook_secret="").verify_signature(payload, sign_webhook(payload, SECRET))

    def test_invalid_json(self, sign_webhook):
        payload = b"not json"

        with pytest.raises(WebhookVerificationError):
            make_gateway().construct_event(payload, sign_webhook(payload, SECRET))


# ============================================================
# Event parsing
# ============================================================

class TestConfirmationFromEvent:

    def test_completed_session(self):
        song_id = uuid.uuid4()

        confirmation = confirmation_from_event(completed_event(song_id))

        assert confirmation.event_id == "evt_1"
        assert confirmation.payment_reference == "cs_test_1"
        assert confirmation.song_id == song_id
        assert confirmation.user_id == "alice"
        assert confirmation.amount == Decimal("100.00")

    def test_other_event_types_ignored(self):
        assert confirmation_from_event({"id": "evt_2", "type": "payment_intent.created"}) is None

    def test_unpaid_session_ignored(self):
        event = completed_event(uuid.uuid4(), payment_status="unpaid")

        assert confirmation_from_event(event) is None

    def test_charged_amount_wins(self):
        event = completed_event(uuid.uuid4(), amount="100.00", amount_total=5000)

        assert confirmation_from_event(event).amount == Decimal("50.00")

    @pytest.mark.parametrize("metadata", [
        {},
        {"song_id": "not-a-uuid", "user_id": "alice", "amount": "10"},
        {"song_id": str(uuid.uuid4()), "amount": "10"},
        {"song_id": str(uuid.uuid4()), "user_id": "alice", "amount": "ten"},
    ])
    def test_invalid_metadata(self, metadata):
        event = completed_event(uuid.uuid4(), metadata=metadata)

        with pytest.raises(ValueError):
            confirmation_from_event(event)
