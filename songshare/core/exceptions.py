"""
Error taxonomy for the royalty accounting engine.

NotFound and InvalidAmount are raised synchronously to the caller before
any write. ConcurrencyConflict is internal to the settlement retry loop and
surfaces as TransientFailure once retries are exhausted.

Rounding residuals and duplicate payouts are not errors: they are reported
on the distribution result.
"""
from uuid import UUID


class RoyaltyPoolError(Exception):
    """Base class for accounting engine errors."""


class NotFoundError(RoyaltyPoolError, LookupError):
    """A referenced entity does not exist."""


class SongNotFoundError(NotFoundError):
    def __init__(self, song_id: UUID):
        self.song_id = song_id
        super().__init__(f"Song {song_id} not found")


class InvestmentNotFoundError(NotFoundError):
    def __init__(self, investment_id: UUID):
        self.investment_id = investment_id
        super().__init__(f"Investment {investment_id} not found")


class InvalidAmountError(RoyaltyPoolError, ValueError):
    """Non-positive, non-numeric or below-minimum monetary amount."""


class InvalidPeriodError(RoyaltyPoolError, ValueError):
    """Distribution period label is not a YYYY-MM string."""


class ConcurrencyConflictError(RoyaltyPoolError):
    """A concurrent write to the same song was detected."""


class TransientFailureError(RoyaltyPoolError):
    """Settlement could not be applied after bounded retries."""


class PaymentGatewayError(RoyaltyPoolError):
    """The payment provider rejected or failed a request."""


class WebhookVerificationError(RoyaltyPoolError):
    """Inbound payment event failed signature verification."""
