from songshare.models.song import Song
from songshare.models.investment import Investment
from songshare.models.payout import Payout, PayoutStatus
from songshare.models.settled_payment import SettledPayment

__all__ = [
    "Song",
    "Investment",
    "Payout",
    "PayoutStatus",
    "SettledPayment",
]
