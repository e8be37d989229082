from app.models.ledger import BalanceTransaction, TransactionType, UserBalance
from app.models.subscription import Subscription
from app.models.topup import TopupRequest, TopupStatus
from app.models.user import AdminUser, UserProfile

__all__ = [
    "AdminUser",
    "BalanceTransaction",
    "Subscription",
    "TopupRequest",
    "TopupStatus",
    "TransactionType",
    "UserBalance",
    "UserProfile",
]
