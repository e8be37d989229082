from app.schemas.auth import AdminOut, LoginRequest, LoginResponse
from app.schemas.balance import (
    AdjustBalanceRequest,
    AdjustBalanceResponse,
    BalanceRecordOut,
    BalanceResponse,
    ReconciliationResponse,
    TransactionListResponse,
    TransactionOut,
    UserBalanceListResponse,
    UserBalanceOut,
)
from app.schemas.topup import (
    StatusUpdateRequest,
    StatusUpdateResponse,
    SubscriptionListResponse,
    SubscriptionOut,
    TopupListResponse,
    TopupRequestOut,
    TopupStats,
    TopupStatsResponse,
    UserProfileOut,
)

__all__ = [
    "AdjustBalanceRequest",
    "AdjustBalanceResponse",
    "AdminOut",
    "BalanceRecordOut",
    "BalanceResponse",
    "LoginRequest",
    "LoginResponse",
    "ReconciliationResponse",
    "StatusUpdateRequest",
    "StatusUpdateResponse",
    "SubscriptionListResponse",
    "SubscriptionOut",
    "TopupListResponse",
    "TopupRequestOut",
    "TopupStats",
    "TopupStatsResponse",
    "TransactionListResponse",
    "TransactionOut",
    "UserBalanceListResponse",
    "UserBalanceOut",
    "UserProfileOut",
]
