from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class UserProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    full_name: str | None = None


class TopupRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: float
    payment_method: str | None = None
    payment_currency: str = "USD"
    payment_proof_url: str | None = None
    status: str
    admin_notes: str | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user_profile: UserProfileOut | None = None


class StatusUpdateRequest(BaseModel):
    # Optional so missing fields surface as a single "Missing required fields" error
    id: str | None = Field(None, description="Top-up request id")
    status: str | None = Field(None, description="approved or rejected")
    admin_notes: str | None = Field(None, description="Shown to the user in the status email")


class StatusUpdateResponse(BaseModel):
    success: bool = True
    request: TopupRequestOut
    email_sent: bool
    email_error: str | None = None
    message: str


class TopupListResponse(BaseModel):
    success: bool = True
    requests: list[TopupRequestOut]


class TopupStats(BaseModel):
    totalPending: int = 0
    totalApproved: int = 0
    totalRejected: int = 0
    pendingAmount: float = 0


class TopupStatsResponse(BaseModel):
    success: bool = True
    stats: TopupStats


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    plan_id: str
    status: str
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user_email: str | None = None
    full_name: str | None = None


class SubscriptionListResponse(BaseModel):
    success: bool = True
    subscriptions: list[SubscriptionOut]
