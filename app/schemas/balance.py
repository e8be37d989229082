from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field


class AdjustBalanceRequest(BaseModel):
    amount: Decimal | None = Field(None, description="Positive magnitude; sign comes from transaction_type")
    transaction_type: str | None = Field(None, description="topup, deduct or refund")
    description: str | None = None
    reference_id: str | None = Field(None, description="Optional link, e.g. a top-up request id")


class AdjustBalanceResponse(BaseModel):
    success: bool = True
    balance_before: float
    balance_after: float
    transaction_id: str
    message: str


class BalanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    balance: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BalanceResponse(BaseModel):
    success: bool = True
    balance: float
    balanceRecord: BalanceRecordOut | None = None


class UserBalanceOut(BaseModel):
    id: str
    user_email: str | None = None
    full_name: str | None = None
    balance: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserBalanceListResponse(BaseModel):
    success: bool = True
    users: list[UserBalanceOut]


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    transaction_type: str
    amount: float
    balance_before: float
    balance_after: float
    description: str | None = None
    reference_id: str | None = None
    created_at: datetime | None = None


class TransactionListResponse(BaseModel):
    success: bool = True
    transactions: list[TransactionOut]


class ReconciliationResponse(BaseModel):
    success: bool = True
    user_id: str
    cached_balance: float
    ledger_balance: float
    drift: float
    transaction_count: int
    broken_rows: list[str]
    consistent: bool
    repaired: bool
