from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import DateTime, Enum, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.base import new_id, utcnow

# Decimal places stored for every money column.
AMOUNT_SCALE = 4


class TransactionType(str, enum.Enum):
    TOPUP = "topup"
    DEDUCT = "deduct"
    REFUND = "refund"

    def signed(self, amount: Decimal) -> Decimal:
        """Amount with the sign this transaction type applies to a balance."""
        return -amount if self is TransactionType.DEDUCT else amount


class UserBalance(Base):
    """Current balance per user. A cache of the ledger, one row per user."""

    __tablename__ = "user_balance"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(20, AMOUNT_SCALE), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"UserBalance(user_id={self.user_id!r}, balance={self.balance})"


class BalanceTransaction(Base):
    """Append-only ledger row. balance_after = balance_before + signed(amount)."""

    __tablename__ = "balance_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(20, AMOUNT_SCALE), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(20, AMOUNT_SCALE), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(20, AMOUNT_SCALE), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_balance_tx_user_created", "user_id", "created_at"),
    )
