from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import DateTime, Enum, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.base import new_id, utcnow
from app.models.ledger import AMOUNT_SCALE


class TopupStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TopupRequest(Base):
    """User-submitted request to add funds. Created by the app's submission flow, reviewed here."""

    __tablename__ = "topup_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, AMOUNT_SCALE), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    payment_proof_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    status: Mapped[TopupStatus] = mapped_column(
        Enum(TopupStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TopupStatus.PENDING,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_topup_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"TopupRequest(id={self.id!r}, user_id={self.user_id!r}, status={self.status.value})"
