"""ORM-based demo data for SQLite and PostgreSQL."""
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    BalanceTransaction,
    Subscription,
    TopupRequest,
    TopupStatus,
    TransactionType,
    UserBalance,
    UserProfile,
)
from app.models.base import utcnow

DEMO_USERS = [
    ("user_alice", "alice@example.com", "Alice", Decimal("100")),
    ("user_bob", "bob@example.com", "Bob", Decimal("0")),
]


async def run_seed(db: AsyncSession) -> str:
    """Seed demo profiles, opening balances and pending top-ups. Idempotent. Returns status message."""
    r = await db.execute(select(UserProfile).where(UserProfile.id == "user_alice").limit(1))
    if r.scalar_one_or_none() is not None:
        return "Already seeded"

    now = utcnow()
    for user_id, email, name, opening in DEMO_USERS:
        db.add(UserProfile(id=user_id, email=email, full_name=name))
        db.add(UserBalance(user_id=user_id, balance=opening))
        if opening > 0:
            # Opening balance goes through the ledger so reconciliation holds.
            db.add(
                BalanceTransaction(
                    user_id=user_id,
                    transaction_type=TransactionType.TOPUP,
                    amount=opening,
                    balance_before=Decimal("0"),
                    balance_after=opening,
                    description="Opening balance",
                )
            )

    db.add(TopupRequest(user_id="user_alice", amount=Decimal("50"), payment_method="bank_transfer"))
    db.add(TopupRequest(user_id="user_bob", amount=Decimal("25"), payment_method="e_wallet"))
    db.add(
        TopupRequest(
            user_id="user_bob",
            amount=Decimal("10"),
            payment_method="e_wallet",
            status=TopupStatus.REJECTED,
            admin_notes="Proof of payment unreadable",
            processed_at=now,
        )
    )
    db.add(
        Subscription(
            user_id="user_alice",
            plan_id="pro_monthly",
            status="active",
            current_period_start=now,
            current_period_end=now + timedelta(days=30),
        )
    )
    await db.flush()
    return "Seeded: user_alice, user_bob with balances, top-up requests and a subscription"
