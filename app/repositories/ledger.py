from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import BalanceTransaction, TransactionType


class LedgerRepository:
    async def get_by_idempotency_key(
        self,
        db: AsyncSession,
        idempotency_key: str,
    ) -> BalanceTransaction | None:
        result = await db.execute(
            select(BalanceTransaction).where(BalanceTransaction.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def append(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
        balance_before: Decimal,
        balance_after: Decimal,
        description: str | None,
        reference_id: str | None,
        idempotency_key: str | None,
    ) -> BalanceTransaction:
        tx = BalanceTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            description=description,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )
        db.add(tx)
        await db.flush()
        return tx

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int,
    ) -> list[BalanceTransaction]:
        """Newest first."""
        result = await db.execute(
            select(BalanceTransaction)
            .where(BalanceTransaction.user_id == user_id)
            .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_recent(self, db: AsyncSession, limit: int) -> list[BalanceTransaction]:
        result = await db.execute(
            select(BalanceTransaction)
            .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def replay_for_user(self, db: AsyncSession, user_id: str) -> list[BalanceTransaction]:
        """All rows for a user, oldest first."""
        result = await db.execute(
            select(BalanceTransaction)
            .where(BalanceTransaction.user_id == user_id)
            .order_by(BalanceTransaction.created_at.asc())
        )
        return list(result.scalars().all())


ledger_repo = LedgerRepository()
