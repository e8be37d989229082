from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import UserBalance, UserProfile


class BalanceRepository:
    async def get(self, db: AsyncSession, user_id: str) -> UserBalance | None:
        result = await db.execute(select(UserBalance).where(UserBalance.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, db: AsyncSession, user_id: str) -> UserBalance | None:
        """Row-locking read; the lock is held until the surrounding transaction ends."""
        result = await db.execute(
            select(UserBalance).where(UserBalance.user_id == user_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, user_id: str) -> UserBalance:
        record = UserBalance(user_id=user_id, balance=Decimal("0"))
        db.add(record)
        await db.flush()
        return record

    async def set_balance(self, db: AsyncSession, record: UserBalance, balance: Decimal) -> UserBalance:
        record.balance = balance
        await db.flush()
        return record

    async def list_with_profiles(self, db: AsyncSession) -> list[tuple[UserProfile, UserBalance | None]]:
        result = await db.execute(
            select(UserProfile, UserBalance)
            .outerjoin(UserBalance, UserBalance.user_id == UserProfile.id)
            .order_by(UserProfile.created_at.desc())
        )
        return [(profile, balance) for profile, balance in result.all()]


balance_repo = BalanceRepository()
