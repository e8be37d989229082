from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AdminUser, Subscription, UserProfile


class UserRepository:
    async def get_profile(self, db: AsyncSession, user_id: str) -> UserProfile | None:
        result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
        return result.scalar_one_or_none()

    async def count_profiles(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(UserProfile))
        return int(result.scalar_one())

    async def first_profile(self, db: AsyncSession) -> UserProfile | None:
        result = await db.execute(select(UserProfile).order_by(UserProfile.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def get_active_admin_by_email(self, db: AsyncSession, email: str) -> AdminUser | None:
        result = await db.execute(
            select(AdminUser).where(
                AdminUser.email == email,
                AdminUser.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def list_subscriptions(self, db: AsyncSession) -> list[tuple[Subscription, UserProfile | None]]:
        result = await db.execute(
            select(Subscription, UserProfile)
            .outerjoin(UserProfile, UserProfile.id == Subscription.user_id)
            .order_by(Subscription.created_at.desc())
        )
        return [(sub, profile) for sub, profile in result.all()]


user_repo = UserRepository()
