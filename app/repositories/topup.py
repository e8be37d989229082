from datetime import datetime
from decimal import Decimal
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import TopupRequest, TopupStatus, UserProfile


class TopupRepository:
    async def get(self, db: AsyncSession, request_id: str) -> TopupRequest | None:
        result = await db.execute(select(TopupRequest).where(TopupRequest.id == request_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, db: AsyncSession, request_id: str) -> TopupRequest | None:
        result = await db.execute(
            select(TopupRequest).where(TopupRequest.id == request_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_with_profiles(
        self,
        db: AsyncSession,
        status: TopupStatus | None = None,
    ) -> list[tuple[TopupRequest, UserProfile | None]]:
        query = (
            select(TopupRequest, UserProfile)
            .outerjoin(UserProfile, UserProfile.id == TopupRequest.user_id)
            .order_by(TopupRequest.created_at.desc())
        )
        if status is not None:
            query = query.where(TopupRequest.status == status)
        result = await db.execute(query)
        return [(req, profile) for req, profile in result.all()]

    async def stats(self, db: AsyncSession) -> dict[TopupStatus, tuple[int, Decimal]]:
        """(count, summed amount) per status."""
        result = await db.execute(
            select(TopupRequest.status, func.count(), func.coalesce(func.sum(TopupRequest.amount), 0))
            .group_by(TopupRequest.status)
        )
        return {status: (int(count), Decimal(str(total))) for status, count, total in result.all()}

    async def update_status(
        self,
        db: AsyncSession,
        request: TopupRequest,
        status: TopupStatus,
        admin_notes: str | None,
        now: datetime,
    ) -> TopupRequest:
        request.status = status
        request.admin_notes = admin_notes
        request.processed_at = now
        request.updated_at = now
        await db.flush()
        return request

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(TopupRequest))
        return int(result.scalar_one())

    async def first(self, db: AsyncSession) -> TopupRequest | None:
        result = await db.execute(select(TopupRequest).order_by(TopupRequest.created_at.desc()).limit(1))
        return result.scalar_one_or_none()


topup_repo = TopupRepository()
