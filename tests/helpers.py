from decimal import Decimal

from sqlalchemy import select

from app.models import TopupRequest, UserBalance, UserProfile

ADMIN_HEADERS = {"x-admin-secret": "test-secret"}


async def make_request(
    session_factory,
    user_id: str = "u1",
    amount: str = "100",
    **kwargs,
) -> str:
    async with session_factory() as s:
        req = TopupRequest(user_id=user_id, amount=Decimal(amount), payment_method="bank_transfer", **kwargs)
        s.add(req)
        await s.commit()
        return req.id


async def make_profile(session_factory, user_id: str, email: str | None = None, full_name: str | None = None):
    async with session_factory() as s:
        s.add(UserProfile(id=user_id, email=email, full_name=full_name))
        await s.commit()


async def set_balance(session_factory, user_id: str, balance: str) -> None:
    async with session_factory() as s:
        s.add(UserBalance(user_id=user_id, balance=Decimal(balance)))
        await s.commit()


async def read_balance(session_factory, user_id: str) -> Decimal | None:
    async with session_factory() as s:
        result = await s.execute(select(UserBalance.balance).where(UserBalance.user_id == user_id))
        value = result.scalar_one_or_none()
        return Decimal(value) if value is not None else None
