from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.routes.serializers import transaction_out
from app.config import settings
from app.database import get_db
from app.errors import InputError
from app.repositories import ledger_repo
from app.schemas import TransactionListResponse

router = APIRouter(dependencies=[Depends(require_admin)])


def capped_limit(limit: int | None, default: int) -> int:
    if limit is None:
        return default
    if limit <= 0:
        raise InputError("limit must be a positive integer")
    return min(limit, settings.max_transactions_limit)


@router.get(
    "",
    response_model=TransactionListResponse,
    summary="Recent transactions",
    description="Latest ledger rows across all users, newest first.",
)
async def list_recent_transactions(
    limit: int | None = Query(None, description="Max rows (capped)"),
    db: AsyncSession = Depends(get_db),
):
    rows = await ledger_repo.list_recent(db, capped_limit(limit, 100))
    return TransactionListResponse(transactions=[transaction_out(tx) for tx in rows])


@router.get(
    "/{user_id}",
    response_model=TransactionListResponse,
    summary="User transactions",
    description="Ledger rows for one user, newest first.",
)
async def list_user_transactions(
    user_id: str = Path(..., description="User identifier"),
    limit: int | None = Query(None, description="Max rows (capped)"),
    db: AsyncSession = Depends(get_db),
):
    rows = await ledger_repo.list_for_user(
        db, user_id, capped_limit(limit, settings.default_transactions_limit)
    )
    return TransactionListResponse(transactions=[transaction_out(tx) for tx in rows])
