from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_adjuster, require_admin
from app.api.routes.serializers import balance_record_out
from app.database import get_db
from app.repositories import balance_repo
from app.schemas import (
    AdjustBalanceRequest,
    AdjustBalanceResponse,
    BalanceResponse,
    ReconciliationResponse,
    UserBalanceListResponse,
    UserBalanceOut,
)
from app.services.balance import BalanceAdjuster, ManualAdjuster
from app.services.reconcile import reconcile_user

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/balances",
    response_model=UserBalanceListResponse,
    summary="List user balances",
    description="Every user profile with its cached balance (0 when no balance row exists yet).",
)
async def list_balances(db: AsyncSession = Depends(get_db)):
    rows = await balance_repo.list_with_profiles(db)
    return UserBalanceListResponse(
        users=[
            UserBalanceOut(
                id=profile.id,
                user_email=profile.email,
                full_name=profile.full_name,
                balance=float(record.balance) if record else 0.0,
                created_at=profile.created_at,
                updated_at=record.updated_at if record else None,
            )
            for profile, record in rows
        ]
    )


@router.get(
    "/balance/{user_id}",
    response_model=BalanceResponse,
    summary="Get balance",
    description="Cached balance for a user plus the raw balance row, if any.",
)
async def get_balance(
    user_id: str = Path(..., description="User identifier"),
    db: AsyncSession = Depends(get_db),
):
    record = await balance_repo.get(db, user_id)
    return BalanceResponse(
        balance=float(record.balance) if record else 0.0,
        balanceRecord=balance_record_out(record) if record else None,
    )


@router.post(
    "/balance/{user_id}/adjust",
    response_model=AdjustBalanceResponse,
    summary="Adjust balance",
    description="Top up, deduct or refund. A deduct below zero fails with current_balance and required_amount.",
)
async def adjust_balance(
    user_id: str = Path(..., description="User identifier"),
    body: AdjustBalanceRequest | None = None,
    db: AsyncSession = Depends(get_db),
    adjuster: BalanceAdjuster = Depends(get_adjuster),
):
    body = body or AdjustBalanceRequest()
    result = await adjuster.adjust(
        db,
        user_id,
        body.amount,
        body.transaction_type,
        description=body.description,
        reference_id=body.reference_id,
    )
    message = "Balance updated successfully"
    if isinstance(adjuster, ManualAdjuster):
        message += " (fallback)"
    return AdjustBalanceResponse(
        balance_before=float(result.balance_before),
        balance_after=float(result.balance_after),
        transaction_id=result.transaction_id,
        message=message,
    )


@router.post(
    "/balance/{user_id}/reconcile",
    response_model=ReconciliationResponse,
    summary="Reconcile balance with ledger",
    description="Replay the user's ledger and compare with the cached balance. repair=true resets a drifted cache.",
)
async def reconcile_balance(
    user_id: str = Path(..., description="User identifier"),
    repair: bool = Query(False, description="Reset the cached balance to the ledger total"),
    db: AsyncSession = Depends(get_db),
):
    report = await reconcile_user(db, user_id, repair=repair)
    return ReconciliationResponse(
        user_id=report.user_id,
        cached_balance=float(report.cached_balance),
        ledger_balance=float(report.ledger_balance),
        drift=float(report.drift),
        transaction_count=report.transaction_count,
        broken_rows=report.broken_rows,
        consistent=report.consistent,
        repaired=report.repaired,
    )
