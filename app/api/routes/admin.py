from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_adjuster, get_event_bus, require_admin
from app.api.routes.serializers import subscription_out, topup_out
from app.database import get_db
from app.errors import InputError
from app.models import TopupStatus
from app.repositories import topup_repo, user_repo
from app.schemas import (
    AdminOut,
    LoginRequest,
    LoginResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    SubscriptionListResponse,
    TopupListResponse,
    TopupStats,
    TopupStatsResponse,
)
from app.services.auth import authenticate_admin
from app.services.balance import BalanceAdjuster
from app.services.events import EventBus
from app.services.topups import topup_service

router = APIRouter()


async def list_topup_requests(db: AsyncSession, status: str | None) -> TopupListResponse:
    status_filter = None
    if status and status != "all":
        try:
            status_filter = TopupStatus(status)
        except ValueError:
            raise InputError("Invalid status filter")
    rows = await topup_repo.list_with_profiles(db, status_filter)
    return TopupListResponse(requests=[topup_out(req, profile) for req, profile in rows])


async def topup_stats(db: AsyncSession) -> TopupStatsResponse:
    per_status = await topup_repo.stats(db)
    pending_count, pending_amount = per_status.get(TopupStatus.PENDING, (0, 0))
    return TopupStatsResponse(
        stats=TopupStats(
            totalPending=pending_count,
            totalApproved=per_status.get(TopupStatus.APPROVED, (0, 0))[0],
            totalRejected=per_status.get(TopupStatus.REJECTED, (0, 0))[0],
            pendingAmount=float(pending_amount),
        )
    )


async def connection_check(db: AsyncSession) -> dict:
    topup_count = await topup_repo.count(db)
    profile_count = await user_repo.count_profiles(db)
    sample_request = await topup_repo.first(db)
    sample_profile = await user_repo.first_profile(db)
    return {
        "success": True,
        "connection": "Connected successfully",
        "tables": {
            "topup_requests": {
                "count": topup_count,
                "sample": topup_out(sample_request).model_dump(mode="json") if sample_request else None,
            },
            "user_profiles": {
                "count": profile_count,
                "sample": (
                    {"id": sample_profile.id, "email": sample_profile.email, "full_name": sample_profile.full_name}
                    if sample_profile
                    else None
                ),
            },
        },
    }


@router.get(
    "",
    summary="Admin queries",
    description="action=topup-requests (optional status), stats, subscriptions or test-connection.",
    dependencies=[Depends(require_admin)],
)
async def admin_get(
    action: str | None = Query(None, description="Query selector"),
    status: str | None = Query(None, description="Status filter for topup-requests"),
    db: AsyncSession = Depends(get_db),
):
    if action == "topup-requests":
        return await list_topup_requests(db, status)
    if action == "stats":
        return await topup_stats(db)
    if action == "subscriptions":
        rows = await user_repo.list_subscriptions(db)
        return SubscriptionListResponse(subscriptions=[subscription_out(sub, profile) for sub, profile in rows])
    if action == "test-connection":
        return await connection_check(db)
    raise InputError("Invalid action")


@router.put(
    "",
    response_model=StatusUpdateResponse,
    summary="Approve or reject a top-up",
    description="action=update-status. Approving credits the user once; the status email is best-effort.",
    dependencies=[Depends(require_admin)],
)
async def admin_put(
    action: str | None = Query(None, description="Must be update-status"),
    body: StatusUpdateRequest | None = None,
    db: AsyncSession = Depends(get_db),
    adjuster: BalanceAdjuster = Depends(get_adjuster),
    event_bus: EventBus = Depends(get_event_bus),
):
    if action != "update-status":
        raise InputError("Invalid action")
    body = body or StatusUpdateRequest()
    result = await topup_service.transition_status(
        db,
        adjuster,
        body.id,
        body.status,
        body.admin_notes,
    )
    # A re-applied status was already announced.
    outcomes = await event_bus.publish(result.event) if result.changed else []
    email = next((o for o in outcomes if o.handler == "email"), None)
    approved = result.request.status is TopupStatus.APPROVED
    return StatusUpdateResponse(
        request=topup_out(result.request),
        email_sent=bool(email and email.success),
        email_error=email.error if email else None,
        message=(
            "Topup approved and balance updated successfully" if approved else "Status updated successfully"
        ),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Admin login",
    description="Check email/password against admin_users and record last_login.",
)
async def admin_login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    admin = await authenticate_admin(db, body.email, body.password)
    return LoginResponse(admin=AdminOut.model_validate(admin))
