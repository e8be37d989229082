"""
Top-up request review: pending -> approved | rejected.

Approving credits the user's balance exactly once. The credit is keyed by
the request id in the ledger, so an approval whose status write was lost
after the credit committed is completed without crediting again.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import InfrastructureError, InputError, InvalidTransitionError, NotFoundError
from app.models import TopupRequest, TopupStatus, TransactionType
from app.models.base import utcnow
from app.repositories import ledger_repo, topup_repo
from app.services.balance import AdjustmentResult, BalanceAdjuster
from app.services.events import StatusChanged
from app.services.locks import KeyedLock

logger = logging.getLogger(__name__)

TARGET_STATUSES = (TopupStatus.APPROVED, TopupStatus.REJECTED)


@dataclass
class TransitionResult:
    request: TopupRequest
    balance_effect: AdjustmentResult | None
    event: StatusChanged
    # False when the request already had the target status.
    changed: bool = True


def parse_target_status(status) -> TopupStatus:
    try:
        target = TopupStatus(str(status))
    except ValueError:
        raise InputError("Invalid status. Use approved or rejected")
    if target not in TARGET_STATUSES:
        raise InputError("Invalid status. Use approved or rejected")
    return target


def check_transition(current: TopupStatus, target: TopupStatus) -> None:
    """
    pending -> approved | rejected is the normal path. Re-applying the
    current terminal status is allowed (notes refresh, no balance effect).
    Flipping between approved and rejected needs a manual correction.
    """
    if current is TopupStatus.PENDING or current is target:
        return
    raise InvalidTransitionError(
        f"Cannot change a {current.value} request to {target.value}",
        current_status=current.value,
    )


def credit_key(request_id: str) -> str:
    return f"topup:{request_id}"


class TopupService:
    def __init__(self) -> None:
        self._locks = KeyedLock()

    async def transition_status(
        self,
        db: AsyncSession,
        adjuster: BalanceAdjuster,
        request_id: str,
        status,
        admin_notes: str | None = None,
    ) -> TransitionResult:
        if not request_id or not status:
            raise InputError("Missing required fields")
        target = parse_target_status(status)

        async with self._locks.hold(request_id):
            load = topup_repo.get_for_update if adjuster.supports_locking else topup_repo.get
            request = await load(db, request_id)
            if request is None:
                raise NotFoundError("Topup request not found")
            current = request.status
            check_transition(current, target)

            balance_effect = None
            if target is TopupStatus.APPROVED and current is not TopupStatus.APPROVED:
                balance_effect = await self._credit(db, adjuster, request, admin_notes)

            try:
                await topup_repo.update_status(db, request, target, admin_notes, utcnow())
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                if balance_effect is not None:
                    logger.error(
                        "Top-up %s credited (tx=%s) but status write failed; still %s: %s",
                        request_id, balance_effect.transaction_id, current.value, e,
                    )
                raise InfrastructureError(f"Failed to update topup request: {e}")

        logger.info("Top-up %s: %s -> %s", request_id, current.value, target.value)
        event = StatusChanged(
            request_id=request.id,
            status=target.value,
            user_id=request.user_id,
            amount=Decimal(request.amount),
            payment_method=request.payment_method,
            currency=request.payment_currency or "USD",
            admin_notes=admin_notes,
        )
        return TransitionResult(
            request=request,
            balance_effect=balance_effect,
            event=event,
            changed=current is not target,
        )

    async def _credit(
        self,
        db: AsyncSession,
        adjuster: BalanceAdjuster,
        request: TopupRequest,
        admin_notes: str | None,
    ) -> AdjustmentResult:
        existing = await ledger_repo.get_by_idempotency_key(db, credit_key(request.id))
        if existing is not None:
            logger.warning(
                "Top-up %s was already credited (tx=%s); completing status only",
                request.id, existing.id,
            )
        return await adjuster.adjust(
            db,
            user_id=request.user_id,
            amount=request.amount,
            transaction_type=TransactionType.TOPUP,
            description=f"Top-up approved by admin: {admin_notes or 'No notes'}",
            reference_id=request.id,
            idempotency_key=credit_key(request.id),
        )


topup_service = TopupService()
