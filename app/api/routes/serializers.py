"""ORM rows -> response schemas (enums to values, Decimals to floats)."""
from app.models import BalanceTransaction, Subscription, TopupRequest, UserBalance, UserProfile
from app.schemas import BalanceRecordOut, SubscriptionOut, TopupRequestOut, TransactionOut, UserProfileOut


def topup_out(request: TopupRequest, profile: UserProfile | None = None) -> TopupRequestOut:
    return TopupRequestOut(
        id=request.id,
        user_id=request.user_id,
        amount=float(request.amount),
        payment_method=request.payment_method,
        payment_currency=request.payment_currency or "USD",
        payment_proof_url=request.payment_proof_url,
        status=request.status.value,
        admin_notes=request.admin_notes,
        processed_at=request.processed_at,
        created_at=request.created_at,
        updated_at=request.updated_at,
        user_profile=UserProfileOut.model_validate(profile) if profile is not None else None,
    )


def transaction_out(tx: BalanceTransaction) -> TransactionOut:
    return TransactionOut(
        id=tx.id,
        user_id=tx.user_id,
        transaction_type=tx.transaction_type.value,
        amount=float(tx.amount),
        balance_before=float(tx.balance_before),
        balance_after=float(tx.balance_after),
        description=tx.description,
        reference_id=tx.reference_id,
        created_at=tx.created_at,
    )


def balance_record_out(record: UserBalance) -> BalanceRecordOut:
    return BalanceRecordOut(
        id=record.id,
        user_id=record.user_id,
        balance=float(record.balance),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def subscription_out(sub: Subscription, profile: UserProfile | None) -> SubscriptionOut:
    return SubscriptionOut(
        id=sub.id,
        user_id=sub.user_id,
        plan_id=sub.plan_id,
        status=sub.status,
        current_period_start=sub.current_period_start,
        current_period_end=sub.current_period_end,
        created_at=sub.created_at,
        updated_at=sub.updated_at,
        user_email=profile.email if profile else None,
        full_name=profile.full_name if profile else None,
    )
