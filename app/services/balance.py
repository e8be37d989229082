"""
Balance adjustment: credit/debit a user's cached balance and append the
matching ledger row.

Two implementations behind one interface:

* AtomicAdjuster: read, check, write and log inside one database
  transaction, serialised per user (row lock + in-process lock).
* ManualAdjuster: three separately committed steps with no locking, for
  databases where the locking read is unavailable. Concurrent adjustments
  of the same user can lose updates on this path.

Which one runs is decided once at startup by select_adjuster().
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession

from app.errors import InfrastructureError, InputError, InsufficientBalanceError
from app.models import BalanceTransaction, TransactionType, UserBalance
from app.models.ledger import AMOUNT_SCALE
from app.repositories import balance_repo, ledger_repo
from app.services.locks import KeyedLock

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    balance_before: Decimal
    balance_after: Decimal
    transaction_id: str
    path: str
    already_processed: bool = False


def parse_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise InputError("Amount must be a positive number")
    if not value.is_finite() or value <= 0:
        raise InputError("Amount must be a positive number")
    # The column would round finer digits away, possibly down to zero.
    if value.normalize().as_tuple().exponent < -AMOUNT_SCALE:
        raise InputError("Amount must be a positive number")
    return value


def parse_transaction_type(transaction_type) -> TransactionType:
    if isinstance(transaction_type, TransactionType):
        return transaction_type
    try:
        return TransactionType(str(transaction_type))
    except ValueError:
        raise InputError("Invalid transaction_type. Use topup, deduct, or refund")


def compute_balance_after(
    balance_before: Decimal,
    amount: Decimal,
    transaction_type: TransactionType,
) -> Decimal:
    balance_after = balance_before + transaction_type.signed(amount)
    if transaction_type is TransactionType.DEDUCT and balance_after < 0:
        raise InsufficientBalanceError(current_balance=balance_before, required_amount=amount)
    return balance_after


class BalanceAdjuster:
    path = "base"
    supports_locking = False

    async def adjust(
        self,
        db: AsyncSession,
        user_id: str,
        amount,
        transaction_type,
        description: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> AdjustmentResult:
        """
        Apply a signed change to the user's balance and log it.
        amount is a positive magnitude; the sign comes from transaction_type.
        A repeated idempotency_key returns the first result without writing.
        """
        if not user_id:
            raise InputError("User ID is required")
        amount = parse_amount(amount)
        tx_type = parse_transaction_type(transaction_type)
        if idempotency_key:
            existing = await ledger_repo.get_by_idempotency_key(db, idempotency_key)
            if existing:
                return self._replayed(existing)
        result = await self._apply(db, user_id, amount, tx_type, description, reference_id, idempotency_key)
        logger.info(
            "Balance %s for user %s: %s -> %s (tx=%s, path=%s, ref=%s)",
            tx_type.value, user_id, result.balance_before, result.balance_after,
            result.transaction_id, result.path, reference_id,
        )
        return result

    async def _apply(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        tx_type: TransactionType,
        description: str | None,
        reference_id: str | None,
        idempotency_key: str | None,
    ) -> AdjustmentResult:
        raise NotImplementedError

    def _replayed(self, tx: BalanceTransaction) -> AdjustmentResult:
        return AdjustmentResult(
            balance_before=Decimal(tx.balance_before),
            balance_after=Decimal(tx.balance_after),
            transaction_id=tx.id,
            path=self.path,
            already_processed=True,
        )


class AtomicAdjuster(BalanceAdjuster):
    path = "atomic"
    supports_locking = True

    def __init__(self) -> None:
        self._locks = KeyedLock()

    async def _apply(self, db, user_id, amount, tx_type, description, reference_id, idempotency_key):
        # In-process lock covers SQLite, where FOR UPDATE is a no-op.
        async with self._locks.hold(user_id):
            try:
                record = await balance_repo.get_for_update(db, user_id)
                if record is None:
                    record = await balance_repo.create(db, user_id)
                balance_before = Decimal(record.balance)
                balance_after = compute_balance_after(balance_before, amount, tx_type)
                await balance_repo.set_balance(db, record, balance_after)
                tx = await ledger_repo.append(
                    db, user_id, tx_type, amount, balance_before, balance_after,
                    description, reference_id, idempotency_key,
                )
                await db.commit()
            except InsufficientBalanceError:
                await db.rollback()
                raise
            except IntegrityError as e:
                await db.rollback()
                if idempotency_key:
                    existing = await ledger_repo.get_by_idempotency_key(db, idempotency_key)
                    if existing:
                        return self._replayed(existing)
                raise InfrastructureError(f"Balance update conflict: {e.orig}")
            except SQLAlchemyError as e:
                await db.rollback()
                raise InfrastructureError(f"Failed to update user balance: {e}")
        return AdjustmentResult(
            balance_before=balance_before,
            balance_after=balance_after,
            transaction_id=tx.id,
            path=self.path,
        )


class ManualAdjuster(BalanceAdjuster):
    path = "manual"

    async def _read_or_create(self, db: AsyncSession, user_id: str) -> UserBalance:
        record = await balance_repo.get(db, user_id)
        if record is not None:
            return record
        try:
            record = await balance_repo.create(db, user_id)
            await db.commit()
        except IntegrityError:
            # Created by a concurrent call between our read and insert.
            await db.rollback()
            record = await balance_repo.get(db, user_id)
            if record is None:
                raise
        return record

    async def _apply(self, db, user_id, amount, tx_type, description, reference_id, idempotency_key):
        # Step 1: read (or lazily create) the current balance.
        try:
            record = await self._read_or_create(db, user_id)
            balance_before = Decimal(record.balance)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise InfrastructureError(f"Failed to read user balance: {e}")

        # Step 2: compute; a failing deduct writes nothing.
        balance_after = compute_balance_after(balance_before, amount, tx_type)

        # Step 3: write the balance, then the ledger row. Not atomic.
        try:
            await balance_repo.set_balance(db, record, balance_after)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise InfrastructureError(f"Failed to update user balance: {e}")
        try:
            tx = await ledger_repo.append(
                db, user_id, tx_type, amount, balance_before, balance_after,
                description, reference_id, idempotency_key,
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Balance written without ledger row, needs reconciliation: "
                "user=%s before=%s after=%s type=%s ref=%s error=%s",
                user_id, balance_before, balance_after, tx_type.value, reference_id, e,
            )
            raise InfrastructureError(f"Failed to record transaction: {e}")
        return AdjustmentResult(
            balance_before=balance_before,
            balance_after=balance_after,
            transaction_id=tx.id,
            path=self.path,
        )


async def _try_locking_read(conn: AsyncConnection) -> None:
    await conn.execute(select(UserBalance.id).limit(1).with_for_update())


async def select_adjuster(engine: AsyncEngine, mode: str = "auto") -> BalanceAdjuster:
    """
    Pick the adjustment path once, from config or by probing for a locking read.

    A plain read of user_balance runs first: an unreachable database or a
    missing table raises here instead of being taken for missing lock support.
    """
    if mode == "atomic":
        return AtomicAdjuster()
    if mode == "manual":
        logger.warning("Balance adjustment forced to manual mode (not atomic)")
        return ManualAdjuster()
    async with engine.connect() as conn:
        await conn.execute(select(UserBalance.id).limit(1))
        try:
            await _try_locking_read(conn)
        except DBAPIError as e:
            if e.connection_invalidated or isinstance(e, OperationalError):
                raise
            logger.warning("Locking read unavailable, falling back to manual balance adjustment: %s", e)
            return ManualAdjuster()
    logger.info("Using atomic balance adjustment")
    return AtomicAdjuster()
