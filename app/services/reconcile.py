"""Compare the cached user balance with a replay of the ledger."""
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories import balance_repo, ledger_repo

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    user_id: str
    cached_balance: Decimal
    ledger_balance: Decimal
    transaction_count: int
    broken_rows: list[str]
    repaired: bool = False

    @property
    def drift(self) -> Decimal:
        return self.cached_balance - self.ledger_balance

    @property
    def consistent(self) -> bool:
        return self.drift == 0 and not self.broken_rows


async def reconcile_user(db: AsyncSession, user_id: str, repair: bool = False) -> ReconciliationReport:
    """
    Sum signed ledger amounts from 0 in created_at order and compare with
    user_balance. Rows whose balance_after != balance_before + signed amount
    are listed in broken_rows. With repair=True a drifted cache is reset to
    the ledger total; the ledger itself is never changed.
    """
    rows = await ledger_repo.replay_for_user(db, user_id)
    ledger_balance = Decimal("0")
    broken: list[str] = []
    for tx in rows:
        signed = tx.transaction_type.signed(Decimal(tx.amount))
        if Decimal(tx.balance_after) != Decimal(tx.balance_before) + signed:
            broken.append(tx.id)
        ledger_balance += signed

    record = await balance_repo.get(db, user_id)
    cached = Decimal(record.balance) if record is not None else Decimal("0")
    report = ReconciliationReport(
        user_id=user_id,
        cached_balance=cached,
        ledger_balance=ledger_balance,
        transaction_count=len(rows),
        broken_rows=broken,
    )
    if report.consistent:
        return report

    logger.warning(
        "Balance drift for user %s: cached=%s ledger=%s (%d rows, %d broken)",
        user_id, cached, ledger_balance, len(rows), len(broken),
    )
    if repair and report.drift != 0:
        if record is None:
            record = await balance_repo.create(db, user_id)
        await balance_repo.set_balance(db, record, ledger_balance)
        await db.commit()
        report.repaired = True
        logger.warning("Reset cached balance for user %s to %s", user_id, ledger_balance)
    return report
