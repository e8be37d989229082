import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import NotSupportedError, OperationalError

from app.database import build_engine
from app.errors import InfrastructureError, InputError, InsufficientBalanceError
from app.models import BalanceTransaction, TransactionType
from app.repositories import balance_repo, ledger_repo
from app.services import balance as balance_service
from app.services.balance import (
    AtomicAdjuster,
    ManualAdjuster,
    compute_balance_after,
    select_adjuster,
)
from tests.helpers import read_balance, set_balance

ADJUSTERS = [AtomicAdjuster, ManualAdjuster]


async def ledger_rows(session_factory, user_id: str) -> list[BalanceTransaction]:
    async with session_factory() as s:
        result = await s.execute(select(BalanceTransaction).where(BalanceTransaction.user_id == user_id))
        return list(result.scalars().all())


def test_compute_balance_after_signs_by_type():
    assert compute_balance_after(Decimal("10"), Decimal("5"), TransactionType.TOPUP) == Decimal("15")
    assert compute_balance_after(Decimal("10"), Decimal("5"), TransactionType.REFUND) == Decimal("15")
    assert compute_balance_after(Decimal("10"), Decimal("5"), TransactionType.DEDUCT) == Decimal("5")
    assert compute_balance_after(Decimal("10"), Decimal("10"), TransactionType.DEDUCT) == Decimal("0")


def test_compute_balance_after_rejects_overdraft():
    with pytest.raises(InsufficientBalanceError) as exc:
        compute_balance_after(Decimal("50"), Decimal("100"), TransactionType.DEDUCT)
    assert exc.value.current_balance == Decimal("50")
    assert exc.value.required_amount == Decimal("100")


@pytest.mark.parametrize("adjuster_cls", ADJUSTERS)
async def test_first_topup_creates_balance_row(session_factory, adjuster_cls):
    adjuster = adjuster_cls()
    async with session_factory() as s:
        result = await adjuster.adjust(s, "u3", Decimal("30"), "topup", description="first")

    assert result.balance_before == Decimal("0")
    assert result.balance_after == Decimal("30")
    assert result.path == adjuster.path
    assert await read_balance(session_factory, "u3") == Decimal("30")
    rows = await ledger_rows(session_factory, "u3")
    assert len(rows) == 1
    assert rows[0].id == result.transaction_id
    assert rows[0].transaction_type is TransactionType.TOPUP
    assert Decimal(rows[0].balance_before) == 0
    assert Decimal(rows[0].balance_after) == 30


@pytest.mark.parametrize("adjuster_cls", ADJUSTERS)
async def test_overdraft_deduct_writes_nothing(session_factory, adjuster_cls):
    await set_balance(session_factory, "u2", "50")
    adjuster = adjuster_cls()
    async with session_factory() as s:
        with pytest.raises(InsufficientBalanceError):
            await adjuster.adjust(s, "u2", Decimal("100"), "deduct")

    assert await read_balance(session_factory, "u2") == Decimal("50")
    assert await ledger_rows(session_factory, "u2") == []


@pytest.mark.parametrize("adjuster_cls", ADJUSTERS)
async def test_ledger_rows_satisfy_balance_equation(session_factory, adjuster_cls):
    adjuster = adjuster_cls()
    async with session_factory() as s:
        await adjuster.adjust(s, "u5", 100, "topup")
        await adjuster.adjust(s, "u5", 40, "deduct")
        await adjuster.adjust(s, "u5", "15.5", "refund")

    rows = await ledger_rows(session_factory, "u5")
    assert len(rows) == 3
    for tx in rows:
        signed = tx.transaction_type.signed(Decimal(tx.amount))
        assert Decimal(tx.balance_after) == Decimal(tx.balance_before) + signed
    assert await read_balance(session_factory, "u5") == Decimal("75.5")


@pytest.mark.parametrize("amount", [0, -5, "abc", None, "0.00004", "1.00001"])
async def test_rejects_invalid_amount(db, amount):
    with pytest.raises(InputError):
        await AtomicAdjuster().adjust(db, "u1", amount, "topup")


@pytest.mark.parametrize("adjuster_cls", ADJUSTERS)
async def test_sub_scale_amount_writes_nothing(session_factory, adjuster_cls):
    async with session_factory() as s:
        with pytest.raises(InputError):
            await adjuster_cls().adjust(s, "uP", "0.00004", "topup")

    assert await read_balance(session_factory, "uP") is None
    assert await ledger_rows(session_factory, "uP") == []


async def test_amount_at_column_scale_is_stored_exactly(session_factory):
    async with session_factory() as s:
        await AtomicAdjuster().adjust(s, "uP", "0.0001", "topup")
        await AtomicAdjuster().adjust(s, "uP", "2.50000", "topup")

    rows = await ledger_rows(session_factory, "uP")
    assert sorted(Decimal(r.amount) for r in rows) == [Decimal("0.0001"), Decimal("2.5")]
    assert await read_balance(session_factory, "uP") == Decimal("2.5001")


async def test_rejects_unknown_transaction_type(db):
    with pytest.raises(InputError):
        await AtomicAdjuster().adjust(db, "u1", 10, "bonus")


@pytest.mark.parametrize("adjuster_cls", ADJUSTERS)
async def test_repeated_idempotency_key_applies_once(session_factory, adjuster_cls):
    adjuster = adjuster_cls()
    async with session_factory() as s:
        first = await adjuster.adjust(s, "u6", 25, "topup", idempotency_key="topup:r9")
        second = await adjuster.adjust(s, "u6", 25, "topup", idempotency_key="topup:r9")

    assert not first.already_processed
    assert second.already_processed
    assert second.transaction_id == first.transaction_id
    assert await read_balance(session_factory, "u6") == Decimal("25")
    assert len(await ledger_rows(session_factory, "u6")) == 1


async def test_atomic_path_serialises_concurrent_topups(session_factory):
    adjuster = AtomicAdjuster()

    async def run(amount):
        async with session_factory() as s:
            return await adjuster.adjust(s, "u4", amount, "topup")

    r1, r2 = await asyncio.gather(run(50), run(20))

    assert await read_balance(session_factory, "u4") == Decimal("70")
    assert sorted([r1.balance_before, r2.balance_before]) in ([0, 20], [0, 50])
    assert max(r1.balance_after, r2.balance_after) == Decimal("70")


async def test_manual_path_can_lose_concurrent_update(session_factory, monkeypatch):
    """Both calls read 0 before either writes; the second write clobbers the first."""
    await set_balance(session_factory, "u4", "0")
    original_get = balance_repo.get
    reads = 0
    both_read = asyncio.Event()

    async def racing_get(db, user_id):
        nonlocal reads
        record = await original_get(db, user_id)
        reads += 1
        if reads == 2:
            both_read.set()
        await asyncio.wait_for(both_read.wait(), timeout=5)
        return record

    monkeypatch.setattr(balance_repo, "get", racing_get)
    adjuster = ManualAdjuster()

    async def run(amount):
        async with session_factory() as s:
            return await adjuster.adjust(s, "u4", amount, "topup")

    r1, r2 = await asyncio.gather(run(50), run(20))
    monkeypatch.undo()

    assert r1.balance_before == r2.balance_before == Decimal("0")
    final = await read_balance(session_factory, "u4")
    assert final in (Decimal("50"), Decimal("20"))
    assert final != Decimal("70")
    # Both ledger rows exist; the ledger still sums to 70.
    rows = await ledger_rows(session_factory, "u4")
    assert sum(Decimal(r.amount) for r in rows) == Decimal("70")


async def test_manual_path_logs_balance_written_without_ledger_row(session_factory, monkeypatch, caplog):
    await set_balance(session_factory, "u7", "10")

    async def failing_append(*args, **kwargs):
        raise OperationalError("INSERT INTO balance_transactions", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ledger_repo, "append", failing_append)
    async with session_factory() as s:
        with pytest.raises(InfrastructureError):
            await ManualAdjuster().adjust(s, "u7", 5, "topup", reference_id="r-partial")

    # Not rolled back: the balance write already committed.
    assert await read_balance(session_factory, "u7") == Decimal("15")
    assert "needs reconciliation" in caplog.text
    assert "r-partial" in caplog.text


async def test_atomic_path_rolls_back_when_ledger_insert_fails(session_factory, monkeypatch):
    await set_balance(session_factory, "u8", "10")

    async def failing_append(*args, **kwargs):
        raise OperationalError("INSERT INTO balance_transactions", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ledger_repo, "append", failing_append)
    async with session_factory() as s:
        with pytest.raises(InfrastructureError):
            await AtomicAdjuster().adjust(s, "u8", 5, "topup")

    assert await read_balance(session_factory, "u8") == Decimal("10")


async def test_select_adjuster_honours_mode(engine):
    assert isinstance(await select_adjuster(engine, "atomic"), AtomicAdjuster)
    assert isinstance(await select_adjuster(engine, "manual"), ManualAdjuster)


async def test_select_adjuster_auto_picks_atomic_when_table_is_lockable(engine):
    assert isinstance(await select_adjuster(engine, "auto"), AtomicAdjuster)


async def test_select_adjuster_falls_back_when_locking_read_unsupported(engine, monkeypatch):
    async def unsupported(conn):
        raise NotSupportedError("SELECT ... FOR UPDATE", {}, Exception("FOR UPDATE is not supported"))

    monkeypatch.setattr(balance_service, "_try_locking_read", unsupported)

    assert isinstance(await select_adjuster(engine, "auto"), ManualAdjuster)


async def test_select_adjuster_raises_on_missing_balance_table(tmp_path):
    bare = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}")
    try:
        with pytest.raises(OperationalError):
            await select_adjuster(bare, "auto")
    finally:
        await bare.dispose()


async def test_select_adjuster_raises_on_unreachable_database(tmp_path):
    unreachable = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'no-such-dir' / 'x.db'}")
    try:
        with pytest.raises(OperationalError):
            await select_adjuster(unreachable, "auto")
    finally:
        await unreachable.dispose()


async def test_select_adjuster_raises_when_connection_drops_during_lock_check(engine, monkeypatch):
    async def dropped(conn):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("server closed the connection"))

    monkeypatch.setattr(balance_service, "_try_locking_read", dropped)

    with pytest.raises(OperationalError):
        await select_adjuster(engine, "auto")


async def test_ledger_count_is_one_per_successful_call(session_factory):
    adjuster = AtomicAdjuster()
    async with session_factory() as s:
        await adjuster.adjust(s, "u9", 10, "topup")
        with pytest.raises(InsufficientBalanceError):
            await adjuster.adjust(s, "u9", 11, "deduct")
        await adjuster.adjust(s, "u9", 10, "deduct")
    async with session_factory() as s:
        count = (await s.execute(
            select(func.count()).select_from(BalanceTransaction).where(BalanceTransaction.user_id == "u9")
        )).scalar_one()
    assert count == 2
    assert await read_balance(session_factory, "u9") == Decimal("0")
