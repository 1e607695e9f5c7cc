"""
Tests for wallets and the transaction log
"""

import asyncio
import re

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import InsufficientFunds, InvalidState, NotFound
from src.database.models import TransactionStatus, TransactionType
from src.services.ledger_service import (
    LedgerService,
    generate_deposit_address,
    make_tx_reference,
    wallet_lock,
)
from tests.helpers import fund_wallet, make_user


# ============================================================================
# WALLETS
# ============================================================================


@pytest.mark.asyncio
async def test_get_or_create_wallet_is_idempotent(db_session):
    user = await make_user(db_session)
    ledger = LedgerService(db_session)

    first = await ledger.get_or_create_wallet(user.id, "USDT")
    second = await ledger.get_or_create_wallet(user.id, "USDT")

    assert first.id == second.id
    assert first.balance == 0.0
    assert await ledger.get_wallet(user.id, "BTC") is None


@pytest.mark.asyncio
async def test_get_or_create_wallet_reuses_wallet_created_concurrently(db_session, monkeypatch):
    """The lookup misses, the insert hits the (user, currency) constraint"""
    user = await make_user(db_session)
    user_id = user.id
    existing = await fund_wallet(db_session, user_id, 25)
    ledger = LedgerService(db_session)
    lookup = ledger.get_wallet
    misses = [None]

    async def stale_lookup(user_id, currency, for_update=False):
        if misses:
            return misses.pop()
        return await lookup(user_id, currency, for_update=for_update)

    monkeypatch.setattr(ledger, "get_wallet", stale_lookup)

    wallet = await ledger.get_or_create_wallet(user_id, "USDT")

    assert wallet.id == existing.id
    assert wallet.balance == pytest.approx(25)
    assert len(await ledger.list_wallets(user_id)) == 1


@pytest.mark.asyncio
async def test_concurrent_first_wallet_creation(file_db_engine):
    session_maker = async_sessionmaker(file_db_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        user = await make_user(session)

    async def open_wallet():
        async with session_maker() as session:
            wallet = await LedgerService(session).get_or_create_wallet(user.id, "USDT")
            await session.commit()
            return wallet.id

    first_id, second_id = await asyncio.gather(open_wallet(), open_wallet())

    assert first_id == second_id
    async with session_maker() as session:
        assert len(await LedgerService(session).list_wallets(user.id)) == 1


@pytest.mark.asyncio
async def test_wallets_are_per_currency(db_session):
    user = await make_user(db_session)
    await fund_wallet(db_session, user.id, 10, "USDT")
    await fund_wallet(db_session, user.id, 0.5, "BTC")

    wallets = await LedgerService(db_session).list_wallets(user.id)

    assert {w.currency: w.balance for w in wallets} == {"BTC": 0.5, "USDT": 10}


@pytest.mark.asyncio
async def test_debit_and_credit(db_session):
    user = await make_user(db_session)
    wallet = await fund_wallet(db_session, user.id, 100)
    ledger = LedgerService(db_session)

    wallet = await ledger.debit(wallet.id, 40)
    assert wallet.balance == pytest.approx(60)

    wallet = await ledger.credit(wallet.id, 15.5)
    assert wallet.balance == pytest.approx(75.5)


@pytest.mark.asyncio
async def test_debit_whole_balance_reaches_zero(db_session):
    user = await make_user(db_session)
    wallet = await fund_wallet(db_session, user.id, 25)

    wallet = await LedgerService(db_session).debit(wallet.id, 25)

    assert wallet.balance == 0


@pytest.mark.asyncio
async def test_debit_more_than_balance_fails_without_change(db_session):
    user = await make_user(db_session)
    wallet = await fund_wallet(db_session, user.id, 10)
    ledger = LedgerService(db_session)

    with pytest.raises(InsufficientFunds) as exc_info:
        await ledger.debit(wallet.id, 10.01)

    assert exc_info.value.status_code == 400
    assert exc_info.value.details["required"] == 10.01
    assert (await ledger.get_wallet(user.id, "USDT")).balance == 10


@pytest.mark.asyncio
async def test_debit_unknown_wallet(db_session):
    with pytest.raises(NotFound):
        await LedgerService(db_session).debit(999, 1)


@pytest.mark.asyncio
async def test_negative_amounts_are_programming_errors(db_session):
    user = await make_user(db_session)
    wallet = await fund_wallet(db_session, user.id, 10)
    ledger = LedgerService(db_session)

    with pytest.raises(ValueError):
        await ledger.credit(wallet.id, -1)
    with pytest.raises(ValueError):
        await ledger.debit(wallet.id, float("nan"))


@pytest.mark.asyncio
async def test_assign_address_keeps_existing(db_session):
    user = await make_user(db_session)
    ledger = LedgerService(db_session)
    wallet = await ledger.get_or_create_wallet(user.id, "USDT (TRC20)")

    await ledger.assign_address(wallet)
    address = wallet.address
    await ledger.assign_address(wallet)

    assert address.startswith("T")
    assert wallet.address == address


# ============================================================================
# DEPOSIT ADDRESSES
# ============================================================================


@pytest.mark.parametrize(
    "currency,pattern",
    [
        ("USDT (TRC20)", r"^T[0-9a-f]{33}$"),
        ("BTC", r"^bc1[0-9a-f]{38}$"),
        ("USDT (ERC20)", r"^0x[0-9a-f]{40}$"),
        ("BNB (BEP20)", r"^0x[0-9a-f]{40}$"),
        ("SOL", r"^[1-9A-HJ-NP-Za-km-z]{44}$"),
        ("DOGE", r"^0x[0-9a-f]{42}$"),
    ],
)
def test_deposit_address_shapes(currency, pattern):
    assert re.match(pattern, generate_deposit_address(currency))


def test_tx_reference_format():
    assert re.match(r"^bot_42_\d{13}$", make_tx_reference("bot", 42))


def test_wallet_lock_is_shared_per_wallet():
    lock = wallet_lock(1, "USDT")

    assert wallet_lock(1, "USDT") is lock
    assert wallet_lock(1, "BTC") is not lock
    assert wallet_lock(2, "USDT") is not lock


# ============================================================================
# TRANSACTIONS
# ============================================================================


@pytest.mark.asyncio
async def test_record_and_list_transactions(db_session):
    user = await make_user(db_session)
    ledger = LedgerService(db_session)

    await ledger.record_transaction(user.id, TransactionType.DEPOSIT, "USDT", 100, tx_hash="abc")
    await ledger.record_transaction(user.id, TransactionType.BOT_INVESTMENT, "USDT", 40)
    await db_session.commit()

    transactions = await ledger.list_transactions(user.id)
    deposits = await ledger.list_transactions(user.id, TransactionType.DEPOSIT)

    assert len(transactions) == 2
    assert [t.type for t in deposits] == ["deposit"]
    assert deposits[0].status == "completed"
    assert (await ledger.get_transaction_by_hash("abc", TransactionType.DEPOSIT)).id == deposits[0].id


@pytest.mark.asyncio
async def test_tx_hash_is_unique_per_type(db_session):
    user = await make_user(db_session)
    user_id = user.id
    ledger = LedgerService(db_session)

    await ledger.record_transaction(user_id, TransactionType.DEPOSIT, "USDT", 10, tx_hash="0x1")
    await ledger.record_transaction(user_id, TransactionType.WITHDRAWAL, "USDT", 10, tx_hash="0x1")
    await db_session.commit()

    with pytest.raises(IntegrityError):
        await ledger.record_transaction(user_id, TransactionType.DEPOSIT, "USDT", 10, tx_hash="0x1")
    await db_session.rollback()

    assert len(await ledger.list_transactions(user_id, TransactionType.DEPOSIT)) == 1


@pytest.mark.asyncio
async def test_pending_transaction_completes_once(db_session):
    user = await make_user(db_session)
    ledger = LedgerService(db_session)
    transaction = await ledger.record_transaction(
        user.id, TransactionType.WITHDRAWAL, "USDT", 12, status=TransactionStatus.PENDING, fee=2
    )

    updated = await ledger.update_transaction_status(transaction.id, TransactionStatus.COMPLETED)
    assert updated.status == "completed"

    with pytest.raises(InvalidState):
        await ledger.update_transaction_status(transaction.id, TransactionStatus.FAILED)


@pytest.mark.asyncio
async def test_sum_transactions(db_session):
    user = await make_user(db_session)
    other = await make_user(db_session)
    ledger = LedgerService(db_session)

    await ledger.record_transaction(user.id, TransactionType.WITHDRAWAL, "USDT", 12, fee=2)
    await ledger.record_transaction(other.id, TransactionType.WITHDRAWAL, "USDT", 6, fee=1)
    await ledger.record_transaction(
        user.id, TransactionType.WITHDRAWAL, "USDT", 30, fee=5, status=TransactionStatus.PENDING
    )
    await db_session.commit()

    assert await ledger.sum_transactions(TransactionType.WITHDRAWAL) == pytest.approx(18)
    assert await ledger.sum_transactions(TransactionType.WITHDRAWAL, column="fee") == pytest.approx(3)
    assert await ledger.sum_transactions(TransactionType.WITHDRAWAL, user_id=user.id) == pytest.approx(12)
    assert await ledger.sum_transactions(
        TransactionType.WITHDRAWAL, status=TransactionStatus.PENDING, column="fee"
    ) == pytest.approx(5)
    assert await ledger.sum_transactions(TransactionType.DEPOSIT) == 0.0
