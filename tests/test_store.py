"""Tests for the ledger store."""
import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from finbot.database import Base
from finbot.ledger.models import Account, Budget, SequenceCounter, Transaction
from finbot.ledger.store import LedgerStore, StoreUnavailable


async def make_account(store, user_id="user_1", readable_id=1, **overrides):
    values = dict(
        readable_id=readable_id,
        user_id=user_id,
        name="Cash",
        currency="USD",
        account_type="cash",
        balance=Decimal("100"),
        is_default=False,
    )
    values.update(overrides)
    return await store.create(Account, **values)


@pytest.fixture
async def file_store(tmp_path):
    """Store on a file database, where concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield LedgerStore(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


# ============================================================================
# SEQUENTIAL IDS
# ============================================================================

class TestNextSequentialId:
    """Tests for next_sequential_id."""

    @pytest.mark.asyncio
    async def test_starts_at_one(self, store):
        assert await store.next_sequential_id("transaction") == 1
        assert await store.next_sequential_id("transaction") == 2

    @pytest.mark.asyncio
    async def test_counters_are_per_type(self, store):
        await store.next_sequential_id("transaction")
        await store.next_sequential_id("transaction")
        assert await store.next_sequential_id("budget") == 1

    @pytest.mark.asyncio
    async def test_seeded_from_existing_rows(self, store):
        """Legacy rows without a counter continue after the highest ID."""
        await make_account(store, readable_id=41)
        assert await store.next_sequential_id("account") == 42

    @pytest.mark.asyncio
    async def test_ids_are_gap_free(self, store):
        ids = [await store.next_sequential_id("transaction") for _ in range(10)]
        assert ids == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_concurrent_requests_get_distinct_ids(self, file_store):
        ids = await asyncio.gather(*(file_store.next_sequential_id("transaction") for _ in range(20)))
        assert sorted(ids) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_unknown_type(self, store):
        with pytest.raises(ValueError):
            await store.next_sequential_id("invoice")

    @pytest.mark.asyncio
    async def test_counter_row_persisted(self, store):
        await store.next_sequential_id("budget")
        await store.next_sequential_id("budget")
        counter = await store.find_one(SequenceCounter, SequenceCounter.name == "budget")
        assert counter.value == 2


# ============================================================================
# CRUD
# ============================================================================

class TestRecords:
    """Tests for find / update / delete."""

    @pytest.mark.asyncio
    async def test_create_assigns_storage_id(self, store):
        account = await make_account(store)
        assert account.id.startswith("acct_")
        assert account.created_at is not None

    @pytest.mark.asyncio
    async def test_find_filters_and_orders(self, store):
        await make_account(store, readable_id=2, name="Bank")
        await make_account(store, readable_id=1, name="Cash")
        await make_account(store, user_id="user_2", readable_id=3, name="Other")

        accounts = await store.find(Account, Account.user_id == "user_1", order_by=(Account.readable_id,))
        assert [a.name for a in accounts] == ["Cash", "Bank"]

    @pytest.mark.asyncio
    async def test_find_one_missing_returns_none(self, store):
        assert await store.find_one(Budget, Budget.readable_id == 99) is None

    @pytest.mark.asyncio
    async def test_update_by_id_with_expression(self, store):
        account = await make_account(store)
        updated = await store.update_by_id(Account, account.id, {"balance": Account.balance - Decimal("25.50")})
        assert updated.balance == Decimal("74.50")

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, store):
        assert await store.update_by_id(Account, "acct_missing", {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_by_id(self, store):
        account = await make_account(store)
        deleted = await store.delete_by_id(Account, account.id)
        assert deleted.id == account.id
        assert await store.find_one(Account, Account.id == account.id) is None
        assert await store.delete_by_id(Account, account.id) is None


# ============================================================================
# FAILURES
# ============================================================================

class TestStoreUnavailable:

    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self):
        """A database failure surfaces as StoreUnavailable, not a driver error."""

        class BrokenSession:
            async def __aenter__(self):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

            async def __aexit__(self, *args):
                return False

        store = LedgerStore(lambda: BrokenSession())
        with pytest.raises(StoreUnavailable):
            await store.find(Transaction)


# ============================================================================
# UNIT OF WORK
# ============================================================================

class TestUnitOfWork:

    @pytest.mark.asyncio
    async def test_writes_commit_together(self, store):
        account = await make_account(store)
        async with store.unit_of_work() as session:
            session.add(Budget(
                readable_id=1, user_id="user_1", total_amount=Decimal("300"), currency="USD",
                start_date=date(2025, 3, 1), end_date=date(2025, 3, 31),
            ))
            record = await session.get(Account, account.id)
            record.name = "Wallet"

        assert len(await store.find(Budget)) == 1
        assert (await store.find_one(Account, Account.id == account.id)).name == "Wallet"

    @pytest.mark.asyncio
    async def test_failure_rolls_back_every_write(self, store):
        account = await make_account(store)

        with pytest.raises(StoreUnavailable):
            async with store.unit_of_work() as session:
                record = await session.get(Account, account.id)
                record.name = "Wallet"
                await session.flush()
                raise OperationalError("UPDATE accounts", {}, Exception("connection reset"))

        assert (await store.find_one(Account, Account.id == account.id)).name == "Cash"
