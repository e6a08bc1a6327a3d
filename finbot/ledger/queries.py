"""Read helpers over the ledger store shared by tools and prompt context."""
from datetime import date, timedelta
from typing import List, Optional

from finbot.ledger.budget_engine import BudgetDayStatus, budget_day_status
from finbot.ledger.dates import start_of_day
from finbot.ledger.models import Account, Budget, Transaction, TransactionType
from finbot.ledger.store import LedgerStore


async def get_user_accounts(store: LedgerStore, user_id: str) -> List[Account]:
    return await store.find(
        Account,
        Account.user_id == user_id,
        order_by=(Account.readable_id,),
    )


async def find_account(store: LedgerStore, user_id: str, readable_id: int) -> Optional[Account]:
    return await store.find_one(
        Account,
        Account.user_id == user_id,
        Account.readable_id == readable_id,
    )


async def get_default_account(store: LedgerStore, user_id: str) -> Optional[Account]:
    """The account flagged default, else the oldest account, else None."""
    account = await store.find_one(
        Account,
        Account.user_id == user_id,
        Account.is_default.is_(True),
    )
    if account is not None:
        return account
    accounts = await get_user_accounts(store, user_id)
    return accounts[0] if accounts else None


async def find_transaction(store: LedgerStore, user_id: str, readable_id: int) -> Optional[Transaction]:
    """Lookup by sequential business ID, scoped to the owner."""
    return await store.find_one(
        Transaction,
        Transaction.user_id == user_id,
        Transaction.readable_id == readable_id,
    )


async def get_recent_transactions(store: LedgerStore, user_id: str, limit: int = 50) -> List[Transaction]:
    return await store.find(
        Transaction,
        Transaction.user_id == user_id,
        order_by=(Transaction.date.desc(), Transaction.readable_id.desc()),
        limit=limit,
    )


async def get_user_budgets(store: LedgerStore, user_id: str, currency: Optional[str] = None) -> List[Budget]:
    criteria = [Budget.user_id == user_id]
    if currency:
        criteria.append(Budget.currency == currency.upper())
    return await store.find(Budget, *criteria, order_by=(Budget.readable_id,))


async def find_budget(store: LedgerStore, user_id: str, readable_id: int) -> Optional[Budget]:
    return await store.find_one(
        Budget,
        Budget.user_id == user_id,
        Budget.readable_id == readable_id,
    )


async def get_budget_expenses(store: LedgerStore, budget: Budget, until: date) -> List[Transaction]:
    """Expenses in the budget currency from start_date through `until` (inclusive)."""
    return await store.find(
        Transaction,
        Transaction.user_id == budget.user_id,
        Transaction.transaction_type == TransactionType.EXPENSE.value,
        Transaction.currency == budget.currency,
        Transaction.date >= start_of_day(budget.start_date),
        Transaction.date < start_of_day(until + timedelta(days=1)),
    )


async def get_budget_status(store: LedgerStore, budget: Budget, target_date: date) -> BudgetDayStatus:
    """Recompute the allocation for target_date from stored expenses."""
    expenses = await get_budget_expenses(store, budget, target_date)
    return budget_day_status(target_date, budget, expenses)
