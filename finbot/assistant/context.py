"""Finance context builder - loads the user's ledger snapshot for the prompt.

Accounts, recent transactions and budget status (with today's rollover
allocation) are formatted into the finance system prompt so the model
can answer without a tool call for simple questions.
"""
from datetime import date
from typing import Optional

from finbot.assistant.schemas import (
    AccountSummary,
    BudgetSummary,
    FinanceContext,
    TransactionSummary,
)
from finbot.config import settings
from finbot.ledger import queries
from finbot.ledger.dates import day_of, format_day, utc_today
from finbot.ledger.store import LedgerStore


async def build_finance_context(
    store: LedgerStore,
    user_id: str,
    today: Optional[date] = None,
) -> FinanceContext:
    """
    Build the finance context for a user.

    Args:
        store: Ledger store
        user_id: Owner of the ledger
        today: Day budgets are evaluated for (defaults to UTC today)
    """
    today = today or utc_today()

    accounts = await queries.get_user_accounts(store, user_id)
    names = {a.id: a.name for a in accounts}

    transactions = await queries.get_recent_transactions(
        store, user_id, limit=settings.RECENT_TRANSACTIONS_LIMIT
    )

    budgets = []
    for budget in await queries.get_user_budgets(store, user_id):
        status = await queries.get_budget_status(store, budget, today)
        budgets.append(BudgetSummary(
            budget_id=budget.readable_id,
            currency=budget.currency,
            total_amount=f"{budget.total_amount:.2f}",
            start_date=format_day(budget.start_date),
            end_date=format_day(budget.end_date),
            available_today=f"{status.allocation:.2f}",
            base_daily=f"{status.base_daily:.2f}",
            rollover=f"{status.rollover:.2f}",
            spent_today=f"{status.spent_on_target:.2f}",
        ))

    return FinanceContext(
        user_id=user_id,
        today=format_day(today),
        accounts=[
            AccountSummary(
                account_id=a.readable_id,
                name=a.name,
                account_type=a.account_type,
                currency=a.currency,
                balance=f"{a.balance:.2f}",
                is_default=bool(a.is_default),
            )
            for a in accounts
        ],
        recent_transactions=[
            TransactionSummary(
                transaction_id=t.readable_id,
                date=day_of(t.date).strftime("%m/%d"),
                transaction_type=t.transaction_type,
                amount=f"{t.amount:.2f}",
                currency=t.currency,
                account_name=names.get(t.account_id, "Unknown Account"),
                description=t.description,
            )
            for t in transactions
        ],
        budgets=budgets,
    )


def format_context_for_prompt(context: FinanceContext) -> str:
    """Format context as a structured string for the prompt."""
    lines = []
    lines.append(f"Today: {context.today}")
    lines.append("")

    lines.append("=== ACCOUNTS ===")
    if context.accounts:
        for account in context.accounts:
            default = " (Default)" if account.is_default else ""
            lines.append(
                f"{account.name}{default} - ID: {account.account_id}, "
                f"{account.account_type}, balance {account.balance} {account.currency}"
            )
    else:
        lines.append("No accounts found.")
    lines.append("")

    lines.append("=== RECENT TRANSACTIONS ===")
    if context.recent_transactions:
        for txn in context.recent_transactions:
            sign = "+" if txn.transaction_type == "income" else "-"
            lines.append(
                f"ID {txn.transaction_id}: {txn.date} {sign}{txn.amount} {txn.currency} "
                f"({txn.account_name}) - {txn.description}"
            )
    else:
        lines.append("No recent transactions found.")
    lines.append("")

    lines.append("=== BUDGETS ===")
    if context.budgets:
        for b in context.budgets:
            lines.append(
                f"ID {b.budget_id}: {b.total_amount} {b.currency} from {b.start_date} to {b.end_date}. "
                f"Available today: {b.available_today} {b.currency} "
                f"(base {b.base_daily}, carried over {b.rollover}, spent today {b.spent_today})"
            )
    else:
        lines.append("No budgets.")

    return "\n".join(lines)
