"""
Budget Allocation Engine - daily spendable amount with rollover.

A budget spreads total_amount evenly over its inclusive date range. Each
past day inside the range carries its surplus or deficit forward:

    base_daily = total_amount / days_in_period
    rollover   = sum(base_daily - spent(day)) for start_date <= day < target
    allocation = max(0, base_daily + rollover)

The result is recomputed from the transactions on every call; nothing is
cached, so editing or deleting a historical expense changes today's
allocation immediately. Only expense transactions in the budget currency
count.

This is a pure module - no database access.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable

from finbot.ledger.dates import day_of
from finbot.ledger.models import TransactionType


CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass
class BudgetDayStatus:
    """Allocation breakdown for one day of a budget."""
    target_date: date
    base_daily: Decimal
    rollover: Decimal
    allocation: Decimal
    spent_on_target: Decimal

    @property
    def remaining(self) -> Decimal:
        """What is still spendable on target_date after its own expenses."""
        return max(ZERO, self.allocation - self.spent_on_target).quantize(CENT, rounding=ROUND_HALF_UP)


def days_in_period(start_date: date, end_date: date) -> int:
    """Inclusive day count of a budget range."""
    return (end_date - start_date).days + 1


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def daily_spend_by_day(transactions: Iterable[Any], currency: str) -> Dict[date, Decimal]:
    """Sum expense amounts per calendar day for one currency."""
    totals: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    wanted = currency.upper()
    for txn in transactions:
        if txn.transaction_type != TransactionType.EXPENSE.value:
            continue
        if (txn.currency or "").upper() != wanted:
            continue
        totals[day_of(txn.date)] += abs(_to_decimal(txn.amount))
    return totals


def budget_day_status(target_date: date, budget: Any, transactions: Iterable[Any]) -> BudgetDayStatus:
    """
    Full allocation breakdown for target_date.

    Outside [start_date, end_date] nothing is spendable: allocation is 0.
    """
    start = day_of(budget.start_date)
    end = day_of(budget.end_date)
    period = days_in_period(start, end)
    spend = daily_spend_by_day(transactions, budget.currency)

    if period <= 0:
        return BudgetDayStatus(target_date, ZERO, ZERO, ZERO, spend.get(target_date, ZERO))

    base_daily = _to_decimal(budget.total_amount) / Decimal(period)

    if target_date < start or target_date > end:
        return BudgetDayStatus(
            target_date=target_date,
            base_daily=base_daily.quantize(CENT, rounding=ROUND_HALF_UP),
            rollover=ZERO,
            allocation=ZERO.quantize(CENT),
            spent_on_target=spend.get(target_date, ZERO),
        )

    rollover = ZERO
    day = start
    while day < target_date:
        rollover += base_daily - spend.get(day, ZERO)
        day += timedelta(days=1)

    allocation = max(ZERO, base_daily + rollover)

    return BudgetDayStatus(
        target_date=target_date,
        base_daily=base_daily.quantize(CENT, rounding=ROUND_HALF_UP),
        rollover=rollover.quantize(CENT, rounding=ROUND_HALF_UP),
        allocation=allocation.quantize(CENT, rounding=ROUND_HALF_UP),
        spent_on_target=spend.get(target_date, ZERO),
    )


def daily_allocation(target_date: date, budget: Any, expense_transactions: Iterable[Any]) -> Decimal:
    """Spendable amount for target_date, rounded to cents, never negative."""
    return budget_day_status(target_date, budget, expense_transactions).allocation
