"""Ledger API Routes.

Endpoints:
- GET /budgets/daily - Daily allocation with rollover for the user's budgets
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from finbot.ledger import queries
from finbot.ledger.dates import format_day, parse_flexible, utc_today
from finbot.ledger.schemas import BudgetDailyResponse, BudgetDailyStatus
from finbot.ledger.store import LedgerStore, StoreUnavailable


router = APIRouter()


@router.get("/budgets/daily", response_model=BudgetDailyResponse)
async def get_daily_budget(
    user_id: str = Query(..., description="Owner of the budgets"),
    currency: Optional[str] = Query(None, description="Only this currency"),
    date: Optional[str] = Query(None, description="DD.MM.YYYY or YYYY-MM-DD, defaults to today (UTC)"),
):
    """
    Get the spendable amount for a day of each budget.

    The allocation is recomputed from stored expenses, so it reflects any
    edit or deletion of past transactions.
    """
    target = utc_today()
    if date:
        target = parse_flexible(date)
        if target is None:
            raise HTTPException(status_code=400, detail=f"Invalid date: {date}")

    store = LedgerStore()
    try:
        budgets = await queries.get_user_budgets(store, user_id, currency)
        statuses = []
        for budget in budgets:
            status = await queries.get_budget_status(store, budget, target)
            statuses.append(BudgetDailyStatus(
                budget_id=budget.readable_id,
                currency=budget.currency,
                date=format_day(target),
                in_period=budget.start_date <= target <= budget.end_date,
                base_daily=status.base_daily,
                rollover=status.rollover,
                allocation=status.allocation,
                spent=status.spent_on_target,
                remaining=status.remaining,
            ))
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=503,
            detail=f"Ledger storage unavailable: {str(e)}"
        )
    return BudgetDailyResponse(user_id=user_id, budgets=statuses)
