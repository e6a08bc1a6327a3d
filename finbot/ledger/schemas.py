"""Ledger Pydantic schemas."""
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class BudgetDailyStatus(BaseModel):
    """Allocation of one budget for one day."""
    budget_id: int = Field(..., description="Sequential business ID of the budget")
    currency: str
    date: str = Field(..., description="DD.MM.YYYY")
    in_period: bool
    base_daily: Decimal
    rollover: Decimal
    allocation: Decimal = Field(..., description="Spendable amount for the day, never negative")
    spent: Decimal
    remaining: Decimal


class BudgetDailyResponse(BaseModel):
    user_id: str
    budgets: List[BudgetDailyStatus] = Field(default_factory=list)
