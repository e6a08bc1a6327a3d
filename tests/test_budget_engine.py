"""Tests for the budget allocation engine."""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from finbot.ledger.budget_engine import (
    budget_day_status,
    daily_allocation,
    daily_spend_by_day,
    days_in_period,
)


@dataclass
class FakeBudget:
    total_amount: Decimal
    currency: str
    start_date: date
    end_date: date


@dataclass
class FakeTxn:
    amount: Decimal
    date: datetime
    transaction_type: str = "expense"
    currency: str = "USD"


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2025, 3, day, hour, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def week_budget():
    """100 USD over 01.03.2025 - 07.03.2025 (7 days)."""
    return FakeBudget(
        total_amount=Decimal("100"),
        currency="USD",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 7),
    )


# ============================================================================
# ALLOCATION
# ============================================================================

class TestDailyAllocation:
    """Tests for daily_allocation with rollover."""

    def test_first_day_is_base_daily(self, week_budget):
        """On day 1 nothing has rolled over yet."""
        txns = [FakeTxn(Decimal("15"), at(1))]
        assert daily_allocation(date(2025, 3, 1), week_budget, txns) == Decimal("14.29")

    def test_overspend_carries_deficit(self, week_budget):
        """15 spent on day 1 leaves 14.29 - 0.71 for day 2."""
        txns = [FakeTxn(Decimal("15"), at(1))]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("13.57")

    def test_underspend_carries_surplus(self, week_budget):
        txns = [FakeTxn(Decimal("4.2857"), at(1))]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("24.29")

    def test_no_spending_accumulates(self, week_budget):
        assert daily_allocation(date(2025, 3, 3), week_budget, []) == Decimal("42.86")

    def test_never_negative(self, week_budget):
        txns = [FakeTxn(Decimal("500"), at(1))]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("0.00")

    def test_idempotent(self, week_budget):
        txns = [FakeTxn(Decimal("15"), at(1)), FakeTxn(Decimal("3"), at(2))]
        first = daily_allocation(date(2025, 3, 4), week_budget, txns)
        second = daily_allocation(date(2025, 3, 4), week_budget, txns)
        assert first == second

    def test_same_day_spending_does_not_reduce_own_allocation(self, week_budget):
        """Only days strictly before the target roll over."""
        txns = [FakeTxn(Decimal("10"), at(2))]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("28.57")

    def test_income_and_transfer_ignored(self, week_budget):
        txns = [
            FakeTxn(Decimal("50"), at(1), transaction_type="income"),
            FakeTxn(Decimal("50"), at(1), transaction_type="transfer"),
        ]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("28.57")

    def test_other_currency_ignored(self, week_budget):
        txns = [FakeTxn(Decimal("50"), at(1), currency="EUR")]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("28.57")

    def test_negative_amounts_count_as_magnitude(self, week_budget):
        txns = [FakeTxn(Decimal("-15"), at(1))]
        assert daily_allocation(date(2025, 3, 2), week_budget, txns) == Decimal("13.57")

    def test_removing_historical_expense_changes_allocation(self, week_budget):
        """Recomputed from transactions on every call."""
        txns = [FakeTxn(Decimal("15"), at(1))]
        before = daily_allocation(date(2025, 3, 2), week_budget, txns)
        after = daily_allocation(date(2025, 3, 2), week_budget, [])
        assert before == Decimal("13.57")
        assert after == Decimal("28.57")


class TestOutsidePeriod:
    """Tests for dates outside the budget range."""

    def test_before_start(self, week_budget):
        assert daily_allocation(date(2025, 2, 28), week_budget, []) == Decimal("0")

    def test_after_end(self, week_budget):
        status = budget_day_status(date(2025, 3, 8), week_budget, [])
        assert status.allocation == Decimal("0")
        assert status.rollover == Decimal("0")

    def test_last_day_is_in_period(self, week_budget):
        assert daily_allocation(date(2025, 3, 7), week_budget, []) == Decimal("100.00")


class TestBudgetDayStatus:
    """Tests for the full status breakdown."""

    def test_breakdown(self, week_budget):
        txns = [FakeTxn(Decimal("15"), at(1)), FakeTxn(Decimal("5"), at(2))]
        status = budget_day_status(date(2025, 3, 2), week_budget, txns)

        assert status.base_daily == Decimal("14.29")
        assert status.rollover == Decimal("-0.71")
        assert status.allocation == Decimal("13.57")
        assert status.spent_on_target == Decimal("5")
        assert status.remaining == Decimal("8.57")

    def test_remaining_never_negative(self, week_budget):
        txns = [FakeTxn(Decimal("40"), at(1))]
        status = budget_day_status(date(2025, 3, 1), week_budget, txns)
        assert status.remaining == Decimal("0.00")


class TestHelpers:

    def test_days_in_period_inclusive(self):
        assert days_in_period(date(2025, 3, 1), date(2025, 3, 7)) == 7
        assert days_in_period(date(2025, 3, 1), date(2025, 3, 1)) == 1

    def test_spend_grouped_by_utc_day(self):
        txns = [
            FakeTxn(Decimal("1.50"), at(1, 0)),
            FakeTxn(Decimal("2.50"), at(1, 23)),
            FakeTxn(Decimal("4"), at(2)),
        ]
        totals = daily_spend_by_day(txns, "usd")
        assert totals[date(2025, 3, 1)] == Decimal("4.00")
        assert totals[date(2025, 3, 2)] == Decimal("4")
