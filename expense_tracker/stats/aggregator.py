"""
Monthly Aggregation

DESIGN DECISION: Aggregation is exact. Amounts are summed as Decimal,
never as floats, so "100.00" + "50.25" is exactly "150.25" and a total
computed here matches one computed by the database to the cent.

The in-memory and Sheets stores use this module directly. The SQL
store groups in the database, and the tests check both agree.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import Expense, MonthlyStat, quantize_amount
from expense_tracker.models.report import DashboardSummary


def month_key(value: date) -> str:
    """YYYY-MM key for a date or datetime."""
    return f"{value.year:04d}-{value.month:02d}"


def previous_month_key(value: date) -> str:
    """YYYY-MM key for the month before `value`."""
    if value.month == 1:
        return f"{value.year - 1:04d}-12"
    return f"{value.year:04d}-{value.month - 1:02d}"


class MonthlyAggregator:
    """
    Derives per-month statistics from a user's expenses.

    Callers pass expenses already scoped to one user; the aggregator
    does no ownership filtering of its own.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings

    def _today(self) -> date:
        """Current day in the reference time zone."""
        settings = self._settings or get_settings().app
        return datetime.now(settings.timezone).date()

    def monthly_stats(self, expenses: Iterable[Expense]) -> list[MonthlyStat]:
        """
        Group expenses by month of `date`, total and count each group.

        Returns one MonthlyStat per month that has expenses, most recent
        month first. YYYY-MM keys sort chronologically as strings.
        """
        totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))
        counts: dict[str, int] = defaultdict(int)

        for expense in expenses:
            key = month_key(expense.date)
            totals[key] += expense.amount
            counts[key] += 1

        return [
            MonthlyStat(month=key, total=totals[key], count=counts[key])
            for key in sorted(totals, reverse=True)
        ]

    def dashboard(
        self,
        expenses: list[Expense],
        stats: Optional[list[MonthlyStat]] = None,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        """
        Headline numbers: this month, last month, overall count and
        average monthly total.

        Args:
            expenses: All of the user's expenses
            stats: Precomputed monthly stats (computed from `expenses` if None)
            today: Reference day for "this month" (defaults to today in the
                reference time zone)
        """
        if stats is None:
            stats = self.monthly_stats(expenses)
        if today is None:
            today = self._today()

        by_month = {stat.month: stat for stat in stats}
        current = month_key(today)
        previous = previous_month_key(today)

        average = Decimal("0.00")
        if stats:
            average = quantize_amount(
                sum((stat.total for stat in stats), Decimal("0")) / len(stats)
            )

        summary = {
            "current_month": current,
            "previous_month": previous,
            "total_expenses": len(expenses),
            "average_monthly_total": average,
        }
        if current in by_month:
            summary["current_month_total"] = by_month[current].total
            summary["current_month_count"] = by_month[current].count
        if previous in by_month:
            summary["previous_month_total"] = by_month[previous].total
            summary["previous_month_count"] = by_month[previous].count

        return DashboardSummary(**summary)
