"""Monthly statistics package."""

from expense_tracker.stats.aggregator import (
    MonthlyAggregator,
    month_key,
    previous_month_key,
)

__all__ = ["MonthlyAggregator", "month_key", "previous_month_key"]
