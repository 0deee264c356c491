"""
Report Models

Derived, read-only views built from stored expenses: the dashboard
summary and the printable monthly receipt. Nothing here is persisted.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.models.expense import Amount, Expense, Total


class DashboardSummary(BaseModel):
    """Headline numbers shown above the expense list."""
    model_config = ConfigDict(frozen=True)

    current_month: str = Field(..., description="Month key for 'today'")
    current_month_total: Total = Decimal("0.00")
    current_month_count: int = 0
    previous_month: str = Field(..., description="Month key before current_month")
    previous_month_total: Total = Decimal("0.00")
    previous_month_count: int = 0
    total_expenses: int = Field(default=0, ge=0, description="Number of expenses on record")
    average_monthly_total: Total = Field(
        default=Decimal("0.00"),
        description="Mean of monthly totals over months that have expenses",
    )


class ReceiptLine(BaseModel):
    """One row of a monthly receipt."""
    model_config = ConfigDict(frozen=True)

    expense_id: int
    date: datetime
    description: str
    category: str
    amount: Amount

    @classmethod
    def from_expense(cls, expense: Expense) -> "ReceiptLine":
        return cls(
            expense_id=expense.id,
            date=expense.date,
            description=expense.description,
            category=expense.category,
            amount=expense.amount,
        )


class MonthlyReceipt(BaseModel):
    """
    A printable expense report for one user and one calendar month.

    `total` is the exact Decimal sum of the line amounts.
    """
    model_config = ConfigDict(frozen=True)

    period: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    generated_at: datetime
    user_name: str
    user_email: str
    lines: list[ReceiptLine] = Field(default_factory=list)
    total: Total = Decimal("0.00")

    @property
    def is_empty(self) -> bool:
        return not self.lines
