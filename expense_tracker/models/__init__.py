"""
Data Models Package

This package contains all Pydantic models used by the expense tracker.
All data crossing the storage boundary must conform to these schemas.
"""

from expense_tracker.models.expense import (
    Amount,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseUpdate,
    MonthlyStat,
    Total,
    User,
    ValidationIssue,
    quantize_amount,
)
from expense_tracker.models.report import (
    DashboardSummary,
    MonthlyReceipt,
    ReceiptLine,
)

__all__ = [
    # Expense models
    "Amount",
    "Expense",
    "ExpenseCategory",
    "ExpenseInput",
    "ExpenseUpdate",
    "MonthlyStat",
    "Total",
    "User",
    "ValidationIssue",
    "quantize_amount",
    # Report models
    "DashboardSummary",
    "MonthlyReceipt",
    "ReceiptLine",
]
