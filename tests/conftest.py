"""
Shared fixtures.

Test strategy:
1. Store contract tests run against every backend (memory, SQLite, Sheets)
2. The Sheets backend runs against an in-process fake of the gspread worksheet API
3. No real network calls in tests
"""

from datetime import datetime
from decimal import Decimal

import pytest

from expense_tracker.config import AppSettings
from expense_tracker.models.expense import ExpenseInput
from expense_tracker.services.storage import (
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    SQLExpenseStorage,
)
from expense_tracker.services.storage.google_sheets import EXPENSE_COLUMNS, USER_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the Sheets store."""

    def __init__(self, columns: list[str]):
        self.rows = [list(columns)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def update(self, range_name, values, value_input_option=None):
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = [str(value) for value in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient."""

    def __init__(self):
        self.users = FakeWorksheet(USER_COLUMNS)
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)

    def get_users_sheet(self):
        return self.users

    def get_expenses_sheet(self):
        return self.expenses


def make_storage(backend: str):
    if backend == "memory":
        return InMemoryExpenseStorage()
    if backend == "sql":
        return SQLExpenseStorage.from_url("sqlite://")
    if backend == "sheets":
        return GoogleSheetsExpenseStorage(FakeSheetsClient())
    raise ValueError(backend)


@pytest.fixture(params=["memory", "sql", "sheets"])
def storage(request):
    """A fresh, empty store for each backend."""
    return make_storage(request.param)


@pytest.fixture
def app_settings():
    return AppSettings(
        reference_timezone="UTC",
        future_date_tolerance_days=7,
        currency_symbol="₹",
        receipt_title="ExpenseTracker Pro",
    )


def expense_input(
    amount="10.00",
    description="Pens",
    category="Office Supplies",
    date=datetime(2024, 3, 5),
) -> ExpenseInput:
    return ExpenseInput(
        amount=Decimal(amount) if isinstance(amount, str) else amount,
        description=description,
        category=category,
        date=date,
    )


@pytest.fixture
def make_expense():
    """Factory for ExpenseInput with sensible defaults."""
    return expense_input


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()
