"""
Storage Services Package

Provides the abstract entity store interface and its implementations:
in-memory, relational (SQLAlchemy) and Google Sheets.
"""

from expense_tracker.services.storage.interface import (
    ConflictError,
    ConnectionError,
    ExpenseStorageInterface,
    StorageError,
    month_bounds,
)
from expense_tracker.services.storage.memory import InMemoryExpenseStorage
from expense_tracker.services.storage.sql import (
    SQLExpenseStorage,
    create_sql_engine,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interface
    "ExpenseStorageInterface",
    "month_bounds",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "StorageError",
    # Implementations
    "InMemoryExpenseStorage",
    "SQLExpenseStorage",
    "create_sql_engine",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
