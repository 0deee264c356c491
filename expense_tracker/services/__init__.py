"""Services package."""

from expense_tracker.services.storage import (
    ConflictError,
    ConnectionError,
    ExpenseStorageInterface,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    SQLExpenseStorage,
    StorageError,
)

__all__ = [
    # Storage services
    "ConflictError",
    "ConnectionError",
    "ExpenseStorageInterface",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryExpenseStorage",
    "SQLExpenseStorage",
    "StorageError",
]
