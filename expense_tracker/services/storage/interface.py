"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against a relational database in production
2. Use in-memory storage for tests and lightweight deployments
3. Keep a Google Sheet as the store for a single household
4. Keep business logic decoupled from storage implementation

Every implementation must honour the same contract, and the test suite
runs the same cases against all of them.

OWNERSHIP: expense reads and writes are always scoped to a user id.
An expense that exists but belongs to someone else is reported exactly
like one that does not exist (None / False), never as an error.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from expense_tracker.models.expense import (
    Expense,
    ExpenseInput,
    ExpenseUpdate,
    MonthlyStat,
    User,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for user and expense storage.

    Any storage implementation (in-memory, SQL, Google Sheets)
    must implement these methods.
    """

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        """
        Retrieve a user by ID.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by exact (case-sensitive) email.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_user(self, email: str, name: str) -> User:
        """
        Create a user with a fresh ID and creation timestamp.

        Raises:
            ConflictError: If a user with this email already exists
            StorageError: If the write fails
        """
        pass

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_expenses(
        self,
        user_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Expense]:
        """
        List a user's expenses, newest `date` first.

        Expenses sharing a date keep their insertion order.

        Args:
            user_id: Owner to list for
            year: With `month`, restrict to that calendar month
            month: 1-12, with `year`

        Returns:
            List of matching expenses (possibly empty)
        """
        pass

    @abstractmethod
    async def create_expense(self, user_id: int, expense: ExpenseInput) -> Expense:
        """
        Store a new expense for `user_id`.

        Returns:
            The stored expense with its ID and creation timestamp

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_expense(
        self,
        expense_id: int,
        user_id: int,
        changes: ExpenseUpdate,
    ) -> Optional[Expense]:
        """
        Apply the supplied fields of `changes` to an expense.

        Returns:
            The updated expense, or None if it doesn't exist
            or isn't owned by `user_id`
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int, user_id: int) -> bool:
        """
        Delete an expense owned by `user_id`.

        Returns:
            True if deleted, False if it doesn't exist or isn't owned
        """
        pass

    @abstractmethod
    async def get_monthly_stats(self, user_id: int) -> list[MonthlyStat]:
        """
        Per-month totals and counts, most recent month first.

        Months without expenses are absent.
        """
        pass


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """
    Half-open range [start, end) covering a calendar month.

    The whole of the last day is inside the range.

    Raises:
        ValueError: If year/month don't name a real month
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if not 1 <= year <= 9999:
        raise ValueError(f"Year out of range: {year}")
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1) if year < 9999 else datetime.max
    else:
        end = datetime(year, month + 1, 1)
    return start, end


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConflictError(StorageError):
    """Attempted to create a user whose email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A user with email {email!r} already exists")


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
