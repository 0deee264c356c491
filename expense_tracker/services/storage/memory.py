"""
In-Memory Storage Implementation

Used for tests and lightweight deployments where losing data on restart
is acceptable.

DESIGN DECISION: All state (both maps and both id counters) lives on the
instance, so two stores never share ids. A single lock guards every
operation: each read sees a consistent map, and each write is one
atomic insert, swap or delete.
"""

import threading
from datetime import datetime
from itertools import count
from typing import Optional

from expense_tracker.models.expense import (
    Expense,
    ExpenseInput,
    ExpenseUpdate,
    MonthlyStat,
    User,
)
from expense_tracker.services.storage.interface import (
    ConflictError,
    ExpenseStorageInterface,
    month_bounds,
)
from expense_tracker.stats.aggregator import MonthlyAggregator


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Dict-backed implementation of the expense store.

    Dicts preserve insertion order, and updates replace a value under
    its existing key, so iterating the expense map yields insertion
    order for the stable date sort.
    """

    def __init__(self, aggregator: Optional[MonthlyAggregator] = None):
        self._users: dict[int, User] = {}
        self._expenses: dict[int, Expense] = {}
        self._user_ids = count(1)
        self._expense_ids = count(1)
        self._lock = threading.Lock()
        self._aggregator = aggregator or MonthlyAggregator()

    async def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            return self._find_by_email(email)

    async def create_user(self, email: str, name: str) -> User:
        with self._lock:
            if self._find_by_email(email) is not None:
                raise ConflictError(email)
            user = User(
                id=next(self._user_ids),
                email=email,
                name=name,
                created_at=datetime.utcnow(),
            )
            self._users[user.id] = user
            return user

    def _find_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    async def list_expenses(
        self,
        user_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Expense]:
        with self._lock:
            owned = [e for e in self._expenses.values() if e.user_id == user_id]

        if year is not None and month is not None:
            start, end = month_bounds(year, month)
            owned = [e for e in owned if start <= e.date < end]

        # sorted() is stable with reverse=True, so equal dates keep insertion order
        return sorted(owned, key=lambda e: e.date, reverse=True)

    async def create_expense(self, user_id: int, expense: ExpenseInput) -> Expense:
        with self._lock:
            stored = Expense(
                id=next(self._expense_ids),
                user_id=user_id,
                created_at=datetime.utcnow(),
                **expense.model_dump(),
            )
            self._expenses[stored.id] = stored
            return stored

    async def update_expense(
        self,
        expense_id: int,
        user_id: int,
        changes: ExpenseUpdate,
    ) -> Optional[Expense]:
        with self._lock:
            current = self._expenses.get(expense_id)
            if current is None or current.user_id != user_id:
                return None
            updated = current.apply(changes)
            self._expenses[expense_id] = updated
            return updated

    async def delete_expense(self, expense_id: int, user_id: int) -> bool:
        with self._lock:
            current = self._expenses.get(expense_id)
            if current is None or current.user_id != user_id:
                return False
            del self._expenses[expense_id]
            return True

    async def get_monthly_stats(self, user_id: int) -> list[MonthlyStat]:
        expenses = await self.list_expenses(user_id)
        return self._aggregator.monthly_stats(expenses)
