"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. A household can view and export its expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions or unique constraints: id assignment and the email
  uniqueness check run under a per-instance lock, so one process must
  own the spreadsheet
- Limited query capabilities (we filter and aggregate in Python)

Values are written RAW, so amounts stay string-encoded decimals ("12.50")
and never pass through a spreadsheet number format.
"""

import threading
from datetime import datetime
from decimal import Decimal
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.logs import get_logger
from expense_tracker.models.expense import (
    Expense,
    ExpenseInput,
    ExpenseUpdate,
    MonthlyStat,
    User,
)
from expense_tracker.services.storage.interface import (
    ConflictError,
    ConnectionError,
    ExpenseStorageInterface,
    StorageError,
    month_bounds,
)
from expense_tracker.stats.aggregator import MonthlyAggregator


logger = get_logger(__name__)


# Column mappings for Users sheet
USER_COLUMNS = [
    "id",
    "email",
    "name",
    "created_at",
]

# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "description",
    "category",
    "date",
    "created_at",
]

sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates the worksheets on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_users_sheet(self) -> gspread.Worksheet:
        """Get or create the Users worksheet."""
        return self._get_or_create_sheet(self._settings.users_sheet_name, USER_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of the expense store.

    Users and expenses are stored one per row. Rows are only ever
    appended, so sheet order is insertion order.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        aggregator: Optional[MonthlyAggregator] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._aggregator = aggregator or MonthlyAggregator()
        self._lock = threading.Lock()
        # High-water marks so ids are never reused within this process,
        # even after the highest row is deleted
        self._last_user_id = 0
        self._last_expense_id = 0

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _user_to_row(self, user: User) -> list:
        return [
            str(user.id),
            user.email,
            user.name,
            user.created_at.isoformat(),
        ]

    def _row_to_user(self, row: list) -> User:
        return User(
            id=int(row[0]),
            email=row[1],
            name=row[2],
            created_at=datetime.fromisoformat(row[3]),
        )

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            str(expense.id),
            str(expense.user_id),
            str(expense.amount),
            expense.description,
            expense.category,
            expense.date.isoformat(),
            expense.created_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        return Expense(
            id=int(row[0]),
            user_id=int(row[1]),
            amount=Decimal(row[2]),
            description=row[3],
            category=row[4],
            date=datetime.fromisoformat(row[5]),
            created_at=datetime.fromisoformat(row[6]),
        )

    # ------------------------------------------------------------------
    # Sheet access
    # ------------------------------------------------------------------

    @sheets_retry
    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All non-empty data rows (header excluded)."""
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    @sheets_retry
    def _append(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @sheets_retry
    def _overwrite(self, sheet: gspread.Worksheet, row_number: int, row: list) -> None:
        sheet.update(
            range_name=f"A{row_number}",
            values=[row],
            value_input_option="RAW",
        )

    @sheets_retry
    def _delete(self, sheet: gspread.Worksheet, row_number: int) -> None:
        sheet.delete_rows(row_number)

    def _users(self) -> list[User]:
        return [self._row_to_user(row) for row in self._read_rows(self._client.get_users_sheet())]

    def _find_expense_row(self, expense_id: int) -> tuple[Optional[int], Optional[Expense]]:
        """Sheet row number (1-based, header is row 1) and the expense."""
        sheet = self._client.get_expenses_sheet()
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == str(expense_id):
                return idx, self._row_to_expense(row)
        return None, None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        try:
            for user in self._users():
                if user.id == user_id:
                    return user
            return None
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to get user: {e}")

    async def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            for user in self._users():
                if user.email == email:
                    return user
            return None
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to get user: {e}")

    async def create_user(self, email: str, name: str) -> User:
        with self._lock:
            try:
                existing = self._users()
                if any(user.email == email for user in existing):
                    raise ConflictError(email)
                self._last_user_id = max(
                    [self._last_user_id, *(user.id for user in existing)]
                ) + 1
                user = User(
                    id=self._last_user_id,
                    email=email,
                    name=name,
                    created_at=datetime.utcnow(),
                )
                self._append(self._client.get_users_sheet(), self._user_to_row(user))
                return user
            except gspread.exceptions.GSpreadException as e:
                raise StorageError(f"Failed to create user: {e}")

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def list_expenses(
        self,
        user_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Expense]:
        try:
            rows = self._read_rows(self._client.get_expenses_sheet())
        except gspread.exceptions.GSpreadException as e:
            raise StorageError(f"Failed to list expenses: {e}")

        owned = [
            self._row_to_expense(row)
            for row in rows
            if row[1] == str(user_id)
        ]

        if year is not None and month is not None:
            start, end = month_bounds(year, month)
            owned = [e for e in owned if start <= e.date < end]

        return sorted(owned, key=lambda e: e.date, reverse=True)

    async def create_expense(self, user_id: int, expense: ExpenseInput) -> Expense:
        with self._lock:
            try:
                sheet = self._client.get_expenses_sheet()
                existing_ids = [int(row[0]) for row in self._read_rows(sheet)]
                self._last_expense_id = max([self._last_expense_id, *existing_ids]) + 1
                stored = Expense(
                    id=self._last_expense_id,
                    user_id=user_id,
                    created_at=datetime.utcnow(),
                    **expense.model_dump(),
                )
                self._append(sheet, self._expense_to_row(stored))
                return stored
            except gspread.exceptions.GSpreadException as e:
                raise StorageError(f"Failed to save expense: {e}")

    async def update_expense(
        self,
        expense_id: int,
        user_id: int,
        changes: ExpenseUpdate,
    ) -> Optional[Expense]:
        with self._lock:
            try:
                row_number, current = self._find_expense_row(expense_id)
                if current is None or current.user_id != user_id:
                    return None
                updated = current.apply(changes)
                self._overwrite(
                    self._client.get_expenses_sheet(),
                    row_number,
                    self._expense_to_row(updated),
                )
                return updated
            except gspread.exceptions.GSpreadException as e:
                raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, expense_id: int, user_id: int) -> bool:
        with self._lock:
            try:
                row_number, current = self._find_expense_row(expense_id)
                if current is None or current.user_id != user_id:
                    return False
                self._delete(self._client.get_expenses_sheet(), row_number)
                return True
            except gspread.exceptions.GSpreadException as e:
                raise StorageError(f"Failed to delete expense: {e}")

    async def get_monthly_stats(self, user_id: int) -> list[MonthlyStat]:
        expenses = await self.list_expenses(user_id)
        return self._aggregator.monthly_stats(expenses)
