"""
Request Façade for the Expense Tracker

This module ties the components together and defines the operations a
caller (HTTP router, UI, script) uses:
1. Identity (login, resolve an identity token)
2. Expenses (list, add, edit, remove)
3. Statistics (monthly stats, dashboard summary, monthly receipt)

DESIGN DECISION: The façade enforces the boundaries:
- Every expense operation is scoped to an already-resolved User
- Raw payloads are validated before they reach the store
- "Not found" and "not yours" are both reported as absence (None/False)

Storage failures are logged here and propagated unchanged.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

from expense_tracker.auth import AccessGate
from expense_tracker.config import Settings, get_settings
from expense_tracker.logs import configure_logging, get_logger
from expense_tracker.models.expense import Expense, MonthlyStat, User, ValidationIssue
from expense_tracker.models.report import DashboardSummary, MonthlyReceipt
from expense_tracker.receipts import ReceiptBuilder
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    SQLExpenseStorage,
    StorageError,
    month_bounds,
)
from expense_tracker.stats import MonthlyAggregator
from expense_tracker.validation import ExpenseValidator, ValidationError


logger = get_logger(__name__)


class ExpenseTrackerService:
    """
    The operations offered to callers.

    All expense operations take the User returned by `login` or
    `resolve_identity`; ownership checks use that user's id.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        gate: Optional[AccessGate] = None,
        aggregator: Optional[MonthlyAggregator] = None,
        receipt_builder: Optional[ReceiptBuilder] = None,
    ):
        self._storage = storage
        self._validator = validator or ExpenseValidator()
        self._gate = gate or AccessGate(storage, self._validator)
        self._aggregator = aggregator or MonthlyAggregator()
        self._receipts = receipt_builder or ReceiptBuilder()

    @property
    def storage(self) -> ExpenseStorageInterface:
        return self._storage

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def login(self, email: Any, name: Any) -> User:
        """Get-or-create the user for `email`."""
        return await self._gate.login(email, name)

    async def resolve_identity(self, token: Any) -> User:
        """
        Raises:
            AuthenticationError: If the token is missing, malformed or unknown
        """
        return await self._gate.resolve_identity(token)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def _check_period(self, year: Optional[int], month: Optional[int]) -> None:
        """Both or neither of year/month, and a real month if given."""
        if year is None and month is None:
            return
        if year is None or month is None:
            missing = "year" if year is None else "month"
            raise ValidationError([ValidationIssue(
                field=missing,
                issue_type="missing",
                message="Year and month must be given together",
            )])
        try:
            month_bounds(year, month)
        except (TypeError, ValueError) as e:
            raise ValidationError([ValidationIssue(
                field="month",
                issue_type="invalid_value",
                message=str(e),
            )])

    async def list_expenses(
        self,
        user: User,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Expense]:
        """
        The user's expenses, newest first, optionally for one month.

        Raises:
            ValidationError: If only one of year/month is given, or the month is invalid
        """
        self._check_period(year, month)
        try:
            return await self._storage.list_expenses(user.id, year, month)
        except StorageError as e:
            logger.error("list_expenses_failed", user_id=user.id, error=str(e))
            raise

    async def add_expense(self, user: User, payload: Mapping) -> Expense:
        """
        Validate `payload` and store it as a new expense for `user`.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        expense = self._validator.validate_new(payload)
        try:
            created = await self._storage.create_expense(user.id, expense)
        except StorageError as e:
            logger.error("add_expense_failed", user_id=user.id, error=str(e))
            raise
        logger.info(
            "expense_added",
            user_id=user.id,
            expense_id=created.id,
            month=created.month_key,
        )
        return created

    async def edit_expense(
        self,
        user: User,
        expense_id: int,
        payload: Mapping,
    ) -> Optional[Expense]:
        """
        Apply a partial update.

        Returns:
            The updated expense, or None when it doesn't exist or
            belongs to someone else

        Raises:
            ValidationError: If a supplied field is malformed
        """
        changes = self._validator.validate_update(payload)
        try:
            updated = await self._storage.update_expense(expense_id, user.id, changes)
        except StorageError as e:
            logger.error(
                "edit_expense_failed",
                user_id=user.id,
                expense_id=expense_id,
                error=str(e),
            )
            raise
        if updated is None:
            logger.info("expense_not_found", user_id=user.id, expense_id=expense_id)
        else:
            logger.info(
                "expense_updated",
                user_id=user.id,
                expense_id=expense_id,
                fields=sorted(changes.model_fields_set),
            )
        return updated

    async def remove_expense(self, user: User, expense_id: int) -> bool:
        """
        Returns:
            True if deleted, False when it doesn't exist or belongs to someone else
        """
        try:
            removed = await self._storage.delete_expense(expense_id, user.id)
        except StorageError as e:
            logger.error(
                "remove_expense_failed",
                user_id=user.id,
                expense_id=expense_id,
                error=str(e),
            )
            raise
        if removed:
            logger.info("expense_removed", user_id=user.id, expense_id=expense_id)
        else:
            logger.info("expense_not_found", user_id=user.id, expense_id=expense_id)
        return removed

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def monthly_stats(self, user: User) -> list[MonthlyStat]:
        """Per-month totals and counts, most recent month first."""
        try:
            return await self._storage.get_monthly_stats(user.id)
        except StorageError as e:
            logger.error("monthly_stats_failed", user_id=user.id, error=str(e))
            raise

    async def dashboard(self, user: User, today: Optional[date] = None) -> DashboardSummary:
        """Headline numbers for the user's dashboard."""
        expenses = await self.list_expenses(user)
        stats = await self.monthly_stats(user)
        return self._aggregator.dashboard(expenses, stats, today)

    async def monthly_receipt(
        self,
        user: User,
        year: int,
        month: int,
        generated_at: Optional[datetime] = None,
    ) -> MonthlyReceipt:
        """
        Printable receipt for one month.

        Raises:
            ValidationError: If the month is invalid
        """
        expenses = await self.list_expenses(user, year, month)
        receipt = self._receipts.build(user, expenses, year, month, generated_at)
        logger.info(
            "receipt_generated",
            user_id=user.id,
            month=receipt.period,
            lines=len(receipt.lines),
        )
        return receipt

    def render_receipt(self, receipt: MonthlyReceipt) -> str:
        return self._receipts.render_text(receipt)


def create_storage(settings: Settings) -> ExpenseStorageInterface:
    """Build the store selected by `STORAGE_BACKEND`."""
    storage_settings = settings.storage

    if storage_settings.backend == "sql":
        return SQLExpenseStorage.from_url(
            storage_settings.database_url,
            echo=storage_settings.echo_sql,
        )
    if storage_settings.backend == "sheets":
        return GoogleSheetsExpenseStorage(GoogleSheetsClient(settings.google_sheets))
    return InMemoryExpenseStorage()


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[ExpenseStorageInterface] = None,
) -> ExpenseTrackerService:
    """
    Factory function to create the application service.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        storage: Store to use instead of the configured one (e.g. in tests)

    Returns:
        The wired ExpenseTrackerService
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings)

    if storage is None:
        storage = create_storage(settings)

    logger.info(
        "app_components_created",
        storage=type(storage).__name__,
        environment=app_settings.app_environment,
    )

    validator = ExpenseValidator(app_settings)
    return ExpenseTrackerService(
        storage=storage,
        validator=validator,
        aggregator=MonthlyAggregator(app_settings),
        receipt_builder=ReceiptBuilder(app_settings),
    )
