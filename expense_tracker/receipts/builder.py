"""
Monthly Receipt Builder

Builds the printable expense report for one month: who it is for, which
period it covers, one line per expense and the exact total.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import Expense, User
from expense_tracker.models.report import MonthlyReceipt, ReceiptLine
from expense_tracker.stats.aggregator import month_key


WIDTH = 64
DATE_WIDTH = 10
CATEGORY_WIDTH = 16
AMOUNT_WIDTH = 12
DESCRIPTION_WIDTH = WIDTH - DATE_WIDTH - CATEGORY_WIDTH - AMOUNT_WIDTH - 3


def _fit(text: str, width: int) -> str:
    if len(text) <= width:
        return text.ljust(width)
    return text[: width - 1] + "~"


class ReceiptBuilder:
    """Builds MonthlyReceipt objects and renders them as plain text."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def build(
        self,
        user: User,
        expenses: list[Expense],
        year: int,
        month: int,
        generated_at: Optional[datetime] = None,
    ) -> MonthlyReceipt:
        """
        Build a receipt from the month's expenses.

        `expenses` should already be the user's expenses for that month,
        in display order.
        """
        period = month_key(datetime(year, month, 1))
        lines = [ReceiptLine.from_expense(expense) for expense in expenses]
        total = sum((line.amount for line in lines), Decimal("0.00"))

        return MonthlyReceipt(
            period=period,
            generated_at=generated_at or datetime.now(self._settings.timezone).replace(tzinfo=None),
            user_name=user.name,
            user_email=user.email,
            lines=lines,
            total=total,
        )

    def _money(self, amount: Decimal) -> str:
        return f"{self._settings.currency_symbol}{amount:.2f}"

    def render_text(self, receipt: MonthlyReceipt) -> str:
        """Fixed-width text rendering, ready to print."""
        rule = "-" * WIDTH
        out = [
            self._settings.receipt_title.center(WIDTH).rstrip(),
            "Expense Report".center(WIDTH).rstrip(),
            "=" * WIDTH,
            f"Period:    {receipt.period}",
            f"Generated: {receipt.generated_at:%d/%m/%y}",
            f"Name:      {receipt.user_name}",
            f"Email:     {receipt.user_email}",
            rule,
            " ".join([
                "Date".ljust(DATE_WIDTH),
                "Description".ljust(DESCRIPTION_WIDTH),
                "Category".ljust(CATEGORY_WIDTH),
                "Amount".rjust(AMOUNT_WIDTH),
            ]),
            rule,
        ]

        if receipt.is_empty:
            out.append("No expenses recorded for this period.")
        for line in receipt.lines:
            out.append(" ".join([
                f"{line.date:%d/%m/%y}".ljust(DATE_WIDTH),
                _fit(line.description, DESCRIPTION_WIDTH),
                _fit(line.category, CATEGORY_WIDTH),
                self._money(line.amount).rjust(AMOUNT_WIDTH),
            ]))

        total = self._money(receipt.total)
        out.append(rule)
        out.append("Total Amount:" + total.rjust(WIDTH - len("Total Amount:")))
        return "\n".join(out) + "\n"
