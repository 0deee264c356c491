"""Monthly receipt package."""

from expense_tracker.receipts.builder import ReceiptBuilder

__all__ = ["ReceiptBuilder"]
