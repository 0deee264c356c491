"""
Expense Tracker - Source Package

Storage and aggregation core of a personal expense tracker: users log in
by email, record expenses, view monthly statistics and print a monthly
receipt.

DESIGN PRINCIPLES:
1. Amounts are exact two-decimal values, never floats
2. Expenses are only ever visible to their owner
3. Not found and not owned look the same to the caller
4. Storage layer is swappable (memory, SQL, Google Sheets)
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
