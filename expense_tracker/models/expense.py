"""
Core Data Models for the Expense Tracker

These models define the schemas for everything the storage layer hands out
and everything it accepts. They are designed to:
1. Keep amounts as exact two-decimal values (never binary floats)
2. Provide clear, per-field validation errors
3. Be serializable for storage backends and API responses

DESIGN DECISION: Amounts are Decimal end to end. Serializing a model in JSON
mode yields string-encoded decimals ("12.50"), which is the external contract.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CENTS = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Pin an amount to exactly two fractional digits."""
    return value.quantize(CENTS)


def coerce_to_datetime(value):
    """Accept plain dates (and YYYY-MM-DD strings) as midnight datetimes."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return datetime.combine(
                date.fromisoformat(value.strip()), datetime.min.time()
            )
        except ValueError:
            return value
    return value


Amount = Annotated[
    Decimal,
    Field(ge=0, max_digits=10, decimal_places=2),
    AfterValidator(quantize_amount),
]

# Sums of Amounts: same precision, no limit on total digits
Total = Annotated[
    Decimal,
    Field(ge=0, decimal_places=2),
    AfterValidator(quantize_amount),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Expense categories offered to users.

    The store does not enforce these: any label up to 100 characters is
    persisted as-is. The validator only warns about unknown labels.
    """
    OFFICE_SUPPLIES = "Office Supplies"
    TRAVEL = "Travel"
    MEALS_AND_ENTERTAINMENT = "Meals & Entertainment"
    SOFTWARE_AND_SUBSCRIPTIONS = "Software & Subscriptions"
    MARKETING = "Marketing"
    OTHER = "Other"

    @classmethod
    def labels(cls) -> list[str]:
        return [category.value for category in cls]


# =============================================================================
# USERS
# =============================================================================

class User(BaseModel):
    """
    A user of the tracker.

    Users are created on first login and never modified afterwards:
    a later login with a different name keeps the original name.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Unique user ID")
    email: str = Field(..., min_length=1, description="Unique, case-sensitive email")
    name: str = Field(..., description="Display name")
    created_at: datetime = Field(..., description="When the user was created")


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseInput(BaseModel):
    """
    Payload for creating an expense.

    Every field is required. The owner is never part of the payload;
    it comes from the resolved identity.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Amount
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    date: datetime = Field(..., description="Effective date of the expense")

    @field_validator("date", mode="before")
    @classmethod
    def parse_plain_date(cls, v):
        return coerce_to_datetime(v)


class ExpenseUpdate(BaseModel):
    """
    Partial payload for editing an expense.

    Only fields that were explicitly supplied are applied; use
    `changes()` rather than `model_dump()` to read them.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Optional[Amount] = None
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    date: Optional[datetime] = None

    @field_validator("amount", "description", "category", "date", mode="before")
    @classmethod
    def reject_explicit_null(cls, v):
        """A supplied field cannot be cleared."""
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def parse_plain_date(cls, v):
        return coerce_to_datetime(v)

    def changes(self) -> dict:
        """Fields the caller actually supplied."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
        }

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set


class Expense(BaseModel):
    """
    A stored expense.

    Instances are immutable: an update produces a new Expense which the
    store swaps in as a whole, so readers never see a half-applied edit.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Unique expense ID")
    user_id: int = Field(..., ge=1, description="Owning user's ID")
    amount: Amount
    description: str
    category: str
    date: datetime = Field(..., description="Effective date, used for monthly grouping")
    created_at: datetime = Field(..., description="When the record was created")

    @property
    def month_key(self) -> str:
        """YYYY-MM key of the expense's effective date."""
        return self.date.strftime("%Y-%m")

    def apply(self, update: ExpenseUpdate) -> "Expense":
        """Return a copy with the supplied fields of `update` applied."""
        return self.model_copy(update=update.changes())


class MonthlyStat(BaseModel):
    """Total and count of a user's expenses in one calendar month."""
    model_config = ConfigDict(frozen=True)

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="Month key (YYYY-MM)")
    total: Total
    count: int = Field(..., ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in a caller payload."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'unknown_category')"
    )
    message: str = Field(
        ...,
        description="Description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )
