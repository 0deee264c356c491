"""
Two-Stage Expense Validation

STAGE 1 - SCHEMA VALIDATION (blocking):
- Required field presence (amount, description, category, date)
- Amount parses as a non-negative decimal with at most two fractional digits
- No unknown or read-only fields in the payload
Failures raise ValidationError naming every offending field.

STAGE 2 - SEMANTIC CHECKS (non-blocking):
- Category outside the standard label set
- Date further in the future than the configured tolerance
These are logged as warnings. The store keeps whatever the user entered.

Dates are also normalized here: timezone-aware values are converted to
the reference time zone and stored naive, so month boundaries are always
computed in one zone.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.logs import get_logger
from expense_tracker.models.expense import (
    ExpenseCategory,
    ExpenseInput,
    ExpenseUpdate,
    ValidationIssue,
)


logger = get_logger(__name__)

# pydantic error types mapped to our issue types
_ISSUE_TYPES = {
    "missing": "missing",
    "extra_forbidden": "unexpected_field",
    "string_too_short": "missing",
    "string_too_long": "too_long",
    "decimal_parsing": "invalid_amount",
    "decimal_type": "invalid_amount",
    "decimal_max_places": "invalid_amount",
    "decimal_max_digits": "invalid_amount",
    "decimal_whole_digits": "invalid_amount",
    "greater_than_equal": "negative_amount",
    "datetime_parsing": "invalid_date",
    "datetime_from_date_parsing": "invalid_date",
    "datetime_type": "invalid_date",
    "value_error": "invalid_value",
}


class ValidationError(Exception):
    """
    Caller-supplied data was malformed or incomplete.

    `issues` lists one ValidationIssue per offending field.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Invalid expense data: {fields}")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


ExpensePayload = Union[ExpenseInput, ExpenseUpdate]


class ExpenseValidator:
    """
    Validates raw expense payloads through a two-stage pipeline.

    Stage 1 raises, stage 2 only warns.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _issues_from(self, error: PydanticValidationError) -> list[ValidationIssue]:
        issues = []
        for detail in error.errors():
            field = ".".join(str(part) for part in detail["loc"]) or "payload"
            issues.append(ValidationIssue(
                field=field,
                issue_type=_ISSUE_TYPES.get(detail["type"], detail["type"]),
                message=detail["msg"],
            ))
        return issues

    def _parse(self, model: type, payload: Any) -> ExpensePayload:
        """Stage 1: schema validation."""
        if not isinstance(payload, Mapping):
            raise ValidationError([ValidationIssue(
                field="payload",
                issue_type="invalid_format",
                message="Expense data must be an object",
            )])
        try:
            return model.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(self._issues_from(e))

    def _normalize_date(self, parsed: ExpensePayload) -> ExpensePayload:
        """Convert an aware date to naive reference-zone time."""
        value = parsed.date
        if value is None or value.tzinfo is None:
            return parsed
        local = value.astimezone(self._settings.timezone).replace(tzinfo=None)
        return parsed.model_copy(update={"date": local})

    def check_semantics(self, parsed: ExpensePayload) -> list[ValidationIssue]:
        """
        Stage 2: semantic checks.

        Returns warning-level issues; never raises.
        """
        issues = []

        if parsed.category is not None and parsed.category not in ExpenseCategory.labels():
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category {parsed.category!r} is not one of the standard categories",
                severity="warning",
            ))

        if parsed.date is not None:
            now = datetime.now(self._settings.timezone).replace(tzinfo=None)
            limit = now + timedelta(days=self._settings.future_date_tolerance_days)
            if parsed.date > limit:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Expense date ({parsed.date.date()}) is in the future",
                    severity="warning",
                ))

        return issues

    def _warn(self, issues: list[ValidationIssue]) -> None:
        for issue in issues:
            logger.warning(
                "expense_validation_warning",
                field=issue.field,
                issue_type=issue.issue_type,
                message=issue.message,
            )

    def validate_new(self, payload: Mapping) -> ExpenseInput:
        """
        Validate a creation payload.

        Raises:
            ValidationError: If any required field is missing or malformed
        """
        parsed = self._normalize_date(self._parse(ExpenseInput, payload))
        self._warn(self.check_semantics(parsed))
        return parsed

    def validate_update(self, payload: Mapping) -> ExpenseUpdate:
        """
        Validate a partial update payload.

        Only the supplied fields are checked. Read-only fields
        (id, user_id, created_at) are rejected as unexpected.

        Raises:
            ValidationError: If a supplied field is malformed
        """
        parsed = self._normalize_date(self._parse(ExpenseUpdate, payload))
        self._warn(self.check_semantics(parsed))
        return parsed

    def validate_login(self, email: Any, name: Any) -> tuple[str, str]:
        """
        Check login fields are present.

        Email is returned untouched: lookups are exact and case-sensitive.

        Raises:
            ValidationError: If email or name is missing or blank
        """
        issues = []
        for field, value in (("email", email), ("name", name)):
            if not isinstance(value, str) or not value.strip():
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field.capitalize()} is required",
                ))
        if issues:
            raise ValidationError(issues)
        return email, name
