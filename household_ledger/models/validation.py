"""
Validation Models

What the validator reports back: a list of issues, each either an
error (blocks the action) or a warning (shown, but the action goes on).
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.models.finance import ExpenseKind


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one form submission."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)


RawAmount = Optional[Union[Decimal, int, float, str]]


class ExpenseDraft(BaseModel):
    """
    Expense as submitted by a form.

    CRITICAL: This is UNVERIFIED input. Every field is optional and the
    amount may still be text; the validator turns it into an Expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    description: Optional[str] = None
    amount: RawAmount = None
    kind: ExpenseKind = ExpenseKind.VARIABLE
    category: Optional[str] = None
    is_essential: bool = False
    due_date: Optional[date] = None
    split_between: list[str] = Field(default_factory=list)
    installment_current: Optional[int] = None
    installment_total: Optional[int] = None


class ReceivableDraft(BaseModel):
    """Receivable as submitted by a form (unverified)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    description: Optional[str] = None
    amount: RawAmount = None
    category: Optional[str] = None
    due_date: Optional[date] = None
    split_between: list[str] = Field(default_factory=list)
