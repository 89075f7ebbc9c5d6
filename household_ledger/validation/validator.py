"""
Input Validation

DESIGN DECISION: Every form submission is validated BEFORE any
repository call. Invalid input never reaches storage and never changes
in-memory state; the caller gets a ValidationError carrying every
issue found, not just the first one.

Errors block the action:
- Missing description / category / due date
- Missing, non-numeric, non-positive or sub-cent amount
- Empty split list, or split with people that don't exist
- Installment expense without a valid current/total

Warnings are reported but don't block:
- Unusually large amount
- Category name not among the household's categories

IMPORTANT: Validation NEVER silently fixes input beyond trimming
whitespace and dropping trailing zeros past the cents.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

import pydantic

from household_ledger.calculations.money import CENTS, MoneyInput, to_money
from household_ledger.config import get_settings
from household_ledger.models.finance import (
    CategoryKind,
    Expense,
    ExpenseKind,
    ExpensePatch,
    HouseholdSettings,
    InstallmentInfo,
    Receivable,
    ReceivablePatch,
    apply_patch,
)
from household_ledger.models.validation import (
    ExpenseDraft,
    ReceivableDraft,
    ValidationIssue,
    ValidationResult,
)


class ValidationError(Exception):
    """Input rejected before reaching storage."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(messages or "Validation failed")

    @property
    def issues(self) -> list[ValidationIssue]:
        return self.result.issues


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
    )


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


def _fits_cents(value: Decimal) -> bool:
    """False when value is too large to be quantized to cents."""
    try:
        value.quantize(CENTS)
    except InvalidOperation:
        return False
    return True


class ItemValidator:
    """
    Validates expense / receivable drafts and settings input.

    check_* methods return a ValidationResult.
    validate_* methods return the built model or raise ValidationError.
    """

    def __init__(self, max_item_amount: Optional[float] = None):
        if max_item_amount is None:
            max_item_amount = get_settings().app.max_item_amount
        self._max_amount = Decimal(str(max_item_amount))

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def _check_amount(
        self,
        raw: Optional[MoneyInput],
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        """Append amount issues; return the parsed amount if usable."""
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            issues.append(_error("amount", "missing", "Amount is required"))
            return None
        try:
            amount = to_money(raw)
        except ValueError:
            issues.append(_error("amount", "invalid_format", f"Amount '{raw}' is not a number"))
            return None

        if amount <= 0:
            issues.append(_error("amount", "invalid_value", "Amount must be greater than zero"))
            return None
        if not _fits_cents(amount):
            issues.append(_error("amount", "invalid_value", "Amount is too large"))
            return None
        cents = amount.quantize(CENTS)
        if amount != cents:
            issues.append(_error(
                "amount",
                "invalid_precision",
                "Amount cannot have more than two decimal places",
            ))
            return None
        if amount > self._max_amount:
            issues.append(_warning(
                "amount",
                "suspicious_value",
                f"Amount ({amount:,.2f}) seems unusually high",
            ))
        return cents

    def _check_split(
        self,
        split_between: Sequence[str],
        settings: HouseholdSettings,
        issues: list[ValidationIssue],
    ) -> None:
        if not split_between:
            issues.append(_error(
                "split_between",
                "missing",
                "Select at least one person to split with",
            ))
            return
        known = set(settings.person_ids)
        unknown = [pid for pid in split_between if pid not in known]
        if unknown:
            issues.append(_error(
                "split_between",
                "unknown_reference",
                f"Unknown people in split: {', '.join(unknown)}",
            ))
        if len(set(split_between)) != len(split_between):
            issues.append(_error(
                "split_between",
                "duplicate",
                "A person can only appear once in a split",
            ))

    def _check_category(
        self,
        category: Optional[str],
        kind: CategoryKind,
        settings: HouseholdSettings,
        issues: list[ValidationIssue],
    ) -> None:
        if not category:
            issues.append(_error("category", "missing", "Category is required"))
            return
        names = {c.name for c in settings.categories_for(kind)}
        ids = {c.id for c in settings.categories_for(kind)}
        if category not in names and category not in ids:
            issues.append(_warning(
                "category",
                "unknown_reference",
                f"Category '{category}' is not one of your {kind.value} categories",
            ))

    def _check_common(
        self,
        draft,
        kind: CategoryKind,
        settings: HouseholdSettings,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        if not draft.description:
            issues.append(_error("description", "missing", "Description is required"))
        amount = self._check_amount(draft.amount, issues)
        self._check_category(draft.category, kind, settings, issues)
        if draft.due_date is None:
            issues.append(_error("due_date", "missing", "Due date is required"))
        self._check_split(draft.split_between, settings, issues)
        return amount

    def _check_installments(
        self,
        draft: ExpenseDraft,
        issues: list[ValidationIssue],
    ) -> Optional[InstallmentInfo]:
        if draft.kind != ExpenseKind.INSTALLMENT:
            return None
        current, total = draft.installment_current, draft.installment_total
        if current is None or total is None:
            issues.append(_error(
                "installments",
                "missing",
                "Installment expenses need the current and total installment",
            ))
            return None
        if current < 1 or total < 1:
            issues.append(_error(
                "installments",
                "invalid_value",
                "Installment numbers must be at least 1",
            ))
            return None
        if current > total:
            issues.append(_error(
                "installments",
                "inconsistent",
                f"Installment {current} cannot exceed total of {total}",
            ))
            return None
        return InstallmentInfo(current=current, total=total)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def check_expense(
        self,
        draft: ExpenseDraft,
        settings: HouseholdSettings,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_common(draft, CategoryKind.EXPENSE, settings, issues)
        self._check_installments(draft, issues)
        return _result(issues)

    def validate_expense(
        self,
        draft: ExpenseDraft,
        settings: HouseholdSettings,
    ) -> Expense:
        """
        Build a new pending Expense from a draft.

        Raises:
            ValidationError: If any error-level issue is found
        """
        issues: list[ValidationIssue] = []
        amount = self._check_common(draft, CategoryKind.EXPENSE, settings, issues)
        installments = self._check_installments(draft, issues)
        result = _result(issues)
        if not result.is_valid:
            raise ValidationError(result)

        fields = dict(
            description=draft.description,
            amount=amount,
            kind=draft.kind,
            category=draft.category,
            is_essential=draft.is_essential,
            due_date=draft.due_date,
            split_between=list(draft.split_between),
            installments=installments,
        )
        if draft.id:
            fields["id"] = draft.id
        return Expense(**fields)

    def validate_expense_patch(
        self,
        current: Expense,
        patch: ExpensePatch,
        settings: HouseholdSettings,
    ) -> Expense:
        """
        Check that applying patch to current gives a valid expense.

        Status/date fields are not constrained; a generic update may
        set anything the model allows.
        """
        issues: list[ValidationIssue] = []
        if patch.is_empty:
            issues.append(_error("patch", "empty", "Nothing to update"))
        changes = patch.model_fields_set
        if "split_between" in changes:
            self._check_split(patch.split_between or [], settings, issues)
        if "amount" in changes and patch.amount is not None and patch.amount > self._max_amount:
            issues.append(_warning(
                "amount",
                "suspicious_value",
                f"Amount ({patch.amount:,.2f}) seems unusually high",
            ))
        return self._merge(current, patch, issues)

    # -------------------------------------------------------------------------
    # Receivables
    # -------------------------------------------------------------------------

    def check_receivable(
        self,
        draft: ReceivableDraft,
        settings: HouseholdSettings,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_common(draft, CategoryKind.INCOME, settings, issues)
        return _result(issues)

    def validate_receivable(
        self,
        draft: ReceivableDraft,
        settings: HouseholdSettings,
    ) -> Receivable:
        """
        Build a new pending Receivable from a draft.

        Raises:
            ValidationError: If any error-level issue is found
        """
        issues: list[ValidationIssue] = []
        amount = self._check_common(draft, CategoryKind.INCOME, settings, issues)
        result = _result(issues)
        if not result.is_valid:
            raise ValidationError(result)

        fields = dict(
            description=draft.description,
            amount=amount,
            category=draft.category,
            due_date=draft.due_date,
            split_between=list(draft.split_between),
        )
        if draft.id:
            fields["id"] = draft.id
        return Receivable(**fields)

    def validate_receivable_patch(
        self,
        current: Receivable,
        patch: ReceivablePatch,
        settings: HouseholdSettings,
    ) -> Receivable:
        issues: list[ValidationIssue] = []
        if patch.is_empty:
            issues.append(_error("patch", "empty", "Nothing to update"))
        if "split_between" in patch.model_fields_set:
            self._check_split(patch.split_between or [], settings, issues)
        return self._merge(current, patch, issues)

    def _merge(self, current, patch, issues: list[ValidationIssue]):
        merged = None
        if not any(issue.severity == "error" for issue in issues):
            try:
                merged = apply_patch(current, patch)
            except pydantic.ValidationError as e:
                for err in e.errors():
                    field = ".".join(str(part) for part in err["loc"]) or "patch"
                    issues.append(_error(field, "invalid_value", err["msg"]))
        result = _result(issues)
        if not result.is_valid:
            raise ValidationError(result)
        return merged

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def validate_monthly_income(self, raw: MoneyInput) -> Decimal:
        """Income may be zero but not negative."""
        issues: list[ValidationIssue] = []
        try:
            income = to_money(raw)
        except ValueError:
            issues.append(_error("monthly_income", "invalid_format", "Enter a valid amount"))
        else:
            if income < 0:
                issues.append(_error(
                    "monthly_income",
                    "invalid_value",
                    "Monthly income cannot be negative",
                ))
            elif not _fits_cents(income):
                issues.append(_error(
                    "monthly_income",
                    "invalid_value",
                    "Monthly income is too large",
                ))
            elif income != income.quantize(CENTS):
                issues.append(_error(
                    "monthly_income",
                    "invalid_precision",
                    "Monthly income cannot have more than two decimal places",
                ))
        result = _result(issues)
        if not result.is_valid:
            raise ValidationError(result)
        return income.quantize(CENTS)

    def validate_name(self, raw: Optional[str], field: str = "name") -> str:
        name = (raw or "").strip()
        if not name:
            raise ValidationError(_result([_error(field, "missing", "Enter a valid name")]))
        if len(name) > 100:
            raise ValidationError(_result([
                _error(field, "too_long", "Name cannot be longer than 100 characters"),
            ]))
        return name

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summary of a ValidationResult for showing to the user."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
