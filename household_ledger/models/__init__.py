"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.finance import (
    Category,
    CategoryKind,
    CategoryPatch,
    Expense,
    ExpenseKind,
    ExpensePatch,
    HouseholdSettings,
    InstallmentInfo,
    ItemStatus,
    LedgerItem,
    Patch,
    Person,
    PersonPatch,
    Receivable,
    ReceivablePatch,
    SettingsPatch,
    apply_patch,
    default_categories,
    default_people,
    new_id,
)
from household_ledger.models.validation import (
    ExpenseDraft,
    ReceivableDraft,
    ValidationIssue,
    ValidationResult,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Category",
    "CategoryKind",
    "CategoryPatch",
    "Expense",
    "ExpenseKind",
    "ExpensePatch",
    "HouseholdSettings",
    "InstallmentInfo",
    "ItemStatus",
    "LedgerItem",
    "Patch",
    "Person",
    "PersonPatch",
    "Receivable",
    "ReceivablePatch",
    "SettingsPatch",
    "apply_patch",
    "default_categories",
    "default_people",
    "new_id",
    # Validation models
    "ExpenseDraft",
    "ReceivableDraft",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
