"""
Main Orchestrator for Household Ledger

This module ties the pieces together and defines every user action:
1. Session (sign in -> load caches, sign out -> clear)
2. Expenses / receivables (add, update, delete, mark paid/received)
3. Settings (income, people, categories)
4. Dashboard for the selected month

DESIGN DECISION: The orchestrator enforces the boundaries:
- Input is validated before any repository call
- In-memory state changes only AFTER the repository confirms the write
- Without an owner id every storage-backed action is a no-op
- Every action is audited

Storage failures are logged and surfaced as ActionFailedError with a
generic message; the in-memory state is left exactly as it was.
There is no retry at this level; the user re-triggers the action.
"""

from datetime import date, datetime
from typing import Optional, Union

import structlog
from pydantic import BaseModel, Field

from household_ledger.audit import AuditLogger
from household_ledger.calculations import (
    CalendarMonth,
    MonthlySummary,
    select_for_month,
    summarize_month,
)
from household_ledger.config import get_settings, validate_all_settings
from household_ledger.models.finance import (
    Category,
    CategoryKind,
    Expense,
    ExpensePatch,
    HouseholdSettings,
    ItemStatus,
    Person,
    Receivable,
    ReceivablePatch,
    SettingsPatch,
    apply_patch,
)
from household_ledger.models.validation import (
    ExpenseDraft,
    ReceivableDraft,
    ValidationIssue,
    ValidationResult,
)
from household_ledger.services.storage import (
    GoogleSheetsClient,
    HouseholdStorage,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
    create_google_sheets_storage,
    create_in_memory_storage,
)
from household_ledger.validation import ItemValidator, ValidationError


logger = structlog.get_logger(__name__)


GENERIC_FAILURE_MESSAGE = "Something went wrong while saving. Please try again."


class ActionFailedError(Exception):
    """A repository call failed; nothing was changed in memory."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(GENERIC_FAILURE_MESSAGE)


class AppState(BaseModel):
    """
    Everything a signed-in session keeps in memory.

    Created at session start and cleared at sign-out. The lists are
    caches of what the repositories confirmed; they are only changed
    after a successful write.
    """

    owner_id: Optional[str] = None
    expenses: list[Expense] = Field(default_factory=list)
    receivables: list[Receivable] = Field(default_factory=list)
    settings: HouseholdSettings = Field(default_factory=HouseholdSettings.defaults)
    selected_month: CalendarMonth = Field(default_factory=CalendarMonth.current)

    @property
    def is_authenticated(self) -> bool:
        return self.owner_id is not None

    def clear(self) -> None:
        self.owner_id = None
        self.expenses = []
        self.receivables = []
        self.settings = HouseholdSettings.defaults()
        self.selected_month = CalendarMonth.current()


def _find(items: list, entity_id: str):
    for idx, item in enumerate(items):
        if item.id == entity_id:
            return idx, item
    return None, None


class LedgerSession:
    """
    User actions for one household session.

    Flow for every write:
    1. Validate input        (ValidationError, nothing touched)
    2. Repository call       (ActionFailedError / NotFoundError on failure)
    3. Update in-memory state
    4. Audit
    """

    def __init__(
        self,
        storage: HouseholdStorage,
        state: Optional[AppState] = None,
        validator: Optional[ItemValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self.state = state or AppState()
        self._validator = validator or ItemValidator()
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def owner_id(self) -> Optional[str]:
        return self.state.owner_id

    async def _call(self, operation: str, call):
        """Await a repository call, turning backend failures into ActionFailedError."""
        try:
            return await call
        except NotFoundError:
            raise
        except StorageError as e:
            await self._audit_logger.log_storage_failed(
                owner_id=self.owner_id,
                operation=operation,
                error_message=str(e),
            )
            raise ActionFailedError(operation, e) from e

    async def _rejected(self, entity_type: str, error: ValidationError) -> None:
        issues = [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in error.issues
        ]
        await self._audit_logger.log_validation_failed(
            owner_id=self.owner_id,
            entity_type=entity_type,
            issues=issues,
        )

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def sign_in(self, owner_id: str) -> None:
        """Load the owner's data. On failure the previous state is kept."""
        expenses = await self._call("list_expenses", self._storage.expenses.list(owner_id))
        receivables = await self._call(
            "list_receivables", self._storage.receivables.list(owner_id)
        )
        settings = await self._call("get_settings", self._storage.settings.get(owner_id))

        self.state.owner_id = owner_id
        self.state.expenses = expenses
        self.state.receivables = receivables
        self.state.settings = settings
        await self._audit_logger.log_session_started(owner_id)

    async def sign_out(self) -> None:
        await self._audit_logger.log_session_ended(self.owner_id)
        self.state.clear()

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def add_expense(self, draft: ExpenseDraft) -> Optional[Expense]:
        """
        Validate and store a new pending expense.

        Raises:
            ValidationError: Invalid input (nothing was stored)
            ActionFailedError: The repository failed
        """
        try:
            expense = self._validator.validate_expense(draft, self.state.settings)
        except ValidationError as e:
            await self._rejected("expense", e)
            raise

        if not self.state.is_authenticated:
            return None

        created = await self._call(
            "create_expense",
            self._storage.expenses.create(self.owner_id, expense),
        )
        self.state.expenses.append(created)
        await self._audit_logger.log_item_created(
            owner_id=self.owner_id,
            entity_type="expense",
            entity_id=created.id,
            description=created.description,
            amount=str(created.amount),
        )
        return created

    async def update_expense(self, expense_id: str, patch: ExpensePatch) -> Optional[Expense]:
        """
        Apply a partial update to an expense.

        Raises:
            NotFoundError: No such expense
            ValidationError: The patched expense would be invalid
            ActionFailedError: The repository failed
        """
        if not self.state.is_authenticated:
            return None

        idx, current = _find(self.state.expenses, expense_id)
        if current is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        try:
            updated = self._validator.validate_expense_patch(
                current, patch, self.state.settings
            )
        except ValidationError as e:
            await self._rejected("expense", e)
            raise

        await self._call(
            "update_expense",
            self._storage.expenses.update(self.owner_id, expense_id, patch),
        )
        self.state.expenses[idx] = updated
        await self._audit_logger.log_item_updated(
            owner_id=self.owner_id,
            entity_type="expense",
            entity_id=expense_id,
            fields=sorted(patch.model_fields_set),
        )
        return updated

    async def delete_expense(self, expense_id: str) -> None:
        """Delete an expense. Deleting an unknown id is not an error."""
        if not self.state.is_authenticated:
            return

        await self._call(
            "delete_expense",
            self._storage.expenses.delete(self.owner_id, expense_id),
        )
        self.state.expenses = [e for e in self.state.expenses if e.id != expense_id]
        await self._audit_logger.log_item_deleted(self.owner_id, "expense", expense_id)

    async def mark_expense_paid(
        self,
        expense_id: str,
        paid_by: Optional[str] = None,
    ) -> Optional[Expense]:
        """
        PENDING -> PAID, stamping paid_date with the current time.

        An expense that is already paid is returned unchanged.
        """
        if not self.state.is_authenticated:
            return None

        _, current = _find(self.state.expenses, expense_id)
        if current is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        if current.status == ItemStatus.PAID:
            return current

        self._check_payer(paid_by, "paid_by")
        updated = await self.update_expense(expense_id, ExpensePatch.mark_paid(paid_by))
        await self._audit_logger.log_item_paid(self.owner_id, "expense", expense_id, paid_by)
        return updated

    # -------------------------------------------------------------------------
    # Receivables
    # -------------------------------------------------------------------------

    async def add_receivable(self, draft: ReceivableDraft) -> Optional[Receivable]:
        """
        Validate and store a new pending receivable.

        Raises:
            ValidationError: Invalid input (nothing was stored)
            ActionFailedError: The repository failed
        """
        try:
            receivable = self._validator.validate_receivable(draft, self.state.settings)
        except ValidationError as e:
            await self._rejected("receivable", e)
            raise

        if not self.state.is_authenticated:
            return None

        created = await self._call(
            "create_receivable",
            self._storage.receivables.create(self.owner_id, receivable),
        )
        self.state.receivables.append(created)
        await self._audit_logger.log_item_created(
            owner_id=self.owner_id,
            entity_type="receivable",
            entity_id=created.id,
            description=created.description,
            amount=str(created.amount),
        )
        return created

    async def update_receivable(
        self,
        receivable_id: str,
        patch: ReceivablePatch,
    ) -> Optional[Receivable]:
        if not self.state.is_authenticated:
            return None

        idx, current = _find(self.state.receivables, receivable_id)
        if current is None:
            raise NotFoundError(f"Receivable not found: {receivable_id}")

        try:
            updated = self._validator.validate_receivable_patch(
                current, patch, self.state.settings
            )
        except ValidationError as e:
            await self._rejected("receivable", e)
            raise

        await self._call(
            "update_receivable",
            self._storage.receivables.update(self.owner_id, receivable_id, patch),
        )
        self.state.receivables[idx] = updated
        await self._audit_logger.log_item_updated(
            owner_id=self.owner_id,
            entity_type="receivable",
            entity_id=receivable_id,
            fields=sorted(patch.model_fields_set),
        )
        return updated

    async def delete_receivable(self, receivable_id: str) -> None:
        if not self.state.is_authenticated:
            return

        await self._call(
            "delete_receivable",
            self._storage.receivables.delete(self.owner_id, receivable_id),
        )
        self.state.receivables = [
            r for r in self.state.receivables if r.id != receivable_id
        ]
        await self._audit_logger.log_item_deleted(self.owner_id, "receivable", receivable_id)

    async def mark_receivable_received(
        self,
        receivable_id: str,
        received_by: Optional[str] = None,
    ) -> Optional[Receivable]:
        """PENDING -> PAID (received), stamping received_date."""
        if not self.state.is_authenticated:
            return None

        _, current = _find(self.state.receivables, receivable_id)
        if current is None:
            raise NotFoundError(f"Receivable not found: {receivable_id}")
        if current.status == ItemStatus.PAID:
            return current

        self._check_payer(received_by, "received_by")
        updated = await self.update_receivable(
            receivable_id, ReceivablePatch.mark_received(received_by)
        )
        await self._audit_logger.log_item_paid(
            self.owner_id, "receivable", receivable_id, received_by
        )
        return updated

    def _check_payer(self, person_id: Optional[str], field: str) -> None:
        if person_id is None or self.state.settings.find_person(person_id):
            return
        raise ValidationError(ValidationResult(
            is_valid=False,
            issues=[ValidationIssue(
                field=field,
                issue_type="unknown_reference",
                message=f"Unknown person: {person_id}",
                severity="error",
            )],
        ))

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def update_settings(self, patch: SettingsPatch) -> Optional[HouseholdSettings]:
        """Generic settings update; confirmed before the cache changes."""
        if not self.state.is_authenticated:
            return None

        updated = apply_patch(self.state.settings, patch)
        await self._call(
            "update_settings",
            self._storage.settings.update(self.owner_id, patch),
        )
        self.state.settings = updated
        await self._audit_logger.log_settings_updated(
            self.owner_id, sorted(patch.model_fields_set)
        )
        return updated

    async def set_monthly_income(self, raw) -> Optional[HouseholdSettings]:
        try:
            income = self._validator.validate_monthly_income(raw)
        except ValidationError as e:
            await self._rejected("settings", e)
            raise
        return await self.update_settings(SettingsPatch(monthly_income=income))

    async def add_person(self, name: str) -> Optional[Person]:
        """
        Add a person.

        Two independent writes: the person list, then the settings'
        cached people. If the second fails the person list already has
        the new entry; the in-memory state is left untouched.
        """
        try:
            name = self._validator.validate_name(name)
        except ValidationError as e:
            await self._rejected("person", e)
            raise
        if not self.state.is_authenticated:
            return None

        person = Person(name=name)
        created = await self._call(
            "create_person",
            self._storage.people.create(self.owner_id, person),
        )
        people = self.state.settings.people + [created]
        await self._call(
            "update_settings",
            self._storage.settings.update(self.owner_id, SettingsPatch(people=people)),
        )
        self.state.settings = self.state.settings.model_copy(update={"people": people})
        await self._audit_logger.log_person_added(self.owner_id, created.id, created.name)
        return created

    async def remove_person(self, person_id: str) -> None:
        """
        Remove a person. The last remaining person cannot be removed.

        Items that still reference the person keep the id; they are
        shown as unknown rather than deleted.
        """
        if not self.state.is_authenticated:
            return

        people = [p for p in self.state.settings.people if p.id != person_id]
        if not people:
            error = ValidationError(ValidationResult(
                is_valid=False,
                issues=[ValidationIssue(
                    field="people",
                    issue_type="last_person",
                    message="There must be at least one person",
                    severity="error",
                )],
            ))
            await self._rejected("person", error)
            raise error

        await self._call(
            "delete_person",
            self._storage.people.delete(self.owner_id, person_id),
        )
        await self._call(
            "update_settings",
            self._storage.settings.update(self.owner_id, SettingsPatch(people=people)),
        )
        self.state.settings = self.state.settings.model_copy(update={"people": people})
        await self._audit_logger.log_person_removed(self.owner_id, person_id)

    async def add_category(self, name: str, kind: CategoryKind) -> Optional[Category]:
        try:
            name = self._validator.validate_name(name)
        except ValidationError as e:
            await self._rejected("category", e)
            raise
        if not self.state.is_authenticated:
            return None

        category = Category(name=name, kind=kind)
        created = await self._call(
            "create_category",
            self._storage.categories.create(self.owner_id, category),
        )
        if kind == CategoryKind.EXPENSE:
            field = "expense_categories"
        else:
            field = "income_categories"
        categories = self.state.settings.categories_for(kind) + [created]
        await self._call(
            "update_settings",
            self._storage.settings.update(
                self.owner_id, SettingsPatch(**{field: categories})
            ),
        )
        self.state.settings = self.state.settings.model_copy(update={field: categories})
        await self._audit_logger.log_category_added(
            self.owner_id, created.id, created.name, kind.value
        )
        return created

    async def remove_category(self, category_id: str) -> None:
        """Remove a category from both lists. Items keep the category they had."""
        if not self.state.is_authenticated:
            return

        changes = {
            "expense_categories": [
                c for c in self.state.settings.expense_categories if c.id != category_id
            ],
            "income_categories": [
                c for c in self.state.settings.income_categories if c.id != category_id
            ],
        }
        await self._call(
            "delete_category",
            self._storage.categories.delete(self.owner_id, category_id),
        )
        await self._call(
            "update_settings",
            self._storage.settings.update(self.owner_id, SettingsPatch(**changes)),
        )
        self.state.settings = self.state.settings.model_copy(update=changes)
        await self._audit_logger.log_category_removed(self.owner_id, category_id)

    # -------------------------------------------------------------------------
    # Month selection & dashboard
    # -------------------------------------------------------------------------

    def select_month(self, month: Union[CalendarMonth, date, datetime]) -> CalendarMonth:
        if not isinstance(month, CalendarMonth):
            month = CalendarMonth.from_date(month)
        self.state.selected_month = month
        return month

    def next_month(self) -> CalendarMonth:
        return self.select_month(self.state.selected_month.next())

    def previous_month(self) -> CalendarMonth:
        return self.select_month(self.state.selected_month.previous())

    def month_expenses(self) -> list[Expense]:
        return select_for_month(self.state.expenses, self.state.selected_month)

    def month_receivables(self) -> list[Receivable]:
        return select_for_month(self.state.receivables, self.state.selected_month)

    def dashboard(self) -> MonthlySummary:
        """Totals, pending items and projected balance for the selected month."""
        return summarize_month(
            self.state.expenses,
            self.state.receivables,
            self.state.settings,
            self.state.selected_month,
        )


def create_app_components(
    backend: Optional[str] = None,
    data_file: Optional[str] = None,
) -> tuple[LedgerSession, HouseholdStorage]:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets"; defaults to the configured one.
        data_file: JSON snapshot for the memory backend; defaults to the
                   configured one.

    Returns:
        (session, storage)
    """
    checks = validate_all_settings()
    if not all(ok for name, ok in checks.items() if not name.endswith("_error")):
        logger.warning("settings_invalid", **checks)

    app_settings = get_settings().app
    backend = backend or app_settings.storage_backend
    if data_file is None:
        data_file = app_settings.data_file

    storage = None
    if backend == "google_sheets":
        try:
            # The client connects lazily; open the spreadsheet now so a bad
            # configuration falls back here rather than failing on first use
            client = GoogleSheetsClient()
            client.get_spreadsheet()
            storage = create_google_sheets_storage(client)
        except Exception as e:
            # Sheets not configured - continue with the local store
            logger.warning("google_sheets_unavailable", error=str(e))

    if storage is None:
        storage = create_in_memory_storage(data_file)

    audit_logger = AuditLogger(InMemoryAuditStorage())
    session = LedgerSession(storage=storage, audit_logger=audit_logger)
    return session, storage
