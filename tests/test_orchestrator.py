"""
Flow tests for LedgerSession against the in-memory store.

Each test drives the async session with asyncio.run; storage failures
are simulated with repository subclasses that raise StorageError.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from household_ledger.audit import AuditLogger
from household_ledger.calculations import CalendarMonth, participant_names
from household_ledger.models.audit import AuditEventType
from household_ledger.models.finance import (
    CategoryKind,
    ExpenseKind,
    ExpensePatch,
    ItemStatus,
)
from household_ledger.models.validation import ExpenseDraft, ReceivableDraft
from household_ledger.orchestrator import (
    GENERIC_FAILURE_MESSAGE,
    ActionFailedError,
    AppState,
    LedgerSession,
    create_app_components,
)
from household_ledger.services.storage import (
    ConnectionError as StorageConnectionError,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
    create_in_memory_storage,
)
from household_ledger.services.storage.memory import (
    InMemoryExpenseRepository,
    InMemorySettingsRepository,
)
from household_ledger.validation import ItemValidator, ValidationError


OWNER = "owner-1"
MARCH = CalendarMonth(year=2024, month=3)


def run(coro):
    return asyncio.run(coro)


def expense_draft(**overrides) -> ExpenseDraft:
    fields = dict(
        description="Aluguel",
        amount="1200.00",
        kind=ExpenseKind.FIXED,
        category="Aluguel",
        due_date=date(2024, 3, 10),
        split_between=["1", "2"],
    )
    fields.update(overrides)
    return ExpenseDraft(**fields)


def receivable_draft(**overrides) -> ReceivableDraft:
    fields = dict(
        description="Freelance",
        amount="500.00",
        category="Salário",
        due_date=date(2024, 3, 20),
        split_between=["1"],
    )
    fields.update(overrides)
    return ReceivableDraft(**fields)


class FailingExpenseRepository(InMemoryExpenseRepository):
    """Reads work, every write fails."""

    async def create(self, owner_id, entity):
        raise StorageError("backend unavailable")

    async def update(self, owner_id, entity_id, patch):
        raise StorageError("backend unavailable")

    async def delete(self, owner_id, entity_id):
        raise StorageError("backend unavailable")


class FailingSettingsRepository(InMemorySettingsRepository):

    async def update(self, owner_id, patch):
        raise StorageError("backend unavailable")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage():
    return create_in_memory_storage()


@pytest.fixture
def session(storage, audit_storage):
    session = LedgerSession(
        storage=storage,
        state=AppState(selected_month=MARCH),
        validator=ItemValidator(max_item_amount=100000),
        audit_logger=AuditLogger(audit_storage),
    )
    run(session.sign_in(OWNER))
    return session


@pytest.fixture
def failing_session(storage, audit_storage):
    """Signed-in session whose expense writes fail."""
    session = LedgerSession(
        storage=storage,
        state=AppState(selected_month=MARCH),
        validator=ItemValidator(max_item_amount=100000),
        audit_logger=AuditLogger(audit_storage),
    )
    run(session.sign_in(OWNER))
    run(session.add_expense(expense_draft()))
    storage.expenses = FailingExpenseRepository(storage.expenses._store)
    return session


def event_types(audit_storage):
    events = run(audit_storage.get_recent_events(owner_id=OWNER, limit=1000))
    return {event.event_type for event in events}


class TestSession:
    """Tests for sign in / sign out."""

    def test_sign_in_loads_seeded_settings(self, session):
        assert session.state.is_authenticated
        assert [p.name for p in session.state.settings.people] == ["Pessoa 1", "Pessoa 2"]
        assert session.state.expenses == []

    def test_sign_in_loads_existing_items(self, storage, session):
        run(session.add_expense(expense_draft()))
        other = LedgerSession(storage=storage, audit_logger=AuditLogger())
        run(other.sign_in(OWNER))
        assert len(other.state.expenses) == 1

    def test_sign_out_clears_state(self, session):
        run(session.add_expense(expense_draft()))
        run(session.sign_out())
        assert not session.state.is_authenticated
        assert session.state.expenses == []

    def test_session_events_audited(self, session, audit_storage):
        run(session.sign_out())
        assert AuditEventType.SESSION_STARTED in event_types(audit_storage)


class TestExpenseFlows:
    """Tests for the expense actions."""

    def test_add_expense(self, session, storage):
        expense = run(session.add_expense(expense_draft()))
        assert expense.status == ItemStatus.PENDING
        assert session.state.expenses == [expense]
        assert run(storage.expenses.list(OWNER)) == [expense]

    def test_empty_split_never_reaches_repository(self, session, storage, audit_storage):
        """An expense without people is rejected before any write."""
        with pytest.raises(ValidationError):
            run(session.add_expense(expense_draft(split_between=[])))
        assert session.state.expenses == []
        assert run(storage.expenses.list(OWNER)) == []
        assert AuditEventType.VALIDATION_FAILED in event_types(audit_storage)

    def test_mark_paid_changes_only_status_and_date(self, session):
        """Marking paid sets status and paid_date; nothing else changes."""
        expense = run(session.add_expense(expense_draft()))
        paid = run(session.mark_expense_paid(expense.id))

        assert paid.status == ItemStatus.PAID
        assert paid.paid_date is not None
        unchanged = {"status", "paid_date"}
        assert paid.model_dump(exclude=unchanged) == expense.model_dump(exclude=unchanged)
        assert session.state.expenses == [paid]

    def test_mark_paid_is_persisted(self, session, storage):
        expense = run(session.add_expense(expense_draft()))
        run(session.mark_expense_paid(expense.id, paid_by="2"))
        stored = run(storage.expenses.list(OWNER))[0]
        assert stored.status == ItemStatus.PAID
        assert stored.paid_by == "2"

    def test_mark_paid_twice_keeps_first_date(self, session):
        expense = run(session.add_expense(expense_draft()))
        first = run(session.mark_expense_paid(expense.id))
        second = run(session.mark_expense_paid(expense.id))
        assert second.paid_date == first.paid_date

    def test_mark_paid_by_unknown_person(self, session):
        expense = run(session.add_expense(expense_draft()))
        with pytest.raises(ValidationError):
            run(session.mark_expense_paid(expense.id, paid_by="ghost"))
        assert session.state.expenses[0].status == ItemStatus.PENDING

    def test_update_expense(self, session, storage):
        expense = run(session.add_expense(expense_draft()))
        updated = run(session.update_expense(expense.id, ExpensePatch(amount=Decimal("1250.00"))))
        assert updated.amount == Decimal("1250.00")
        assert session.state.expenses[0].amount == Decimal("1250.00")
        assert run(storage.expenses.list(OWNER))[0].amount == Decimal("1250.00")

    def test_update_unknown_expense(self, session):
        with pytest.raises(NotFoundError):
            run(session.update_expense("missing", ExpensePatch(description="x")))

    def test_delete_twice(self, session, storage):
        """Deleting the same expense twice is not an error."""
        expense = run(session.add_expense(expense_draft()))
        run(session.delete_expense(expense.id))
        run(session.delete_expense(expense.id))
        assert session.state.expenses == []
        assert run(storage.expenses.list(OWNER)) == []


class TestReceivableFlows:

    def test_add_and_mark_received(self, session, storage):
        receivable = run(session.add_receivable(receivable_draft()))
        received = run(session.mark_receivable_received(receivable.id, received_by="1"))
        assert received.status == ItemStatus.PAID
        assert received.received_date is not None
        assert received.received_by == "1"
        assert run(storage.receivables.list(OWNER))[0].status == ItemStatus.PAID

    def test_delete_receivable(self, session):
        receivable = run(session.add_receivable(receivable_draft()))
        run(session.delete_receivable(receivable.id))
        assert session.state.receivables == []


class TestUnauthenticated:
    """Without an owner id, actions are no-ops."""

    @pytest.fixture
    def anonymous(self, storage):
        return LedgerSession(storage=storage, audit_logger=AuditLogger())

    def test_add_expense_is_noop(self, anonymous, storage):
        assert run(anonymous.add_expense(expense_draft())) is None
        assert anonymous.state.expenses == []

    def test_invalid_input_still_rejected(self, anonymous):
        with pytest.raises(ValidationError):
            run(anonymous.add_expense(expense_draft(amount="abc")))

    def test_other_actions_are_noops(self, anonymous):
        assert run(anonymous.update_expense("x", ExpensePatch(description="y"))) is None
        assert run(anonymous.mark_expense_paid("x")) is None
        assert run(anonymous.delete_expense("x")) is None
        assert run(anonymous.set_monthly_income("100")) is None
        assert run(anonymous.add_person("Ana")) is None


class TestStorageFailures:
    """A failed write leaves in-memory state exactly as it was."""

    def test_failed_create(self, failing_session, audit_storage):
        before = list(failing_session.state.expenses)
        with pytest.raises(ActionFailedError) as exc_info:
            run(failing_session.add_expense(expense_draft(description="Energia")))
        assert str(exc_info.value) == GENERIC_FAILURE_MESSAGE
        assert exc_info.value.operation == "create_expense"
        assert isinstance(exc_info.value.cause, StorageError)
        assert failing_session.state.expenses == before
        assert AuditEventType.STORAGE_FAILED in event_types(audit_storage)

    def test_failed_mark_paid(self, failing_session):
        expense = failing_session.state.expenses[0]
        with pytest.raises(ActionFailedError):
            run(failing_session.mark_expense_paid(expense.id))
        assert failing_session.state.expenses[0].status == ItemStatus.PENDING

    def test_failed_delete(self, failing_session):
        expense = failing_session.state.expenses[0]
        with pytest.raises(ActionFailedError):
            run(failing_session.delete_expense(expense.id))
        assert [e.id for e in failing_session.state.expenses] == [expense.id]

    def test_failed_settings_update(self, session, storage):
        storage.settings = FailingSettingsRepository(storage.settings._store)
        with pytest.raises(ActionFailedError):
            run(session.set_monthly_income("3000"))
        assert session.state.settings.monthly_income == Decimal("0")

    def test_failed_sign_in_keeps_previous_state(self, session, storage):
        run(session.add_expense(expense_draft()))

        class BrokenList(InMemoryExpenseRepository):
            async def list(self, owner_id):
                raise StorageError("down")

        storage.expenses = BrokenList(storage.expenses._store)
        with pytest.raises(ActionFailedError):
            run(session.sign_in("owner-2"))
        assert session.owner_id == OWNER
        assert len(session.state.expenses) == 1

    def test_add_person_second_write_fails(self, session, storage):
        """The person list is written, the settings cache is not."""
        people_before = list(session.state.settings.people)
        storage.settings = FailingSettingsRepository(storage.settings._store)

        with pytest.raises(ActionFailedError) as exc_info:
            run(session.add_person("Ana"))

        assert exc_info.value.operation == "update_settings"
        assert "Ana" in [p.name for p in run(storage.people.list(OWNER))]
        assert "Ana" not in [p.name for p in run(storage.settings.get(OWNER)).people]
        assert session.state.settings.people == people_before

    def test_add_category_second_write_fails(self, session, storage):
        categories_before = list(session.state.settings.expense_categories)
        storage.settings = FailingSettingsRepository(storage.settings._store)

        with pytest.raises(ActionFailedError):
            run(session.add_category("Lazer", CategoryKind.EXPENSE))

        assert "Lazer" in [c.name for c in run(storage.categories.list(OWNER))]
        assert session.state.settings.expense_categories == categories_before

    def test_failed_snapshot_write(self, tmp_path):
        """A save that fails on disk is neither cached nor kept in the store."""
        data_file = tmp_path / "ledger.json"
        storage = create_in_memory_storage(data_file)
        session = LedgerSession(storage=storage, audit_logger=AuditLogger())
        run(session.sign_in(OWNER))
        data_file.mkdir()

        with pytest.raises(ActionFailedError):
            run(session.add_expense(expense_draft()))
        assert session.state.expenses == []
        assert run(storage.expenses.list(OWNER)) == []

        # Retrying once the disk is writable again stores a single expense
        data_file.rmdir()
        run(session.add_expense(expense_draft()))
        assert len(run(storage.expenses.list(OWNER))) == 1
        assert len(session.state.expenses) == 1


class TestSettingsFlows:
    """Tests for income, people and categories."""

    def test_set_monthly_income(self, session, storage):
        run(session.set_monthly_income("3000,00"))
        assert session.state.settings.monthly_income == Decimal("3000.00")
        assert run(storage.settings.get(OWNER)).monthly_income == Decimal("3000.00")

    def test_negative_income_rejected(self, session):
        with pytest.raises(ValidationError):
            run(session.set_monthly_income("-5"))

    def test_add_person(self, session, storage):
        person = run(session.add_person("  Ana  "))
        assert person.name == "Ana"
        assert person in session.state.settings.people
        assert person in run(storage.people.list(OWNER))
        assert person in run(storage.settings.get(OWNER)).people

    def test_new_person_can_join_splits(self, session):
        person = run(session.add_person("Ana"))
        expense = run(session.add_expense(expense_draft(split_between=["1", person.id])))
        assert expense.split_between == ["1", person.id]

    def test_remove_person(self, session):
        run(session.remove_person("2"))
        assert session.state.settings.person_ids == ["1"]

    def test_last_person_cannot_be_removed(self, session):
        run(session.remove_person("2"))
        with pytest.raises(ValidationError, match="at least one person"):
            run(session.remove_person("1"))
        assert session.state.settings.person_ids == ["1"]

    def test_removed_person_stays_on_items(self, session):
        """Items keep ids of removed people; the dashboard still adds up."""
        run(session.add_expense(expense_draft(amount="100.00")))
        run(session.remove_person("2"))
        summary = session.dashboard()
        shares = {s.person_id: s for s in summary.expense_shares}
        assert shares["2"].is_known is False
        assert shares["1"].amount + shares["2"].amount == Decimal("100.00")

    def test_add_and_remove_category(self, session):
        category = run(session.add_category("Lazer", CategoryKind.EXPENSE))
        assert category in session.state.settings.expense_categories
        run(session.remove_category(category.id))
        assert category not in session.state.settings.expense_categories

    def test_income_category(self, session):
        category = run(session.add_category("Bônus", CategoryKind.INCOME))
        assert category in session.state.settings.income_categories
        assert category not in session.state.settings.expense_categories

    def test_settings_changes_audited(self, session, audit_storage):
        run(session.add_person("Ana"))
        run(session.set_monthly_income("100"))
        types = event_types(audit_storage)
        assert AuditEventType.PERSON_ADDED in types
        assert AuditEventType.SETTINGS_UPDATED in types

    def test_added_person_survives_new_session(self, session, storage):
        """The id returned by add_person is the one stored in settings."""
        ana = run(session.add_person("Ana"))
        run(session.add_expense(expense_draft(split_between=["1", ana.id])))

        run(session.sign_out())
        run(session.sign_in(OWNER))

        assert ana in session.state.settings.people
        names = participant_names(session.state.expenses[0], session.state.settings.people)
        assert names == ["Pessoa 1", "Ana"]

        run(session.remove_person(ana.id))
        assert ana.id not in run(storage.settings.get(OWNER)).person_ids
        assert ana not in run(storage.people.list(OWNER))

    def test_added_category_survives_new_session(self, session, storage):
        lazer = run(session.add_category("Lazer", CategoryKind.EXPENSE))

        run(session.sign_out())
        run(session.sign_in(OWNER))

        assert lazer in session.state.settings.expense_categories
        run(session.remove_category(lazer.id))
        stored = run(storage.settings.get(OWNER))
        assert lazer.id not in [c.id for c in stored.expense_categories]


class TestDashboard:
    """Tests for month navigation and the monthly summary."""

    def test_projected_balance(self, session):
        """3000 income + 500 receivable - 1200 expense = 2300."""
        run(session.set_monthly_income("3000.00"))
        run(session.add_receivable(receivable_draft()))
        run(session.add_expense(expense_draft()))
        summary = session.dashboard()
        assert summary.month == MARCH
        assert summary.projected_balance == Decimal("2300.00")

    def test_other_months_excluded(self, session):
        run(session.add_expense(expense_draft(due_date=date(2024, 4, 10))))
        assert session.month_expenses() == []
        assert session.dashboard().expenses.total_count == 0
        session.next_month()
        assert len(session.month_expenses()) == 1

    def test_month_navigation(self, session):
        assert session.previous_month() == CalendarMonth(year=2024, month=2)
        assert session.select_month(date(2023, 12, 25)) == CalendarMonth(year=2023, month=12)
        assert session.next_month() == CalendarMonth(year=2024, month=1)

    def test_month_receivables(self, session):
        run(session.add_receivable(receivable_draft()))
        assert len(session.month_receivables()) == 1


class TestCreateAppComponents:

    def test_memory_backend(self, tmp_path):
        session, storage = create_app_components(
            backend="memory",
            data_file=str(tmp_path / "ledger.json"),
        )
        run(session.sign_in(OWNER))
        run(session.add_expense(expense_draft()))
        assert (tmp_path / "ledger.json").exists()

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        session, storage = create_app_components(backend="google_sheets", data_file=None)
        assert isinstance(storage.expenses, InMemoryExpenseRepository)

    def test_unreachable_spreadsheet_falls_back_to_memory(self, monkeypatch, tmp_path):
        """A configured but unreachable spreadsheet is detected up front."""
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "credentials.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "missing-sheet")

        def unreachable(self):
            raise StorageConnectionError("Spreadsheet not found: missing-sheet")

        monkeypatch.setattr(GoogleSheetsClient, "get_spreadsheet", unreachable)
        with pytest.warns(UserWarning, match="credentials file not found"):
            session, storage = create_app_components(backend="google_sheets", data_file=None)
        assert isinstance(storage.expenses, InMemoryExpenseRepository)
        run(session.sign_in(OWNER))
        run(session.add_expense(expense_draft()))
        assert len(session.state.expenses) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
