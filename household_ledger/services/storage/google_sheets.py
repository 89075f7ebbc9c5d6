"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as the shared/remote backend because:
1. A household can look at its data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Layout: one worksheet per entity type, one row per entity, first column
is the owner id (the "one table per entity with a foreign key to the
user" shape). List-valued fields are JSON-serialized into a cell.

TRADEOFFS:
- Not suitable for high-volume data (fine for a household)
- No transactions (each repository call is one independent write)
- Filtering happens in Python
"""

import json
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError
from gspread.utils import rowcol_to_a1
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import get_settings
from household_ledger.config.settings import GoogleSheetsSettings
from household_ledger.models.finance import (
    Category,
    Expense,
    HouseholdSettings,
    Patch,
    Person,
    Receivable,
    SettingsPatch,
    apply_patch,
)
from household_ledger.services.storage.interface import (
    CategoryRepository,
    ConnectionError,
    DuplicateError,
    ExpenseRepository,
    HouseholdStorage,
    NotFoundError,
    PersonRepository,
    ReceivableRepository,
    SettingsRepository,
    StorageError,
)


logger = structlog.get_logger(__name__)


EXPENSE_COLUMNS = [
    "owner_id",
    "id",
    "description",
    "amount",
    "kind",
    "category",
    "is_essential",
    "due_date",
    "status",
    "paid_date",
    "paid_by",
    "split_between_json",
    "installments_json",
]

RECEIVABLE_COLUMNS = [
    "owner_id",
    "id",
    "description",
    "amount",
    "category",
    "due_date",
    "status",
    "received_date",
    "received_by",
    "split_between_json",
]

PERSON_COLUMNS = ["owner_id", "id", "name"]

CATEGORY_COLUMNS = ["owner_id", "id", "name", "kind"]

SETTINGS_COLUMNS = [
    "owner_id",
    "monthly_income",
    "people_json",
    "expense_categories_json",
    "income_categories_json",
]

# Only transport failures are retried; bad rows and missing ids fail at once
_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ConnectionError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup/creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def _cell(row: list, index: int) -> str:
    """Row value at index, '' for short rows."""
    try:
        return row[index] or ""
    except IndexError:
        return ""


def _optional(value: str) -> Optional[str]:
    return value or None


class _SheetsEntityRepository:
    """
    Shared row-per-entity CRUD logic.

    Subclasses provide the worksheet title, columns and the two
    row converters.
    """

    model: type = BaseModel
    columns: list = []

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _title(self) -> str:
        raise NotImplementedError

    def _to_row(self, owner_id: str, entity) -> list:
        raise NotImplementedError

    def _from_row(self, row: list):
        raise NotImplementedError

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(self._title(), self.columns)

    def _find_row(self, rows: list, owner_id: str, entity_id: str) -> Optional[int]:
        """1-based sheet row index of the entity, header included."""
        for idx, row in enumerate(rows[1:], start=2):
            if _cell(row, 0) == owner_id and _cell(row, 1) == entity_id:
                return idx
        return None

    async def list(self, owner_id: str):
        try:
            rows = self._sheet().get_all_values()[1:]
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on list {self._title()}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to list {self._title()}: {e}")

        entities = []
        for row in rows:
            if _cell(row, 0) != owner_id or not _cell(row, 1):
                continue
            try:
                entities.append(self._from_row(row))
            except ValueError as e:
                logger.warning(
                    "malformed_row_skipped",
                    sheet=self._title(),
                    entity_id=_cell(row, 1),
                    error=str(e),
                )
        return entities

    @_write_retry
    async def create(self, owner_id: str, entity):
        try:
            sheet = self._sheet()
            if self._find_row(sheet.get_all_values(), owner_id, entity.id):
                raise DuplicateError(f"{self._title()} already contains id {entity.id}")
            sheet.append_row(self._to_row(owner_id, entity), value_input_option="RAW")
            return entity
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on save to {self._title()}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to save to {self._title()}: {e}")

    @_write_retry
    async def update(self, owner_id: str, entity_id: str, patch: Patch) -> None:
        try:
            sheet = self._sheet()
            rows = sheet.get_all_values()
            idx = self._find_row(rows, owner_id, entity_id)
            if idx is None:
                raise NotFoundError(f"Not found in {self._title()}: {entity_id}")

            updated = apply_patch(self._from_row(rows[idx - 1]), patch)
            new_row = self._to_row(owner_id, updated)
            sheet.update(
                range_name=f"A{idx}:{rowcol_to_a1(idx, len(new_row))}",
                values=[new_row],
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on update {self._title()}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to update {self._title()}: {e}")

    @_write_retry
    async def delete(self, owner_id: str, entity_id: str) -> None:
        try:
            sheet = self._sheet()
            idx = self._find_row(sheet.get_all_values(), owner_id, entity_id)
            if idx is not None:
                sheet.delete_rows(idx)
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on delete from {self._title()}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to delete from {self._title()}: {e}")


class GoogleSheetsExpenseRepository(_SheetsEntityRepository, ExpenseRepository):
    """Expenses, one row each; split and installments as JSON."""

    columns = EXPENSE_COLUMNS

    def _title(self) -> str:
        return self._client.settings.expenses_sheet_name

    def _to_row(self, owner_id: str, expense: Expense) -> list:
        return [
            owner_id,
            expense.id,
            expense.description,
            str(expense.amount),
            expense.kind.value,
            expense.category,
            str(expense.is_essential),
            expense.due_date.isoformat(),
            expense.status.value,
            expense.paid_date.isoformat() if expense.paid_date else "",
            expense.paid_by or "",
            json.dumps(expense.split_between),
            json.dumps(expense.installments.model_dump() if expense.installments else None),
        ]

    def _from_row(self, row: list) -> Expense:
        installments_json = _cell(row, 12)
        return Expense.model_validate({
            "id": _cell(row, 1),
            "description": _cell(row, 2),
            "amount": _cell(row, 3),
            "kind": _cell(row, 4),
            "category": _cell(row, 5),
            "is_essential": _cell(row, 6).lower() == "true",
            "due_date": _cell(row, 7),
            "status": _cell(row, 8),
            "paid_date": _optional(_cell(row, 9)),
            "paid_by": _optional(_cell(row, 10)),
            "split_between": json.loads(_cell(row, 11) or "[]"),
            "installments": json.loads(installments_json) if installments_json else None,
        })


class GoogleSheetsReceivableRepository(_SheetsEntityRepository, ReceivableRepository):

    columns = RECEIVABLE_COLUMNS

    def _title(self) -> str:
        return self._client.settings.receivables_sheet_name

    def _to_row(self, owner_id: str, receivable: Receivable) -> list:
        return [
            owner_id,
            receivable.id,
            receivable.description,
            str(receivable.amount),
            receivable.category,
            receivable.due_date.isoformat(),
            receivable.status.value,
            receivable.received_date.isoformat() if receivable.received_date else "",
            receivable.received_by or "",
            json.dumps(receivable.split_between),
        ]

    def _from_row(self, row: list) -> Receivable:
        return Receivable.model_validate({
            "id": _cell(row, 1),
            "description": _cell(row, 2),
            "amount": _cell(row, 3),
            "category": _cell(row, 4),
            "due_date": _cell(row, 5),
            "status": _cell(row, 6),
            "received_date": _optional(_cell(row, 7)),
            "received_by": _optional(_cell(row, 8)),
            "split_between": json.loads(_cell(row, 9) or "[]"),
        })


class GoogleSheetsPersonRepository(_SheetsEntityRepository, PersonRepository):

    columns = PERSON_COLUMNS

    def _title(self) -> str:
        return self._client.settings.people_sheet_name

    def _to_row(self, owner_id: str, person: Person) -> list:
        return [owner_id, person.id, person.name]

    def _from_row(self, row: list) -> Person:
        return Person(id=_cell(row, 1), name=_cell(row, 2))


class GoogleSheetsCategoryRepository(_SheetsEntityRepository, CategoryRepository):

    columns = CATEGORY_COLUMNS

    def _title(self) -> str:
        return self._client.settings.categories_sheet_name

    def _to_row(self, owner_id: str, category: Category) -> list:
        return [owner_id, category.id, category.name, category.kind.value]

    def _from_row(self, row: list) -> Category:
        return Category.model_validate({
            "id": _cell(row, 1),
            "name": _cell(row, 2),
            "kind": _cell(row, 3),
        })


class GoogleSheetsSettingsRepository(SettingsRepository):
    """One settings row per owner; defaults until the first update."""

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(
            self._client.settings.settings_sheet_name,
            SETTINGS_COLUMNS,
        )

    def _to_row(self, owner_id: str, settings: HouseholdSettings) -> list:
        dumped = settings.model_dump(mode="json")
        return [
            owner_id,
            str(settings.monthly_income),
            json.dumps(dumped["people"], ensure_ascii=False),
            json.dumps(dumped["expense_categories"], ensure_ascii=False),
            json.dumps(dumped["income_categories"], ensure_ascii=False),
        ]

    def _from_row(self, row: list) -> HouseholdSettings:
        return HouseholdSettings.model_validate({
            "monthly_income": _cell(row, 1) or "0",
            "people": json.loads(_cell(row, 2) or "[]"),
            "expense_categories": json.loads(_cell(row, 3) or "[]"),
            "income_categories": json.loads(_cell(row, 4) or "[]"),
        })

    async def get(self, owner_id: str) -> HouseholdSettings:
        try:
            rows = self._sheet().get_all_values()[1:]
            for row in rows:
                if _cell(row, 0) == owner_id:
                    return self._from_row(row)
            return HouseholdSettings.defaults()
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on get settings: {e}")
        except Exception as e:
            raise StorageError(f"Failed to get settings: {e}")

    @_write_retry
    async def update(self, owner_id: str, patch: SettingsPatch) -> None:
        try:
            sheet = self._sheet()
            rows = sheet.get_all_values()
            for idx, row in enumerate(rows[1:], start=2):
                if _cell(row, 0) == owner_id:
                    updated = apply_patch(self._from_row(row), patch)
                    new_row = self._to_row(owner_id, updated)
                    sheet.update(
                        range_name=f"A{idx}:{rowcol_to_a1(idx, len(new_row))}",
                        values=[new_row],
                        value_input_option="RAW",
                    )
                    return

            updated = apply_patch(HouseholdSettings.defaults(), patch)
            sheet.append_row(self._to_row(owner_id, updated), value_input_option="RAW")
        except StorageError:
            raise
        except APIError as e:
            raise ConnectionError(f"Google Sheets API error on update settings: {e}")
        except Exception as e:
            raise StorageError(f"Failed to update settings: {e}")


def create_google_sheets_storage(
    client: Optional[GoogleSheetsClient] = None,
) -> HouseholdStorage:
    """Build a HouseholdStorage whose repositories share one Sheets client."""
    client = client or GoogleSheetsClient()
    return HouseholdStorage(
        expenses=GoogleSheetsExpenseRepository(client),
        receivables=GoogleSheetsReceivableRepository(client),
        people=GoogleSheetsPersonRepository(client),
        categories=GoogleSheetsCategoryRepository(client),
        settings=GoogleSheetsSettingsRepository(client),
    )
