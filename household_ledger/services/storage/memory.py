"""
In-Memory Storage Implementation

An embedded store keyed by owner id. Every owner gets its own record
holding the expense, receivable, person and category lists plus the
settings. A new owner is seeded with the default people and categories.

When a data_file is configured the whole store is written to it as JSON
after every mutation and read back on construction, which is enough
persistence for a single-user desktop session.

TRADEOFFS:
- Whole-file rewrite on each change (fine for household volumes)
- No locking: one session per file
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel

from household_ledger.models.finance import (
    Category,
    Expense,
    HouseholdSettings,
    Patch,
    Person,
    Receivable,
    SettingsPatch,
    apply_patch,
    default_categories,
)
from household_ledger.models.audit import AuditEvent
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    CategoryRepository,
    DuplicateError,
    ExpenseRepository,
    HouseholdStorage,
    NotFoundError,
    PersonRepository,
    ReceivableRepository,
    SettingsRepository,
    StorageError,
)


COLLECTIONS = {
    "expenses": Expense,
    "receivables": Receivable,
    "people": Person,
    "categories": Category,
}


class InMemoryStore:
    """
    Owner-keyed data shared by the in-memory repositories.

    Layout per owner:
        {"expenses": [...], "receivables": [...], "people": [...],
         "categories": [...], "settings": HouseholdSettings}
    """

    def __init__(self, data_file: Optional[Union[str, Path]] = None):
        self._data_file = Path(data_file) if data_file else None
        self._owners: dict[str, dict] = {}
        if self._data_file is not None and self._data_file.exists():
            self._load()

    def owner(self, owner_id: str) -> dict:
        """Get the owner's record, seeding defaults on first access."""
        if owner_id not in self._owners:
            settings = HouseholdSettings.defaults()
            self._owners[owner_id] = {
                "expenses": [],
                "receivables": [],
                "people": [person.model_copy() for person in settings.people],
                "categories": default_categories(),
                "settings": settings,
            }
        return self._owners[owner_id]

    def commit(self, owner_id: str, key: str, value) -> None:
        """
        Replace one entry of the owner's record and save.

        If the snapshot write fails the previous value is put back, so a
        write reported as failed leaves nothing behind.
        """
        record = self.owner(owner_id)
        previous = record[key]
        record[key] = value
        try:
            self.save()
        except StorageError:
            record[key] = previous
            raise

    def save(self) -> None:
        """Write the snapshot file, if one is configured."""
        if self._data_file is None:
            return
        payload = {}
        for owner_id, record in self._owners.items():
            payload[owner_id] = {
                name: [entity.model_dump(mode="json") for entity in record[name]]
                for name in COLLECTIONS
            }
            payload[owner_id]["settings"] = record["settings"].model_dump(mode="json")
        try:
            self._data_file.parent.mkdir(parents=True, exist_ok=True)
            self._data_file.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise StorageError(f"Failed to write data file {self._data_file}: {e}")

    def _load(self) -> None:
        try:
            payload = json.loads(self._data_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read data file {self._data_file}: {e}")

        for owner_id, raw in payload.items():
            record = {
                name: [model.model_validate(item) for item in raw.get(name, [])]
                for name, model in COLLECTIONS.items()
            }
            record["settings"] = HouseholdSettings.model_validate(raw.get("settings", {}))
            self._owners[owner_id] = record


class _InMemoryEntityRepository:
    """Shared CRUD logic; subclasses pick the collection."""

    collection: str = ""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def _items(self, owner_id: str) -> list:
        return self._store.owner(owner_id)[self.collection]

    async def list(self, owner_id: str):
        # Copies, so callers can't mutate the store behind our back
        return [item.model_copy(deep=True) for item in self._items(owner_id)]

    async def create(self, owner_id: str, entity: BaseModel):
        items = self._items(owner_id)
        if any(item.id == entity.id for item in items):
            raise DuplicateError(f"{self.collection} already contains id {entity.id}")
        self._store.commit(
            owner_id, self.collection, items + [entity.model_copy(deep=True)]
        )
        return entity

    async def update(self, owner_id: str, entity_id: str, patch: Patch) -> None:
        items = self._items(owner_id)
        for idx, item in enumerate(items):
            if item.id == entity_id:
                updated = list(items)
                updated[idx] = apply_patch(item, patch)
                self._store.commit(owner_id, self.collection, updated)
                return
        raise NotFoundError(f"Not found in {self.collection}: {entity_id}")

    async def delete(self, owner_id: str, entity_id: str) -> None:
        items = self._items(owner_id)
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) != len(items):
            self._store.commit(owner_id, self.collection, remaining)


class InMemoryExpenseRepository(_InMemoryEntityRepository, ExpenseRepository):
    collection = "expenses"


class InMemoryReceivableRepository(_InMemoryEntityRepository, ReceivableRepository):
    collection = "receivables"


class InMemoryPersonRepository(_InMemoryEntityRepository, PersonRepository):
    collection = "people"


class InMemoryCategoryRepository(_InMemoryEntityRepository, CategoryRepository):
    collection = "categories"


class InMemorySettingsRepository(SettingsRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, owner_id: str) -> HouseholdSettings:
        return self._store.owner(owner_id)["settings"].model_copy(deep=True)

    async def update(self, owner_id: str, patch: SettingsPatch) -> None:
        current = self._store.owner(owner_id)["settings"]
        self._store.commit(owner_id, "settings", apply_patch(current, patch))


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if owner_id is None or event.owner_id == owner_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


def create_in_memory_storage(
    data_file: Optional[Union[str, Path]] = None,
) -> HouseholdStorage:
    """Build a HouseholdStorage whose repositories share one InMemoryStore."""
    store = InMemoryStore(data_file)
    return HouseholdStorage(
        expenses=InMemoryExpenseRepository(store),
        receivables=InMemoryReceivableRepository(store),
        people=InMemoryPersonRepository(store),
        categories=InMemoryCategoryRepository(store),
        settings=InMemorySettingsRepository(store),
    )
