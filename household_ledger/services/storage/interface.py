"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the in-memory store for Google Sheets (or a real database)
2. Keep the aggregation and session logic decoupled from storage
3. Use in-memory storage for testing

The interface is intentionally simple - one CRUD repository per entity,
every call scoped by an opaque owner id. There are no transactions
across repositories: callers must not assume two writes stay consistent
after a partial failure.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from household_ledger.models.finance import (
    Category,
    CategoryPatch,
    Expense,
    ExpensePatch,
    HouseholdSettings,
    Patch,
    Person,
    PersonPatch,
    Receivable,
    ReceivablePatch,
    SettingsPatch,
)
from household_ledger.models.audit import AuditEvent


EntityT = TypeVar("EntityT", bound=BaseModel)
PatchT = TypeVar("PatchT", bound=Patch)


class EntityRepository(ABC, Generic[EntityT, PatchT]):
    """
    CRUD contract for one entity type.

    Implementations exist for Expense, Receivable, Person and Category.
    """

    @abstractmethod
    async def list(self, owner_id: str) -> list[EntityT]:
        """
        List the owner's entities in insertion order.

        Raises:
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def create(self, owner_id: str, entity: EntityT) -> EntityT:
        """
        Store a new entity.

        The entity's id is kept; models generate one when none is given.

        Returns:
            The stored entity

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update(self, owner_id: str, entity_id: str, patch: PatchT) -> None:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If the entity doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete(self, owner_id: str, entity_id: str) -> None:
        """
        Delete an entity by id.

        Idempotent: deleting an id that doesn't exist is a no-op.

        Raises:
            StorageError: If delete fails
        """
        pass


class ExpenseRepository(EntityRepository[Expense, ExpensePatch]):
    pass


class ReceivableRepository(EntityRepository[Receivable, ReceivablePatch]):
    pass


class PersonRepository(EntityRepository[Person, PersonPatch]):
    pass


class CategoryRepository(EntityRepository[Category, CategoryPatch]):
    pass


class SettingsRepository(ABC):
    """
    Settings are a single record per owner.

    get() returns the defaults for an owner that has never saved any.
    """

    @abstractmethod
    async def get(self, owner_id: str) -> HouseholdSettings:
        pass

    @abstractmethod
    async def update(self, owner_id: str, patch: SettingsPatch) -> None:
        pass


class HouseholdStorage:
    """Bundle of the five repositories a session needs."""

    def __init__(
        self,
        expenses: ExpenseRepository,
        receivables: ReceivableRepository,
        people: PersonRepository,
        categories: CategoryRepository,
        settings: SettingsRepository,
    ):
        self.expenses = expenses
        self.receivables = receivables
        self.people = people
        self.categories = categories
        self.settings = settings


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


RepositoryError = StorageError


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert an entity whose id already exists."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
