"""
Storage Services Package

Provides the repository interfaces and two implementations: an embedded
in-memory store (optionally snapshotted to JSON) and Google Sheets.
"""

from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    CategoryRepository,
    ConnectionError,
    DuplicateError,
    EntityRepository,
    ExpenseRepository,
    HouseholdStorage,
    NotFoundError,
    PersonRepository,
    ReceivableRepository,
    RepositoryError,
    SettingsRepository,
    StorageError,
)
from household_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStore,
    create_in_memory_storage,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    create_google_sheets_storage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryRepository",
    "EntityRepository",
    "ExpenseRepository",
    "HouseholdStorage",
    "PersonRepository",
    "ReceivableRepository",
    "SettingsRepository",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "RepositoryError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStore",
    "create_in_memory_storage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "create_google_sheets_storage",
]
