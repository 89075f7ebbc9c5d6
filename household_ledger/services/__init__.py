"""Services package."""

from household_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    HouseholdStorage,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
    create_google_sheets_storage,
    create_in_memory_storage,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "HouseholdStorage",
    "InMemoryAuditStorage",
    "NotFoundError",
    "StorageError",
    "create_google_sheets_storage",
    "create_in_memory_storage",
]
