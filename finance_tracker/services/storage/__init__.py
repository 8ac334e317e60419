"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend has the
same semantics and backs the test suite.
"""

from finance_tracker.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SchemaMismatchError,
    StorageError,
    TenantDirectoryInterface,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsTenantDirectory,
)
from finance_tracker.services.storage.memory import (
    InMemoryLedgerStorage,
    InMemoryTenantDirectory,
)

__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    "TenantDirectoryInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "SchemaMismatchError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsTenantDirectory",
    # In-memory implementation
    "InMemoryLedgerStorage",
    "InMemoryTenantDirectory",
]
