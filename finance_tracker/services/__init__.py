"""Services package."""

from finance_tracker.services.auth import GoogleOAuthClient, RefreshedToken
from finance_tracker.services.storage import (
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsTenantDirectory,
    InMemoryLedgerStorage,
    InMemoryTenantDirectory,
    LedgerStorageInterface,
    NotFoundError,
    SchemaMismatchError,
    StorageError,
    TenantDirectoryInterface,
)

__all__ = [
    # Identity
    "GoogleOAuthClient",
    "RefreshedToken",
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsTenantDirectory",
    "InMemoryLedgerStorage",
    "InMemoryTenantDirectory",
    "LedgerStorageInterface",
    "NotFoundError",
    "SchemaMismatchError",
    "StorageError",
    "TenantDirectoryInterface",
]
