"""
Storage Services Package

Provides abstract interfaces and concrete implementations for draft and
audit storage: in-memory, and Google Sheets as the persistent backend.
"""

from zzp_assistant.services.storage.interface import (
    AccessDeniedError,
    AuditStorageInterface,
    ConnectionError,
    DraftClosedError,
    DraftLookup,
    DraftStoreInterface,
    NotFoundError,
    StorageError,
)
from zzp_assistant.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDraftStore,
)
from zzp_assistant.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDraftStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DraftLookup",
    "DraftStoreInterface",
    # Exceptions
    "AccessDeniedError",
    "ConnectionError",
    "DraftClosedError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDraftStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDraftStore",
]
