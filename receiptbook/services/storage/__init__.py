"""
Storage Services Package

Provides the abstract storage interfaces and the local SQLite implementation.
All access to persisted records goes through these classes.
"""

from receiptbook.services.storage.interface import (
    AlreadySetUpError,
    AuditStorageInterface,
    DuplicateError,
    DuplicateReceiptNumberError,
    NotSetUpError,
    RecordStoreInterface,
    StorageError,
    StorageUnavailableError,
)
from receiptbook.services.storage.connection import (
    ConnectionManager,
    get_connection_manager,
)
from receiptbook.services.storage.sqlite_store import (
    SQLiteAuditStorage,
    SQLiteRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    # Exceptions
    "AlreadySetUpError",
    "DuplicateError",
    "DuplicateReceiptNumberError",
    "NotSetUpError",
    "StorageError",
    "StorageUnavailableError",
    # SQLite implementation
    "ConnectionManager",
    "SQLiteAuditStorage",
    "SQLiteRecordStore",
    "get_connection_manager",
]
