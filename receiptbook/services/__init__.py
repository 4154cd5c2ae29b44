"""
Services package.

The export package sits above audit and validation and is imported
from receiptbook.services.export directly.
"""

from receiptbook.services.auth import (
    AuthSystemError,
    hash_secret,
    verify_secret,
)
from receiptbook.services.signature import (
    DataUrlSignaturePad,
    SignatureImageError,
    SignaturePad,
    decode_data_url,
    encode_data_url,
)
from receiptbook.services.storage import (
    AlreadySetUpError,
    AuditStorageInterface,
    DuplicateError,
    DuplicateReceiptNumberError,
    NotSetUpError,
    RecordStoreInterface,
    SQLiteAuditStorage,
    SQLiteRecordStore,
    StorageError,
    StorageUnavailableError,
)

__all__ = [
    # Auth
    "AuthSystemError",
    "hash_secret",
    "verify_secret",
    # Signature
    "DataUrlSignaturePad",
    "SignatureImageError",
    "SignaturePad",
    "decode_data_url",
    "encode_data_url",
    # Storage
    "AlreadySetUpError",
    "AuditStorageInterface",
    "DuplicateError",
    "DuplicateReceiptNumberError",
    "NotSetUpError",
    "RecordStoreInterface",
    "SQLiteAuditStorage",
    "SQLiteRecordStore",
    "StorageError",
    "StorageUnavailableError",
]
