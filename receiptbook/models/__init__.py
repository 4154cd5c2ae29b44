"""
Data Models Package

This package contains all Pydantic models used in ReceiptBook.
All data flowing through the system must conform to these schemas.
"""

from receiptbook.models.records import (
    ADMIN_PROFILE_ID,
    AdminProfile,
    AdminProfileUpdate,
    AuthMethod,
    AuthStatus,
    ExpenseItem,
    Language,
    PasswordSetup,
    PinSetup,
    Receipt,
    ReceiptSortField,
    SetupDetails,
    ValidationIssue,
    ValidationResult,
    format_amount,
    quantize_amount,
)
from receiptbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "ADMIN_PROFILE_ID",
    "AdminProfile",
    "AdminProfileUpdate",
    "AuthMethod",
    "AuthStatus",
    "ExpenseItem",
    "Language",
    "PasswordSetup",
    "PinSetup",
    "Receipt",
    "ReceiptSortField",
    "SetupDetails",
    "ValidationIssue",
    "ValidationResult",
    "format_amount",
    "quantize_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
