"""
Audit Models for ReceiptBook

Every significant action in the system is logged for audit purposes:
sign-in attempts, profile changes, new receipts and exports.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Authentication
    ADMIN_SETUP_COMPLETED = "admin_setup_completed"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"
    SECRET_CHANGED = "secret_changed"

    # Profile
    PROFILE_UPDATED = "profile_updated"

    # Receipts
    RECEIPT_ADDED = "receipt_added"
    RECEIPT_REJECTED = "receipt_rejected"

    # Exports
    EXPORT_RENDERED = "export_rendered"
    EXPORT_FAILED = "export_failed"
    EXPENSE_TOTAL_MISMATCH = "expense_total_mismatch"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'receipt', 'admin', 'export')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identity of the entity (receipt number, file name, ...)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one UI action)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> tuple:
        """
        Convert to a row for the `audit_log` table.

        Columns in order:
        (event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action)
        """
        return (
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type,
            self.entity_id,
            str(self.correlation_id) if self.correlation_id else None,
            self.description,
            json.dumps(self.details, default=str) if self.details else None,
            self.error_message,
            int(self.is_user_action),
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.receipt_added(receipt_id, receipt_number, amount, correlation_id)
        event = AuditEventBuilder.login_failed("pin", correlation_id)
    """

    @staticmethod
    def admin_setup_completed(
        auth_method: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADMIN_SETUP_COMPLETED,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description=f"Administrator set up with {auth_method} sign-in",
            details={"auth_method": auth_method},
            is_user_action=True,
        )

    @staticmethod
    def login_succeeded(
        auth_method: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description="Administrator signed in",
            details={"auth_method": auth_method},
            is_user_action=True,
        )

    @staticmethod
    def login_failed(
        auth_method: Optional[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description="Sign-in rejected: invalid credentials",
            details={"auth_method": auth_method},
            is_user_action=True,
        )

    @staticmethod
    def logged_out(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGGED_OUT,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description="Administrator signed out",
            is_user_action=True,
        )

    @staticmethod
    def secret_changed(
        auth_method: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SECRET_CHANGED,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description=f"Administrator {auth_method} changed",
            details={"auth_method": auth_method},
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="admin",
            entity_id="1",
            correlation_id=correlation_id,
            description=f"Profile updated: {', '.join(fields) or 'no changes'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def receipt_added(
        receipt_id: int,
        receipt_number: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_ADDED,
            entity_type="receipt",
            entity_id=receipt_number,
            correlation_id=correlation_id,
            description=f"Receipt {receipt_number} saved: {amount}",
            details={
                "id": receipt_id,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_rejected(
        receipt_number: str,
        reason: str,
        issues: Optional[list[dict]] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            entity_id=receipt_number,
            correlation_id=correlation_id,
            description=f"Receipt {receipt_number} not saved: {reason}",
            details={"reason": reason, "issues": issues or []},
        )

    @staticmethod
    def export_rendered(
        filename: str,
        record_count: int,
        size_bytes: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_RENDERED,
            entity_type="export",
            entity_id=filename,
            correlation_id=correlation_id,
            description=f"Export rendered: {filename} ({record_count} records)",
            details={
                "record_count": record_count,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def export_failed(
        kind: str,
        record: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="export",
            entity_id=record or kind,
            correlation_id=correlation_id,
            description=f"Export failed: {kind}",
            error_message=error_message,
            details={"kind": kind, "record": record},
        )

    @staticmethod
    def expense_total_mismatch(
        supplied_total: str,
        items_total: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_TOTAL_MISMATCH,
            severity=AuditSeverity.WARNING,
            entity_type="export",
            entity_id="expense_report",
            correlation_id=correlation_id,
            description=(
                f"Expense report total {supplied_total} differs from "
                f"sum of items {items_total}"
            ),
            details={
                "supplied_total": supplied_total,
                "items_total": items_total,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
