"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged:
sign-in attempts, profile edits, new receipts and exports.

The audit logger:
- Is async like the rest of the service layer
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from receiptbook.models.audit import AuditEvent, AuditEventBuilder
from receiptbook.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The store's audit table (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_admin_setup(
        self,
        auth_method: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log first-time setup."""
        await self.log(AuditEventBuilder.admin_setup_completed(auth_method, correlation_id))

    async def log_login(
        self,
        succeeded: bool,
        auth_method: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a sign-in attempt."""
        if succeeded:
            event = AuditEventBuilder.login_succeeded(auth_method or "", correlation_id)
        else:
            event = AuditEventBuilder.login_failed(auth_method, correlation_id)
        await self.log(event)

    async def log_logout(self, correlation_id: Optional[UUID] = None) -> None:
        """Log sign-out."""
        await self.log(AuditEventBuilder.logged_out(correlation_id))

    async def log_secret_changed(
        self,
        auth_method: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a password / PIN change."""
        await self.log(AuditEventBuilder.secret_changed(auth_method, correlation_id))

    async def log_profile_updated(
        self,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a profile edit."""
        await self.log(AuditEventBuilder.profile_updated(fields, correlation_id))

    async def log_receipt_added(
        self,
        receipt_id: int,
        receipt_number: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new receipt."""
        event = AuditEventBuilder.receipt_added(
            receipt_id=receipt_id,
            receipt_number=receipt_number,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_rejected(
        self,
        receipt_number: str,
        reason: str,
        issues: Optional[list[dict]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a receipt that was not saved."""
        event = AuditEventBuilder.receipt_rejected(
            receipt_number=receipt_number,
            reason=reason,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_export_rendered(
        self,
        filename: str,
        record_count: int,
        size_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed export."""
        event = AuditEventBuilder.export_rendered(
            filename=filename,
            record_count=record_count,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_export_failed(
        self,
        kind: str,
        record: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an export that produced no file."""
        event = AuditEventBuilder.export_failed(
            kind=kind,
            record=record,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_total_mismatch(
        self,
        supplied_total: str,
        items_total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense report whose supplied total differs from its items."""
        event = AuditEventBuilder.expense_total_mismatch(
            supplied_total=supplied_total,
            items_total=items_total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., an export).
    Pass it through all subsequent operations.
    """
    return uuid4()
