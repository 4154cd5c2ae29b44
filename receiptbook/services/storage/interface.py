"""
Abstract Storage Interface

DESIGN DECISION: Business logic talks to these interfaces, never to a
database handle. The SQLite implementation owns the connection; exports,
flows and tests only see the operations below.

The interface is intentionally small - one profile, an append-only
receipt ledger, and an append-only audit log.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, Union
from uuid import UUID

from receiptbook.models.audit import AuditEvent
from receiptbook.models.records import (
    AdminProfile,
    AdminProfileUpdate,
    AuthStatus,
    PasswordSetup,
    PinSetup,
    Receipt,
    ReceiptSortField,
)


class RecordStoreInterface(ABC):
    """
    Abstract interface for the administrator profile and the receipt ledger.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def open(self) -> None:
        """
        Open the store, creating or migrating the schema on first use.

        Idempotent: later calls re-use the same connection.

        Raises:
            StorageUnavailableError: If the database cannot be opened
        """
        pass

    # -------------------------------------------------------------------------
    # Administrator profile
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_auth_status(self) -> AuthStatus:
        """Report whether setup has completed and which sign-in method is active."""
        pass

    @abstractmethod
    async def setup_admin(
        self,
        details: Union[PasswordSetup, PinSetup, dict],
    ) -> AdminProfile:
        """
        Create the administrator profile.

        Args:
            details: Sign-in method and secret chosen at first-time setup

        Returns:
            The stored profile

        Raises:
            AlreadySetUpError: If a profile already exists
            AuthSystemError: If the secret cannot be hashed
        """
        pass

    @abstractmethod
    async def verify_credential(
        self,
        secret: str,
        username: Optional[str] = None,
    ) -> bool:
        """
        Check a sign-in attempt.

        For password sign-in the username must match as well; for PIN
        sign-in it is ignored. Returns False when not set up.
        """
        pass

    @abstractmethod
    async def get_admin(self) -> Optional[AdminProfile]:
        """Return the administrator profile, or None before setup."""
        pass

    @abstractmethod
    async def update_admin(
        self,
        update: Union[AdminProfileUpdate, dict],
    ) -> AdminProfile:
        """
        Merge profile fields onto the stored profile.

        Args:
            update: Only the fields to change

        Returns:
            The updated profile

        Raises:
            NotSetUpError: If no profile exists yet
        """
        pass

    @abstractmethod
    async def update_secret(self, new_secret: str) -> None:
        """
        Replace the stored secret digest.

        Raises:
            NotSetUpError: If no profile exists yet
        """
        pass

    # -------------------------------------------------------------------------
    # Receipts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_receipt(self, receipt: Receipt) -> Receipt:
        """
        Append a receipt to the ledger.

        Args:
            receipt: The receipt, without an `id`; the store assigns one

        Returns:
            The stored receipt with its identity

        Raises:
            ValueError: If the receipt already carries an `id`
            DuplicateReceiptNumberError: If the receipt number is taken
            StorageUnavailableError: If the write fails
        """
        pass

    @abstractmethod
    async def list_receipts(
        self,
        order_by: Optional[ReceiptSortField] = None,
        descending: bool = False,
    ) -> list[Receipt]:
        """
        List all receipts.

        Args:
            order_by: Indexed field to sort by; insertion order when None
            descending: Reverse the sort

        Returns:
            List of receipts
        """
        pass

    @abstractmethod
    async def get_receipt_by_number(self, receipt_number: str) -> Optional[Receipt]:
        """Look up a receipt by its unique number."""
        pass

    @abstractmethod
    async def find_receipts_by_name(self, name: str) -> list[Receipt]:
        """All receipts issued to `name` (exact match), in insertion order."""
        pass

    @abstractmethod
    async def find_receipts_by_date(self, receipt_date: date) -> list[Receipt]:
        """All receipts dated `receipt_date`, in insertion order."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one UI action).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'receipt', 'export')
            entity_id: The entity's identity

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailableError(StorageError):
    """The database could not be opened, read or written."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicateReceiptNumberError(DuplicateError):
    """A receipt with this receipt number already exists."""

    def __init__(self, receipt_number: str):
        self.receipt_number = receipt_number
        super().__init__(f"Receipt number already exists: {receipt_number}")


class NotSetUpError(StorageError):
    """The administrator profile has not been created yet."""
    pass


class AlreadySetUpError(StorageError):
    """Setup was attempted but an administrator profile already exists."""
    pass
