"""
SQLite Storage Implementation

DESIGN DECISION: A single local SQLite file holds everything:
- admin_profile: the one administrator (id = 1)
- receipts: the append-only receipt ledger
- audit_log: the append-only audit trail

Uniqueness of receipt numbers and immutability of receipt ids are
enforced by the schema (unique index, AUTOINCREMENT primary key), not by
checks in Python. SQLite errors are translated into the typed storage
errors of the interface; nothing is retried here.
"""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import TypeAdapter

from receiptbook.config import get_settings
from receiptbook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from receiptbook.models.records import (
    ADMIN_PROFILE_ID,
    AdminProfile,
    AdminProfileUpdate,
    AuthMethod,
    AuthStatus,
    PasswordSetup,
    PinSetup,
    Receipt,
    ReceiptSortField,
    SetupDetails,
    quantize_amount,
)
from receiptbook.services.auth import hash_secret, verify_secret
from receiptbook.services.storage.connection import (
    ConnectionManager,
    get_connection_manager,
)
from receiptbook.services.storage.interface import (
    AlreadySetUpError,
    AuditStorageInterface,
    DuplicateReceiptNumberError,
    NotSetUpError,
    RecordStoreInterface,
    StorageUnavailableError,
)

logger = structlog.get_logger(__name__)

_SETUP_ADAPTER = TypeAdapter(SetupDetails)

PROFILE_COLUMNS = [
    "name",
    "block_number",
    "signature",
    "society_name",
    "society_address",
    "society_reg_no",
]

RECEIPT_COLUMNS = "id, receipt_number, name, date, maintenance_period, amount"


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate low-level SQLite failures into StorageUnavailableError."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("store_operation_failed", operation=operation, error=str(e))
        raise StorageUnavailableError(f"Failed to {operation}: {e}") from e


class _SQLiteBase:
    """Connection handling shared by the record and audit stores."""

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        if db_path is None:
            db_path = get_settings().store.db_path
        self._manager: ConnectionManager = get_connection_manager(db_path)

    @property
    def db_path(self) -> Path:
        return self._manager.db_path

    async def open(self) -> None:
        self._manager.open()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a write on the shared connection."""
        conn = self._manager.open()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


class SQLiteRecordStore(_SQLiteBase, RecordStoreInterface):
    """
    SQLite implementation of the record store.

    All instances pointing at the same file share one connection.
    """

    # =========================================================================
    # Row conversion
    # =========================================================================

    @staticmethod
    def _row_to_admin(row: sqlite3.Row) -> AdminProfile:
        return AdminProfile(
            id=row["id"],
            auth_method=AuthMethod(row["auth_method"]),
            username=row["username"],
            secret_hash=row["secret_hash"],
            name=row["name"],
            block_number=row["block_number"],
            signature=row["signature"],
            society_name=row["society_name"],
            society_address=row["society_address"],
            society_reg_no=row["society_reg_no"],
        )

    @staticmethod
    def _row_to_receipt(row: sqlite3.Row) -> Receipt:
        return Receipt(
            id=row["id"],
            receipt_number=row["receipt_number"],
            name=row["name"],
            date=date.fromisoformat(row["date"]),
            maintenance_period=row["maintenance_period"],
            amount=row["amount"],
        )

    # =========================================================================
    # Administrator profile
    # =========================================================================

    async def get_auth_status(self) -> AuthStatus:
        admin = await self.get_admin()
        if admin is None:
            return AuthStatus(is_setup=False)
        return AuthStatus(
            is_setup=True,
            auth_method=admin.auth_method,
            username=admin.username,
        )

    async def setup_admin(
        self,
        details: Union[PasswordSetup, PinSetup, dict],
    ) -> AdminProfile:
        """Create the administrator profile with a hashed secret."""
        if isinstance(details, dict):
            details = _SETUP_ADAPTER.validate_python(details)

        if isinstance(details, PasswordSetup):
            profile = AdminProfile(
                auth_method=AuthMethod.PASSWORD,
                username=details.username,
                secret_hash=hash_secret(details.password),
            )
        else:
            profile = AdminProfile(
                auth_method=AuthMethod.PIN,
                secret_hash=hash_secret(details.pin),
            )

        with _storage_errors("set up administrator"):
            with self._transaction() as conn:
                try:
                    conn.execute(
                        """
                        INSERT INTO admin_profile
                            (id, auth_method, username, secret_hash, name,
                             block_number, signature, society_name,
                             society_address, society_reg_no)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            ADMIN_PROFILE_ID,
                            profile.auth_method.value,
                            profile.username,
                            profile.secret_hash,
                            profile.name,
                            profile.block_number,
                            profile.signature,
                            profile.society_name,
                            profile.society_address,
                            profile.society_reg_no,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    raise AlreadySetUpError("Administrator profile already exists") from e

        logger.info("admin_setup_completed", auth_method=profile.auth_method.value)
        return profile

    async def verify_credential(
        self,
        secret: str,
        username: Optional[str] = None,
    ) -> bool:
        try:
            admin = await self.get_admin()
        except StorageUnavailableError as e:
            logger.warning("credential_check_store_unavailable", error=str(e))
            return False

        if admin is None:
            return False
        if admin.auth_method == AuthMethod.PASSWORD and (username or "").strip() != admin.username:
            return False
        return verify_secret(secret, admin.secret_hash)

    async def get_admin(self) -> Optional[AdminProfile]:
        with _storage_errors("read administrator profile"):
            conn = self._manager.open()
            row = conn.execute(
                "SELECT * FROM admin_profile WHERE id = ?",
                (ADMIN_PROFILE_ID,),
            ).fetchone()
        return self._row_to_admin(row) if row else None

    async def update_admin(
        self,
        update: Union[AdminProfileUpdate, dict],
    ) -> AdminProfile:
        """
        Merge profile fields onto the stored profile.

        Identity, sign-in method, username and secret are never touched here.
        """
        if isinstance(update, dict):
            update = AdminProfileUpdate.model_validate(update)
        changes = update.model_dump(exclude_unset=True, exclude_none=True)

        current = await self.get_admin()
        if current is None:
            raise NotSetUpError("Cannot update profile before setup")

        updated = AdminProfile.model_validate({**current.model_dump(), **changes})

        with _storage_errors("update administrator profile"):
            with self._transaction() as conn:
                assignments = ", ".join(f"{column} = ?" for column in PROFILE_COLUMNS)
                conn.execute(
                    f"UPDATE admin_profile SET {assignments} WHERE id = ?",
                    (
                        *(getattr(updated, column) for column in PROFILE_COLUMNS),
                        ADMIN_PROFILE_ID,
                    ),
                )

        logger.info("admin_profile_updated", fields=sorted(changes))
        return updated

    async def update_secret(self, new_secret: str) -> None:
        current = await self.get_admin()
        if current is None:
            raise NotSetUpError("Cannot change the secret before setup")

        secret_hash = hash_secret(new_secret)
        with _storage_errors("update secret"):
            with self._transaction() as conn:
                conn.execute(
                    "UPDATE admin_profile SET secret_hash = ? WHERE id = ?",
                    (secret_hash, ADMIN_PROFILE_ID),
                )
        logger.info("admin_secret_updated", auth_method=current.auth_method.value)

    # =========================================================================
    # Receipts
    # =========================================================================

    async def add_receipt(self, receipt: Receipt) -> Receipt:
        """Append a receipt; the unique index rejects a reused receipt number."""
        if receipt.id is not None:
            raise ValueError(f"Receipt ids are assigned by the store, got id={receipt.id}")

        amount = quantize_amount(receipt.amount)
        values = (
            receipt.receipt_number,
            receipt.name,
            receipt.date.isoformat(),
            receipt.maintenance_period,
            str(amount),
        )

        with _storage_errors("add receipt"):
            with self._transaction() as conn:
                try:
                    cursor = conn.execute(
                        """
                        INSERT INTO receipts
                            (receipt_number, name, date, maintenance_period, amount)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        values,
                    )
                except sqlite3.IntegrityError as e:
                    raise DuplicateReceiptNumberError(receipt.receipt_number) from e
                new_id = cursor.lastrowid

        logger.info(
            "receipt_added",
            id=new_id,
            receipt_number=receipt.receipt_number,
            amount=str(amount),
        )
        return receipt.model_copy(update={"id": new_id, "amount": amount})

    def _select_receipts(self, where: str = "", params: tuple = (), order: str = "id") -> list[Receipt]:
        with _storage_errors("read receipts"):
            conn = self._manager.open()
            rows = conn.execute(
                f"SELECT {RECEIPT_COLUMNS} FROM receipts {where} ORDER BY {order}",
                params,
            ).fetchall()
        return [self._row_to_receipt(row) for row in rows]

    async def list_receipts(
        self,
        order_by: Optional[ReceiptSortField] = None,
        descending: bool = False,
    ) -> list[Receipt]:
        if order_by is None:
            order = "id DESC" if descending else "id"
        else:
            column = ReceiptSortField(order_by).value
            direction = "DESC" if descending else "ASC"
            order = f"{column} {direction}, id {direction}"
        return self._select_receipts(order=order)

    async def get_receipt_by_number(self, receipt_number: str) -> Optional[Receipt]:
        receipts = self._select_receipts(
            "WHERE receipt_number = ?", (receipt_number.strip(),)
        )
        return receipts[0] if receipts else None

    async def find_receipts_by_name(self, name: str) -> list[Receipt]:
        return self._select_receipts("WHERE name = ?", (name.strip(),))

    async def find_receipts_by_date(self, receipt_date: date) -> list[Receipt]:
        return self._select_receipts("WHERE date = ?", (receipt_date.isoformat(),))


class SQLiteAuditStorage(_SQLiteBase, AuditStorageInterface):
    """
    SQLite implementation of audit log storage.

    Audit events are append-only. A failed append is logged and
    reported as False; it never interrupts the action being audited.
    """

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            correlation_id=UUID(row["correlation_id"]) if row["correlation_id"] else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row["details_json"] else {},
            error_message=row["error_message"],
            is_user_action=bool(row["is_user_action"]),
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO audit_log
                        (event_id, timestamp, event_type, severity, entity_type,
                         entity_id, correlation_id, description, details_json,
                         error_message, is_user_action)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    event.to_row(),
                )
            return True
        except (sqlite3.Error, StorageUnavailableError) as e:
            logger.warning(
                "audit_event_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    def _select_events(self, where: str, params: tuple, order: str, limit: int = -1) -> list[AuditEvent]:
        with _storage_errors("read audit events"):
            conn = self._manager.open()
            rows = conn.execute(
                f"SELECT * FROM audit_log {where} ORDER BY {order} LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return self._select_events(
            "WHERE correlation_id = ?", (str(correlation_id),), "timestamp, rowid"
        )

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return self._select_events(
            "WHERE entity_type = ? AND entity_id = ?",
            (entity_type, entity_id),
            "timestamp, rowid",
        )

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return self._select_events("", (), "timestamp DESC, rowid DESC", limit)
