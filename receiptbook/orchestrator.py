"""
Main Orchestrator for ReceiptBook

This module ties together all the components and defines the
end-to-end flows for:
1. Sign-in (first-time setup → login → logout)
2. Profile (load → edit → save, change password / PIN)
3. Receipts (validate → add → audit, list, search)
4. Exports (receipt PDF, ledger PDF / spreadsheet, expense report)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is shown until the session flag is set by a successful login
- No receipt is stored without passing validation
- Every step is audited

The UI only talks to these flows; it never touches the store directly.
"""

import datetime
from collections.abc import MutableMapping
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from receiptbook.audit import AuditLogger, create_correlation_id
from receiptbook.config import Settings, get_settings
from receiptbook.i18n import caption
from receiptbook.models.records import (
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
    ValidationResult,
    format_amount,
)
from receiptbook.services.export import (
    ExportedFile,
    ExportPipeline,
    OpenpyxlSpreadsheetRenderer,
    RenderError,
    ReportLabDocumentRenderer,
)
from receiptbook.services.signature import SignaturePad
from receiptbook.services.storage import (
    AuditStorageInterface,
    DuplicateReceiptNumberError,
    NotSetUpError,
    RecordStoreInterface,
    SQLiteAuditStorage,
    SQLiteRecordStore,
    StorageUnavailableError,
)
from receiptbook.validation import ReceiptValidator


logger = structlog.get_logger(__name__)

SESSION_AUTH_KEY = "is_authenticated"


class ReceiptRejectedError(Exception):
    """A receipt failed validation and was not stored."""

    def __init__(self, result: ValidationResult):
        super().__init__(f"Receipt {result.subject or '(unnumbered)'} failed validation")
        self.result = result


class AuthFlow:
    """
    Orchestrates first-time setup and sign-in.

    The session flag lives in a caller-owned mapping (Streamlit's
    session_state in the app). It is never persisted.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._audit_logger = audit_logger or AuditLogger()

    async def status(self) -> AuthStatus:
        """Whether setup has completed and which sign-in method is active."""
        return await self._store.get_auth_status()

    async def setup(
        self,
        details: Union[PasswordSetup, PinSetup, dict],
        correlation_id: Optional[UUID] = None,
    ) -> AdminProfile:
        """
        Create the administrator.

        Raises:
            AlreadySetUpError: If setup already happened
        """
        correlation_id = correlation_id or create_correlation_id()
        profile = await self._store.setup_admin(details)
        await self._audit_logger.log_admin_setup(
            auth_method=profile.auth_method.value,
            correlation_id=correlation_id,
        )
        return profile

    async def login(
        self,
        secret: str,
        session: MutableMapping,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Check the secret and set the session flag on success.

        A failed attempt clears the flag.
        """
        correlation_id = correlation_id or create_correlation_id()
        status = await self._store.get_auth_status()
        auth_method = status.auth_method.value if status.auth_method else None

        succeeded = await self._store.verify_credential(secret, username=username)
        session[SESSION_AUTH_KEY] = succeeded

        await self._audit_logger.log_login(
            succeeded=succeeded,
            auth_method=auth_method,
            correlation_id=correlation_id,
        )
        return succeeded

    async def logout(
        self,
        session: MutableMapping,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Clear the session flag."""
        was_authenticated = self.is_authenticated(session)
        session.pop(SESSION_AUTH_KEY, None)
        if was_authenticated:
            await self._audit_logger.log_logout(correlation_id=correlation_id)

    @staticmethod
    def is_authenticated(session: MutableMapping) -> bool:
        return bool(session.get(SESSION_AUTH_KEY, False))


class ProfileFlow:
    """Orchestrates profile edits and secret changes."""

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._audit_logger = audit_logger or AuditLogger()

    async def load(self) -> Optional[AdminProfile]:
        return await self._store.get_admin()

    async def save(
        self,
        update: Union[AdminProfileUpdate, dict],
        signature_pad: Optional[SignaturePad] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AdminProfile:
        """
        Save profile fields.

        When a signature pad is given its contents replace the stored
        signature; an empty pad clears it.
        """
        correlation_id = correlation_id or create_correlation_id()
        if isinstance(update, dict):
            update = AdminProfileUpdate.model_validate(update)

        if signature_pad is not None:
            signature = "" if signature_pad.is_empty() else signature_pad.to_image()
            update = AdminProfileUpdate.model_validate(
                {**update.model_dump(exclude_unset=True), "signature": signature}
            )

        profile = await self._store.update_admin(update)
        fields = sorted(update.model_dump(exclude_unset=True, exclude_none=True))
        await self._audit_logger.log_profile_updated(fields, correlation_id=correlation_id)
        return profile

    async def change_secret(
        self,
        current_secret: str,
        new_secret: str,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Replace the password / PIN after re-verifying the current one.

        Returns False (and changes nothing) when the current secret is wrong.

        Raises:
            NotSetUpError: If no administrator exists
            ValueError: If the new secret is not acceptable for the sign-in method
        """
        correlation_id = correlation_id or create_correlation_id()
        status = await self._store.get_auth_status()
        if not status.is_setup:
            raise NotSetUpError("Cannot change the secret before setup")

        if not await self._store.verify_credential(current_secret, username=username):
            await self._audit_logger.log_login(
                succeeded=False,
                auth_method=status.auth_method.value if status.auth_method else None,
                correlation_id=correlation_id,
            )
            return False

        try:
            if status.auth_method == AuthMethod.PIN:
                PinSetup(pin=new_secret)
            else:
                PasswordSetup(username=username or "admin", password=new_secret)
        except ValidationError as e:
            raise ValueError(f"New secret is not valid: {e.errors()[0]['msg']}") from e

        await self._store.update_secret(new_secret)
        await self._audit_logger.log_secret_changed(
            auth_method=status.auth_method.value,
            correlation_id=correlation_id,
        )
        return True


class ReceiptFlow:
    """
    Orchestrates the receipt ledger.

    Flow for a new receipt:
    1. Validate → two-stage validation (schema, then semantic)
    2. Add → append to the store
    3. Audit → record the new receipt (or the rejection)
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        validator: Optional[ReceiptValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._validator = validator or ReceiptValidator(record_store)
        self._audit_logger = audit_logger or AuditLogger()

    async def add(
        self,
        receipt: Union[Receipt, dict],
        correlation_id: Optional[UUID] = None,
    ) -> Receipt:
        """
        Validate and store a receipt.

        Raises:
            ReceiptRejectedError: If validation reports errors
            DuplicateReceiptNumberError: If the number was taken in the meantime
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate(receipt)
        if not result.is_valid:
            await self._audit_logger.log_receipt_rejected(
                receipt_number=result.subject,
                reason="validation",
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise ReceiptRejectedError(result)

        try:
            saved = await self._store.add_receipt(result.receipt)
        except DuplicateReceiptNumberError:
            await self._audit_logger.log_receipt_rejected(
                receipt_number=result.subject,
                reason="duplicate",
                correlation_id=correlation_id,
            )
            raise
        except StorageUnavailableError as e:
            await self._audit_logger.log_error(
                error_type="storage_unavailable",
                error_message=str(e),
                details={"operation": "add_receipt", "receipt_number": result.subject},
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_receipt_added(
            receipt_id=saved.id,
            receipt_number=saved.receipt_number,
            amount=format_amount(saved.amount),
            correlation_id=correlation_id,
        )
        return saved

    async def search(
        self,
        receipt_number: Optional[str] = None,
        name: Optional[str] = None,
        receipt_date: Optional[datetime.date] = None,
    ) -> list[Receipt]:
        """
        Find receipts by exactly one indexed key.

        Raises:
            ValueError: If not exactly one key is given
        """
        given = [key for key in (receipt_number, name, receipt_date) if key]
        if len(given) != 1:
            raise ValueError("Search by exactly one of receipt number, name or date")

        if receipt_number:
            found = await self._store.get_receipt_by_number(receipt_number)
            return [found] if found else []
        if name:
            return await self._store.find_receipts_by_name(name)
        return await self._store.find_receipts_by_date(receipt_date)

    async def list(
        self,
        order_by: Optional[ReceiptSortField] = None,
        descending: bool = False,
    ) -> list[Receipt]:
        return await self._store.list_receipts(order_by=order_by, descending=descending)


class ExportFlow:
    """Audited wrapper around the export pipeline."""

    def __init__(
        self,
        pipeline: ExportPipeline,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._pipeline = pipeline
        self._audit_logger = audit_logger or AuditLogger()

    async def _audited(
        self,
        kind: str,
        record: Optional[str],
        record_count: int,
        render,
        correlation_id: Optional[UUID],
    ) -> ExportedFile:
        correlation_id = correlation_id or create_correlation_id()
        try:
            exported = await render()
        except RenderError as e:
            await self._audit_logger.log_export_failed(
                kind=kind,
                record=e.record or record,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_export_rendered(
            filename=exported.filename,
            record_count=record_count,
            size_bytes=exported.size_bytes,
            correlation_id=correlation_id,
        )
        return exported

    async def single_receipt(
        self,
        receipt: Receipt,
        language: Language,
        correlation_id: Optional[UUID] = None,
    ) -> ExportedFile:
        return await self._audited(
            "receipt",
            receipt.receipt_number,
            1,
            lambda: self._pipeline.render_single_receipt(receipt, language),
            correlation_id,
        )

    async def receipt_batch(
        self,
        receipts: list[Receipt],
        language: Language,
        correlation_id: Optional[UUID] = None,
    ) -> ExportedFile:
        return await self._audited(
            "all_receipts",
            None,
            len(receipts),
            lambda: self._pipeline.render_receipt_batch(receipts, language),
            correlation_id,
        )

    async def receipts_spreadsheet(
        self,
        receipts: list[Receipt],
        language: Language,
        correlation_id: Optional[UUID] = None,
    ) -> ExportedFile:
        return await self._audited(
            "all_receipts",
            None,
            len(receipts),
            lambda: self._pipeline.render_receipts_spreadsheet(receipts, language),
            correlation_id,
        )

    async def expense_report(
        self,
        items: list[ExpenseItem],
        total: Union[Decimal, float, int, str],
        language: Language,
        report_date: Optional[datetime.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExportedFile:
        correlation_id = correlation_id or create_correlation_id()
        return await self._audited(
            "expense_report",
            None,
            len(items),
            lambda: self._pipeline.render_expense_report(
                items, total, language,
                report_date=report_date,
                correlation_id=correlation_id,
            ),
            correlation_id,
        )


class AppComponents:
    """Everything the UI needs, built on one shared store."""

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_storage: AuditStorageInterface,
        audit_logger: AuditLogger,
        auth: AuthFlow,
        profile: ProfileFlow,
        receipts: ReceiptFlow,
        exports: ExportFlow,
    ):
        self.record_store = record_store
        self.audit_storage = audit_storage
        self.audit_logger = audit_logger
        self.auth = auth
        self.profile = profile
        self.receipts = receipts
        self.exports = exports


def create_app_components(
    settings: Optional[Settings] = None,
    db_path: Optional[Union[Path, str]] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to the cached settings)
        db_path: Database file override, mainly for tests

    Returns:
        AppComponents sharing one record store and one audit logger
    """
    settings = settings or get_settings()
    db_path = db_path or settings.store.db_path

    record_store = SQLiteRecordStore(db_path)
    audit_storage = SQLiteAuditStorage(db_path)
    audit_logger = AuditLogger(audit_storage)
    validator = ReceiptValidator(record_store)

    pipeline = ExportPipeline(
        record_store,
        captions=caption,
        document_renderer=ReportLabDocumentRenderer(settings.export),
        spreadsheet_renderer=OpenpyxlSpreadsheetRenderer(),
        validator=validator,
        audit_logger=audit_logger,
    )

    logger.info("app_components_created", db_path=str(db_path))

    return AppComponents(
        record_store=record_store,
        audit_storage=audit_storage,
        audit_logger=audit_logger,
        auth=AuthFlow(record_store, audit_logger),
        profile=ProfileFlow(record_store, audit_logger),
        receipts=ReceiptFlow(record_store, validator, audit_logger),
        exports=ExportFlow(pipeline, audit_logger),
    )
