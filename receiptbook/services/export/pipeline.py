"""
Export Pipeline

Turns receipts and expense items into downloadable files.

DESIGN DECISION: Amounts are quantized to two decimals once, per row,
and every total is the sum of those quantized row values. What the
reader adds up on the page always equals the printed total.

The pipeline reads the administrator profile for the header block,
footer and signature, builds a renderer-neutral layout and hands it to
a DocumentRenderer or SpreadsheetRenderer. Caption text always comes
from the caption lookup.

CRITICAL: An export either returns complete bytes or raises
RenderError naming the failing record. There is no partial output.
"""

import datetime
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from receiptbook.audit import AuditLogger
from receiptbook.i18n import CaptionLookup, caption as default_caption
from receiptbook.models.records import (
    AdminProfile,
    ExpenseItem,
    Language,
    Receipt,
    format_amount,
    quantize_amount,
)
from receiptbook.services.export.interface import (
    DocumentLayout,
    DocumentRenderer,
    SheetLayout,
    SignatureBlock,
    SpreadsheetRenderer,
    TableBlock,
)
from receiptbook.services.export.pdf_renderer import ReportLabDocumentRenderer
from receiptbook.services.export.xlsx_renderer import OpenpyxlSpreadsheetRenderer
from receiptbook.services.signature import SignatureImageError, decode_data_url
from receiptbook.services.storage import RecordStoreInterface
from receiptbook.validation import ReceiptValidator


logger = structlog.get_logger(__name__)

RECEIPT_KIND = "receipt"
ALL_RECEIPTS_KIND = "all_receipts"
EXPENSE_REPORT_KIND = "expense_report"

SPREADSHEET_SHEET_NAME = "Receipts"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.-]+")


class RenderError(Exception):
    """An export could not be produced."""

    def __init__(self, message: str, record: str):
        super().__init__(message)
        self.record = record


class ExportedFile(BaseModel):
    """A finished export, ready to be offered as a download."""

    filename: str
    content: bytes
    media_type: str
    warnings: list[str] = Field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def export_filename(
    kind: str,
    receipt_number: Optional[str] = None,
    ext: str = "pdf",
) -> str:
    """
    Build the download file name for an export.

    Examples:
        export_filename("receipt", "R1") -> "receipt_R1.pdf"
        export_filename("all_receipts", ext="xlsx") -> "all_receipts.xlsx"
    """
    if kind == RECEIPT_KIND:
        if not receipt_number:
            raise ValueError("A single-receipt export needs a receipt number")
        safe_number = _UNSAFE_FILENAME_CHARS.sub("_", receipt_number)
        return f"{RECEIPT_KIND}_{safe_number}.{ext}"
    if kind in (ALL_RECEIPTS_KIND, EXPENSE_REPORT_KIND):
        return f"{kind}.{ext}"
    raise ValueError(f"Unknown export kind: {kind}")


class ExportPipeline:
    """
    Produces receipt PDFs, the receipt ledger (PDF and spreadsheet)
    and expense reports.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        captions: CaptionLookup = default_caption,
        document_renderer: Optional[DocumentRenderer] = None,
        spreadsheet_renderer: Optional[SpreadsheetRenderer] = None,
        validator: Optional[ReceiptValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._caption = captions
        self._document_renderer = document_renderer or ReportLabDocumentRenderer()
        self._spreadsheet_renderer = spreadsheet_renderer or OpenpyxlSpreadsheetRenderer()
        self._validator = validator or ReceiptValidator(record_store)
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # SHARED LAYOUT PIECES
    # =========================================================================

    @staticmethod
    def _header_lines(profile: Optional[AdminProfile]) -> list[str]:
        if profile is None:
            return []
        lines = [profile.society_name, profile.society_address, profile.society_reg_no]
        return [line for line in lines if line]

    def _footer_lines(
        self,
        profile: Optional[AdminProfile],
        language: Language,
    ) -> list[str]:
        second = self._caption("pdf_footer_2", language)
        if profile is not None and profile.name:
            second = f"{second} {profile.name}"
        return [self._caption("pdf_footer_1", language), second]

    def _period(self, receipt: Receipt, language: Language) -> str:
        return receipt.maintenance_period or self._caption("not_applicable", language)

    def _receipt_columns(self, language: Language) -> list[str]:
        return [
            self._caption("receipt_number", language),
            self._caption("recipient_name", language),
            self._caption("date", language),
            self._caption("maintenance_period", language),
            self._caption("amount", language),
        ]

    # =========================================================================
    # LAYOUT BUILDERS
    # =========================================================================

    def build_single_receipt_layout(
        self,
        receipt: Receipt,
        language: Language,
        profile: Optional[AdminProfile] = None,
    ) -> DocumentLayout:
        """
        Layout for one receipt: field/details table, total line, signature.

        Raises:
            SignatureImageError: If the stored signature cannot be decoded
        """
        amount = format_amount(receipt.amount)
        rows = [
            [self._caption("receipt_number", language), receipt.receipt_number],
            [self._caption("recipient_name", language), receipt.name],
            [self._caption("date", language), receipt.date.isoformat()],
            [self._caption("maintenance_period", language), self._period(receipt, language)],
            [self._caption("amount", language), amount],
        ]

        image = None
        if profile is not None and profile.signature:
            image = decode_data_url(profile.signature)

        return DocumentLayout(
            header_lines=self._header_lines(profile),
            title=self._caption("receipt_title", language),
            table=TableBlock(
                header=[self._caption("field", language), self._caption("details", language)],
                rows=rows,
            ),
            total_line=f"{self._caption('total', language)}: {amount}",
            signature=SignatureBlock(
                image=image,
                name=profile.name if profile is not None else "",
                caption=self._caption("authorized_signature", language),
            ),
            footer_lines=self._footer_lines(profile, language),
        )

    def build_receipt_batch_layout(
        self,
        receipts: list[Receipt],
        language: Language,
        profile: Optional[AdminProfile] = None,
    ) -> DocumentLayout:
        """Layout for the receipt ledger: one row per receipt plus a grand total."""
        rows = []
        total = Decimal("0.00")
        for receipt in receipts:
            amount = quantize_amount(receipt.amount)
            total += amount
            rows.append([
                receipt.receipt_number,
                receipt.name,
                receipt.date.isoformat(),
                self._period(receipt, language),
                format_amount(amount),
            ])

        return DocumentLayout(
            header_lines=self._header_lines(profile),
            title=self._caption("receipts_title", language),
            table=TableBlock(
                header=self._receipt_columns(language),
                rows=rows,
                footer=[[self._caption("grand_total", language), "", "", "", format_amount(total)]],
                numeric_columns=[4],
                repeat_header=True,
            ),
            footer_lines=self._footer_lines(profile, language),
        )

    def build_spreadsheet_layout(
        self,
        receipts: list[Receipt],
        language: Language,
    ) -> SheetLayout:
        """Sheet layout: caption header, one row per receipt, one total row."""
        rows = []
        total = Decimal("0.00")
        for receipt in receipts:
            amount = quantize_amount(receipt.amount)
            total += amount
            rows.append([
                receipt.receipt_number,
                receipt.name,
                receipt.date.isoformat(),
                self._period(receipt, language),
                amount,
            ])

        return SheetLayout(
            sheet_name=SPREADSHEET_SHEET_NAME,
            header=self._receipt_columns(language),
            rows=rows,
            total_row=[self._caption("total", language), "", "", "", total],
            amount_columns=[4],
        )

    def build_expense_report_layout(
        self,
        items: list[ExpenseItem],
        total: Union[Decimal, float, int, str],
        language: Language,
        report_date: Optional[datetime.date] = None,
        profile: Optional[AdminProfile] = None,
    ) -> DocumentLayout:
        """Layout for an expense report. The footer shows the supplied total as given."""
        report_date = report_date or datetime.date.today()
        rows = [[item.name, format_amount(item.amount)] for item in items]

        return DocumentLayout(
            header_lines=self._header_lines(profile),
            title=self._caption("expense_report", language),
            subtitle_lines=[f"{self._caption('date', language)}: {report_date.isoformat()}"],
            table=TableBlock(
                header=[self._caption("item_name", language), self._caption("amount", language)],
                rows=rows,
                footer=[[self._caption("grand_total", language), format_amount(total)]],
                numeric_columns=[1],
                repeat_header=True,
            ),
            footer_lines=self._footer_lines(profile, language),
        )

    # =========================================================================
    # RENDERING
    # =========================================================================

    async def _load_profile(self) -> Optional[AdminProfile]:
        return await self._store.get_admin()

    def _fail(self, kind: str, record: str, error: Exception) -> RenderError:
        logger.error(
            "export_render_failed",
            kind=kind,
            record=record,
            error_type=type(error).__name__,
            error=str(error),
        )
        if isinstance(error, SignatureImageError):
            message = f"Could not render {record}: signature image is invalid ({error})"
        elif isinstance(error, InvalidOperation):
            message = f"Could not render {record}: the total is not a finite amount"
        else:
            message = f"Could not render {record}: {error}"
        return RenderError(message, record)

    async def render_single_receipt(
        self,
        receipt: Receipt,
        language: Language,
    ) -> ExportedFile:
        """
        Render one receipt as `receipt_<number>.pdf`.

        Raises:
            RenderError: If the receipt or the stored signature cannot be drawn
        """
        profile = await self._load_profile()
        record = receipt.receipt_number
        try:
            layout = self.build_single_receipt_layout(receipt, language, profile)
            content = self._document_renderer.render(layout)
        except Exception as e:
            raise self._fail(RECEIPT_KIND, record, e) from e

        return ExportedFile(
            filename=export_filename(RECEIPT_KIND, receipt.receipt_number, DocumentRenderer.extension),
            content=content,
            media_type=DocumentRenderer.media_type,
        )

    async def render_receipt_batch(
        self,
        receipts: list[Receipt],
        language: Language,
    ) -> ExportedFile:
        """Render the receipt ledger as `all_receipts.pdf`."""
        profile = await self._load_profile()
        try:
            layout = self.build_receipt_batch_layout(receipts, language, profile)
            content = self._document_renderer.render(layout)
        except Exception as e:
            raise self._fail(ALL_RECEIPTS_KIND, ALL_RECEIPTS_KIND, e) from e

        return ExportedFile(
            filename=export_filename(ALL_RECEIPTS_KIND, ext=DocumentRenderer.extension),
            content=content,
            media_type=DocumentRenderer.media_type,
        )

    async def render_receipts_spreadsheet(
        self,
        receipts: list[Receipt],
        language: Language,
    ) -> ExportedFile:
        """Render the receipt ledger as `all_receipts.xlsx`."""
        try:
            layout = self.build_spreadsheet_layout(receipts, language)
            content = self._spreadsheet_renderer.render(layout)
        except Exception as e:
            raise self._fail(ALL_RECEIPTS_KIND, ALL_RECEIPTS_KIND, e) from e

        return ExportedFile(
            filename=export_filename(ALL_RECEIPTS_KIND, ext=SpreadsheetRenderer.extension),
            content=content,
            media_type=SpreadsheetRenderer.media_type,
        )

    async def render_expense_report(
        self,
        items: list[ExpenseItem],
        total: Union[Decimal, float, int, str],
        language: Language,
        report_date: Optional[datetime.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExportedFile:
        """
        Render `expense_report.pdf`.

        The supplied total is printed unchanged. When it differs from
        the sum of the items the mismatch is flagged in the returned
        warnings, logged and audited.

        Raises:
            RenderError: If the total is not a finite amount, or drawing fails
        """
        try:
            quantize_amount(total)
        except (InvalidOperation, ValueError, TypeError) as e:
            raise self._fail(EXPENSE_REPORT_KIND, EXPENSE_REPORT_KIND, e) from e

        issues = self._validator.check_expense_total(items, total)
        warnings = [issue.message for issue in issues]
        if issues:
            items_total = sum((quantize_amount(item.amount) for item in items), Decimal("0.00"))
            logger.warning(
                "expense_total_mismatch",
                supplied_total=format_amount(total),
                items_total=format_amount(items_total),
                item_count=len(items),
            )
            await self._audit.log_expense_total_mismatch(
                supplied_total=format_amount(total),
                items_total=format_amount(items_total),
                correlation_id=correlation_id,
            )

        profile = await self._load_profile()
        try:
            layout = self.build_expense_report_layout(
                items, total, language, report_date=report_date, profile=profile,
            )
            content = self._document_renderer.render(layout)
        except Exception as e:
            raise self._fail(EXPENSE_REPORT_KIND, EXPENSE_REPORT_KIND, e) from e

        return ExportedFile(
            filename=export_filename(EXPENSE_REPORT_KIND, ext=DocumentRenderer.extension),
            content=content,
            media_type=DocumentRenderer.media_type,
            warnings=warnings,
        )
