"""
Tests for the export pipeline and the ReportLab / openpyxl renderers.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from receiptbook.audit import AuditLogger
from receiptbook.models.records import ExpenseItem, Language, PinSetup, Receipt
from receiptbook.services.storage import get_connection_manager
from receiptbook.services.export import (
    DocumentRenderer,
    ExportPipeline,
    RenderError,
    ReportLabDocumentRenderer,
    export_filename,
)


class RecordingRenderer(DocumentRenderer):
    """Keeps the layouts it was asked to draw."""

    def __init__(self):
        self.layouts = []

    def render(self, layout):
        self.layouts.append(layout)
        return b"%PDF-recorded"


class BrokenRenderer(DocumentRenderer):
    def render(self, layout):
        raise RuntimeError("out of paper")


def receipt(number: str, amount: str, **kwargs) -> Receipt:
    return Receipt(
        receipt_number=number,
        name=kwargs.pop("name", "Ramesh Patel"),
        date=kwargs.pop("date", date(2024, 3, 1)),
        amount=Decimal(amount),
        **kwargs,
    )


@pytest.fixture
def receipts():
    return [
        receipt("R1", "100.00", maintenance_period="Jan-Mar 2024"),
        receipt("R2", "50.50", name="Bhavna Shah"),
    ]


@pytest.fixture
def profile_store(store, run_async, signature_data_url):
    run_async(store.setup_admin(PinSetup(pin="1234")))
    run_async(store.update_admin({
        "name": "Ramesh Patel",
        "signature": signature_data_url,
        "society_name": "Shanti Nagar CHS",
        "society_reg_no": "GUJ/1234",
    }))
    return store


class TestFilenames:
    """Tests for export_filename."""

    def test_names(self):
        assert export_filename("receipt", "R1") == "receipt_R1.pdf"
        assert export_filename("all_receipts") == "all_receipts.pdf"
        assert export_filename("all_receipts", ext="xlsx") == "all_receipts.xlsx"
        assert export_filename("expense_report") == "expense_report.pdf"

    def test_unsafe_characters_replaced(self):
        assert export_filename("receipt", "2024/R 1") == "receipt_2024_R_1.pdf"

    def test_invalid_requests(self):
        with pytest.raises(ValueError):
            export_filename("receipt")
        with pytest.raises(ValueError):
            export_filename("invoice", "R1")


class TestLayouts:
    """Layouts built by the pipeline, without drawing anything."""

    def test_batch_total_is_sum_of_rows(self, store, receipts):
        pipeline = ExportPipeline(store)
        layout = pipeline.build_receipt_batch_layout(receipts, Language.ENGLISH)

        assert layout.table.rows[0] == ["R1", "Ramesh Patel", "2024-03-01", "Jan-Mar 2024", "100.00"]
        assert layout.table.rows[1][3] == "N/A"
        assert layout.table.footer == [["Grand Total", "", "", "", "150.50"]]
        assert sum(Decimal(row[4]) for row in layout.table.rows) == Decimal("150.50")
        assert layout.table.repeat_header is True

    def test_batch_empty(self, store):
        layout = ExportPipeline(store).build_receipt_batch_layout([], Language.ENGLISH)
        assert layout.table.rows == []
        assert layout.table.footer[0][-1] == "0.00"

    def test_gujarati_captions(self, store, receipts):
        layout = ExportPipeline(store).build_receipt_batch_layout(receipts, Language.GUJARATI)
        assert layout.table.header[0] == "રસીદ નંબર"
        assert layout.table.rows[1][3] == "લાગુ નથી"

    def test_single_receipt_without_profile(self, store, receipts):
        layout = ExportPipeline(store).build_single_receipt_layout(receipts[1], Language.ENGLISH)

        assert layout.header_lines == []
        assert layout.table.rows[3] == ["Maintenance Period", "N/A"]
        assert layout.total_line == "Total: 50.50"
        assert layout.signature.image is None
        assert layout.signature.caption == "Authorized Signature"
        assert layout.footer_lines == ["This is a computer generated receipt.", "Issued by:"]

    def test_single_receipt_with_profile(self, profile_store, receipts, png_bytes, run_async):
        profile = run_async(profile_store.get_admin())
        layout = ExportPipeline(profile_store).build_single_receipt_layout(
            receipts[0], Language.ENGLISH, profile,
        )

        assert layout.header_lines == ["Shanti Nagar CHS", "GUJ/1234"]
        assert layout.signature.image == png_bytes
        assert layout.signature.name == "Ramesh Patel"
        assert layout.footer_lines[1] == "Issued by: Ramesh Patel"

    def test_spreadsheet_layout(self, store, receipts):
        layout = ExportPipeline(store).build_spreadsheet_layout(receipts, Language.ENGLISH)
        assert layout.sheet_name == "Receipts"
        assert layout.rows[1][4] == Decimal("50.50")
        assert layout.total_row == ["Total", "", "", "", Decimal("150.50")]

    def test_expense_layout_keeps_supplied_total(self, store):
        items = [ExpenseItem(name="Cleaning", amount="250.00")]
        layout = ExportPipeline(store).build_expense_report_layout(
            items, "300", Language.ENGLISH, report_date=date(2024, 4, 1),
        )
        assert layout.title == "Expense Report"
        assert layout.subtitle_lines == ["Date: 2024-04-01"]
        assert layout.table.rows == [["Cleaning", "250.00"]]
        assert layout.table.footer == [["Grand Total", "300.00"]]


class TestRendering:
    """Rendering through the pipeline."""

    def test_single_receipt_pdf(self, profile_store, receipts, run_async):
        exported = run_async(
            ExportPipeline(profile_store).render_single_receipt(receipts[0], Language.ENGLISH)
        )
        assert exported.filename == "receipt_R1.pdf"
        assert exported.media_type == "application/pdf"
        assert exported.content.startswith(b"%PDF")
        assert exported.size_bytes == len(exported.content)

    def test_batch_pdf_many_pages(self, store, run_async):
        many = [receipt(f"R{i}", "10.00") for i in range(1, 120)]
        exported = run_async(ExportPipeline(store).render_receipt_batch(many, Language.ENGLISH))
        assert exported.filename == "all_receipts.pdf"
        assert exported.content.startswith(b"%PDF")

    def test_gujarati_pdf_renders(self, store, receipts, run_async):
        """Without a configured Unicode font the built-in font is used."""
        exported = run_async(
            ExportPipeline(store).render_receipt_batch(receipts, Language.GUJARATI)
        )
        assert exported.content.startswith(b"%PDF")

    def test_spreadsheet(self, store, receipts, run_async):
        exported = run_async(
            ExportPipeline(store).render_receipts_spreadsheet(receipts, Language.ENGLISH)
        )
        assert exported.filename == "all_receipts.xlsx"

        workbook = load_workbook(BytesIO(exported.content))
        sheet = workbook["Receipts"]
        assert [cell.value for cell in sheet[1]] == [
            "Receipt No.", "Recipient Name", "Date", "Maintenance Period", "Amount",
        ]
        assert sheet["A2"].value == "R1"
        assert sheet["E3"].value == pytest.approx(50.5)
        assert sheet["E3"].number_format == "0.00"
        assert sheet["A4"].value == "Total"
        assert sheet["A4"].font.bold
        assert sheet["E4"].value == pytest.approx(150.5)

    def test_expense_report_mismatch(self, store, audit_storage, run_async):
        recorder = RecordingRenderer()
        pipeline = ExportPipeline(
            store,
            document_renderer=recorder,
            audit_logger=AuditLogger(audit_storage),
        )
        items = [
            ExpenseItem(name="Cleaning", amount="250.00"),
            ExpenseItem(name="Electricity", amount="1200.50"),
        ]

        exported = run_async(pipeline.render_expense_report(items, "1500", Language.ENGLISH))

        assert exported.filename == "expense_report.pdf"
        assert len(exported.warnings) == 1
        assert recorder.layouts[0].table.footer == [["Grand Total", "1500.00"]]

        events = run_async(audit_storage.get_events_by_entity("export", "expense_report"))
        assert len(events) == 1
        assert events[0].details == {"supplied_total": "1500.00", "items_total": "1450.50"}

    def test_expense_report_matching_total(self, store, audit_storage, run_async):
        pipeline = ExportPipeline(store, audit_logger=AuditLogger(audit_storage))
        items = [ExpenseItem(name="Cleaning", amount="250.00")]

        exported = run_async(pipeline.render_expense_report(items, "250.00", Language.ENGLISH))

        assert exported.warnings == []
        assert exported.content.startswith(b"%PDF")
        assert run_async(audit_storage.get_events_by_entity("export", "expense_report")) == []


class TestRenderFailures:
    """Failures name the record and never return partial output."""

    def test_bad_signature_names_receipt(self, store, db_path, receipts, run_async):
        run_async(store.setup_admin(PinSetup(pin="1234")))
        conn = get_connection_manager(db_path).open()
        conn.execute("UPDATE admin_profile SET signature = ?", ("data:image/png;base64,!!!",))
        conn.commit()

        with pytest.raises(RenderError) as exc_info:
            run_async(ExportPipeline(store).render_single_receipt(receipts[0], Language.ENGLISH))
        assert exc_info.value.record == "R1"
        assert "signature" in str(exc_info.value)

    def test_renderer_failure(self, store, receipts, run_async):
        pipeline = ExportPipeline(store, document_renderer=BrokenRenderer())
        with pytest.raises(RenderError) as exc_info:
            run_async(pipeline.render_receipt_batch(receipts, Language.ENGLISH))
        assert exc_info.value.record == "all_receipts"

    def test_renderer_used_directly(self, store, receipts):
        layout = ExportPipeline(store).build_receipt_batch_layout(receipts, Language.ENGLISH)
        assert ReportLabDocumentRenderer().render(layout).startswith(b"%PDF")

    @pytest.mark.parametrize("total", [Decimal("NaN"), Decimal("Infinity"), float("nan"), "abc"])
    def test_expense_total_not_an_amount(self, store, audit_storage, run_async, total):
        recorder = RecordingRenderer()
        pipeline = ExportPipeline(
            store,
            document_renderer=recorder,
            audit_logger=AuditLogger(audit_storage),
        )
        items = [ExpenseItem(name="Cleaning", amount="250.00")]

        with pytest.raises(RenderError) as exc_info:
            run_async(pipeline.render_expense_report(items, total, Language.ENGLISH))

        assert exc_info.value.record == "expense_report"
        assert "not a finite amount" in str(exc_info.value)
        assert recorder.layouts == []
        assert run_async(audit_storage.get_events_by_entity("export", "expense_report")) == []
