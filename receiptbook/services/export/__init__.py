"""Export services package."""

from receiptbook.services.export.interface import (
    DocumentLayout,
    DocumentRenderer,
    SheetLayout,
    SignatureBlock,
    SpreadsheetRenderer,
    TableBlock,
)
from receiptbook.services.export.pdf_renderer import ReportLabDocumentRenderer
from receiptbook.services.export.pipeline import (
    ExportedFile,
    ExportPipeline,
    RenderError,
    export_filename,
)
from receiptbook.services.export.xlsx_renderer import OpenpyxlSpreadsheetRenderer

__all__ = [
    "DocumentLayout",
    "DocumentRenderer",
    "ExportedFile",
    "ExportPipeline",
    "OpenpyxlSpreadsheetRenderer",
    "RenderError",
    "ReportLabDocumentRenderer",
    "SheetLayout",
    "SignatureBlock",
    "SpreadsheetRenderer",
    "TableBlock",
    "export_filename",
]
