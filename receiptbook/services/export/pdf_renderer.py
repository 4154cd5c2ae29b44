"""
PDF rendering with ReportLab

Draws a DocumentLayout as a paginated document:
- Header lines centered at the top of page one
- Grid table (header row optionally repeated on every page)
- Total line and a right-aligned signature block
- Footer lines at the bottom of every page

A TrueType font can be configured for Gujarati captions; without one
the built-in Helvetica is used.
"""

from html import escape
from io import BytesIO
from pathlib import Path
from typing import Optional

import structlog
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.platypus import (
    Image,
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from receiptbook.config import ExportSettings, get_settings
from receiptbook.services.export.interface import (
    DocumentLayout,
    DocumentRenderer,
    SignatureBlock,
    TableBlock,
)


logger = structlog.get_logger(__name__)

UNICODE_FONT_NAME = "ReceiptBookUnicode"

PAGE_SIZES = {
    "A4": A4,
    "LETTER": LETTER,
}


class ReportLabDocumentRenderer(DocumentRenderer):
    """DocumentRenderer backed by ReportLab's platypus layout engine."""

    def __init__(self, settings: Optional[ExportSettings] = None):
        self._settings = settings or get_settings().export
        self._font, self._bold_font = self._resolve_fonts()
        self._styles = self._build_styles()

    def _resolve_fonts(self) -> tuple[str, str]:
        """Register the configured TTF once per process; fall back to Helvetica."""
        font_path = self._settings.unicode_font_path
        if not font_path or not Path(font_path).exists():
            return "Helvetica", "Helvetica-Bold"

        if UNICODE_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
            try:
                pdfmetrics.registerFont(TTFont(UNICODE_FONT_NAME, font_path))
            except TTFError as e:
                logger.warning("export_font_unusable", path=font_path, error=str(e))
                return "Helvetica", "Helvetica-Bold"
            logger.info("export_font_registered", path=font_path)

        return UNICODE_FONT_NAME, UNICODE_FONT_NAME

    def _build_styles(self) -> dict[str, ParagraphStyle]:
        base = getSampleStyleSheet()["Normal"]
        return {
            "header": ParagraphStyle(
                name="RBHeader", parent=base, fontName=self._bold_font,
                fontSize=14, leading=18, alignment=TA_CENTER,
            ),
            "title": ParagraphStyle(
                name="RBTitle", parent=base, fontName=self._bold_font,
                fontSize=16, leading=20, alignment=TA_CENTER, spaceAfter=4 * mm,
            ),
            "body": ParagraphStyle(
                name="RBBody", parent=base, fontName=self._font,
                fontSize=11, leading=14,
            ),
            "total": ParagraphStyle(
                name="RBTotal", parent=base, fontName=self._bold_font,
                fontSize=12, leading=15,
            ),
            "cell": ParagraphStyle(
                name="RBCell", parent=base, fontName=self._font,
                fontSize=10, leading=12,
            ),
            "cell_numeric": ParagraphStyle(
                name="RBCellNumeric", parent=base, fontName=self._font,
                fontSize=10, leading=12, alignment=TA_RIGHT,
            ),
            "cell_bold": ParagraphStyle(
                name="RBCellBold", parent=base, fontName=self._bold_font,
                fontSize=10, leading=12,
            ),
            "cell_bold_numeric": ParagraphStyle(
                name="RBCellBoldNumeric", parent=base, fontName=self._bold_font,
                fontSize=10, leading=12, alignment=TA_RIGHT,
            ),
            "signature": ParagraphStyle(
                name="RBSignature", parent=base, fontName=self._font,
                fontSize=11, leading=14, alignment=TA_RIGHT,
            ),
        }

    def _cell(self, value: str, numeric: bool, bold: bool) -> Paragraph:
        key = "cell_bold" if bold else "cell"
        if numeric:
            key += "_numeric"
        return Paragraph(escape(value), self._styles[key])

    def _table(self, block: TableBlock, available_width: float) -> Table:
        numeric = set(block.numeric_columns)
        data = [[self._cell(text, False, True) for text in block.header]]
        for row in block.rows:
            data.append([self._cell(text, i in numeric, False) for i, text in enumerate(row)])
        for row in block.footer:
            data.append([self._cell(text, i in numeric, True) for i, text in enumerate(row)])

        column_count = max(len(block.header), 1)
        table = Table(
            data,
            colWidths=[available_width / column_count] * column_count,
            repeatRows=1 if block.repeat_header else 0,
        )
        style = [
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 6),
            ("RIGHTPADDING", (0, 0), (-1, -1), 6),
        ]
        if block.footer:
            style.append(("BACKGROUND", (0, -len(block.footer)), (-1, -1), colors.whitesmoke))
        table.setStyle(TableStyle(style))
        return table

    def _signature(self, block: SignatureBlock) -> KeepTogether:
        parts = [Spacer(1, 10 * mm)]
        if block.image:
            image = Image(
                BytesIO(block.image),
                width=self._settings.signature_width_mm * mm,
                height=self._settings.signature_height_mm * mm,
            )
            image.hAlign = "RIGHT"
            parts.append(image)
        if block.name:
            parts.append(Paragraph(escape(block.name), self._styles["signature"]))
        parts.append(Paragraph(escape(block.caption), self._styles["signature"]))
        return KeepTogether(parts)

    def render(self, layout: DocumentLayout) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=PAGE_SIZES[self._settings.page_size],
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=18 * mm,
            bottomMargin=28 * mm,
            title=layout.title or "",
        )

        story = []
        for line in layout.header_lines:
            story.append(Paragraph(escape(line), self._styles["header"]))
        if layout.header_lines:
            story.append(Spacer(1, 6 * mm))
        if layout.title:
            story.append(Paragraph(escape(layout.title), self._styles["title"]))
        for line in layout.subtitle_lines:
            story.append(Paragraph(escape(line), self._styles["body"]))
        if layout.subtitle_lines:
            story.append(Spacer(1, 4 * mm))

        story.append(self._table(layout.table, doc.width))

        if layout.total_line:
            story.append(Spacer(1, 8 * mm))
            story.append(Paragraph(escape(layout.total_line), self._styles["total"]))
        if layout.signature is not None:
            story.append(self._signature(layout.signature))

        footer_lines = list(layout.footer_lines)
        font = self._font

        def _draw_footer(canvas, _doc):
            if not footer_lines:
                return
            canvas.saveState()
            canvas.setFont(font, 9)
            canvas.setFillColor(colors.grey)
            y = 12 * mm + 4.5 * mm * (len(footer_lines) - 1)
            for line in footer_lines:
                canvas.drawString(_doc.leftMargin, y, line)
                y -= 4.5 * mm
            canvas.restoreState()

        doc.build(story, onFirstPage=_draw_footer, onLaterPages=_draw_footer)
        return buffer.getvalue()
