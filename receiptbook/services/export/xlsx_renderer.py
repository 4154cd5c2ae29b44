"""Spreadsheet rendering with openpyxl."""

from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from receiptbook.services.export.interface import SheetLayout, SpreadsheetRenderer


AMOUNT_FORMAT = "0.00"


class OpenpyxlSpreadsheetRenderer(SpreadsheetRenderer):
    """
    Writes a single-sheet workbook.

    Header and total rows are bold; amount cells stay numeric with a
    two-decimal number format so sums in Excel keep working.
    """

    def render(self, layout: SheetLayout) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = layout.sheet_name

        bold = Font(bold=True)

        sheet.append(list(layout.header))
        for cell in sheet[1]:
            cell.font = bold

        for row in layout.rows:
            sheet.append(list(row))

        if layout.total_row is not None:
            sheet.append(list(layout.total_row))
            for cell in sheet[sheet.max_row]:
                cell.font = bold

        for index in layout.amount_columns:
            for cell in sheet[get_column_letter(index + 1)][1:]:
                if isinstance(cell.value, (int, float, Decimal)):
                    cell.number_format = AMOUNT_FORMAT

        for index, column in enumerate(sheet.iter_cols(), start=1):
            width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=8)
            sheet.column_dimensions[get_column_letter(index)].width = width + 2

        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()
