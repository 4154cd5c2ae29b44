"""
Abstract Renderer Interface

DESIGN DECISION: The export pipeline decides WHAT goes on a page
(header lines, table cells, totals, signature); renderers decide HOW
it is drawn. Layouts are plain data so they can be asserted on in tests
without opening a PDF.

Renderers are synchronous and return complete file bytes. They raise
on failure and never return partial output.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field


# =============================================================================
# LAYOUT MODELS
# =============================================================================

class TableBlock(BaseModel):
    """A grid table: one caption header row, body rows, optional footer rows."""

    header: list[str]
    rows: list[list[str]] = Field(default_factory=list)
    footer: list[list[str]] = Field(
        default_factory=list,
        description="Bold rows drawn after the body (e.g. grand total)"
    )
    numeric_columns: list[int] = Field(
        default_factory=list,
        description="Column indexes drawn right-aligned"
    )
    repeat_header: bool = Field(
        default=False,
        description="Repeat the header row at the top of every page"
    )


class SignatureBlock(BaseModel):
    """Right-aligned signature image above the signer's name and a caption."""

    image: Optional[bytes] = Field(
        default=None,
        description="Decoded image bytes, None when no signature is stored"
    )
    name: str = ""
    caption: str


class DocumentLayout(BaseModel):
    """Renderer-neutral description of one PDF document."""

    header_lines: list[str] = Field(
        default_factory=list,
        description="Centered lines at the top of page one"
    )
    title: Optional[str] = None
    subtitle_lines: list[str] = Field(default_factory=list)
    table: TableBlock
    total_line: Optional[str] = None
    signature: Optional[SignatureBlock] = None
    footer_lines: list[str] = Field(
        default_factory=list,
        description="Lines drawn at the bottom of every page"
    )


SheetCell = Union[str, Decimal]


class SheetLayout(BaseModel):
    """Renderer-neutral description of a single-sheet workbook."""

    sheet_name: str
    header: list[str]
    rows: list[list[SheetCell]] = Field(default_factory=list)
    total_row: Optional[list[SheetCell]] = None
    amount_columns: list[int] = Field(
        default_factory=list,
        description="Column indexes holding numeric amounts"
    )


# =============================================================================
# RENDERERS
# =============================================================================

class DocumentRenderer(ABC):
    """Turns a DocumentLayout into PDF bytes."""

    media_type = "application/pdf"
    extension = "pdf"

    @abstractmethod
    def render(self, layout: DocumentLayout) -> bytes:
        """
        Render the layout.

        Raises:
            Exception: Any drawing failure; callers wrap it in RenderError
        """
        pass


class SpreadsheetRenderer(ABC):
    """Turns a SheetLayout into workbook bytes."""

    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    @abstractmethod
    def render(self, layout: SheetLayout) -> bytes:
        """Render the layout."""
        pass
