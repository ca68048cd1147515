"""
Workbook reader for holdings extracts.

openpyxl only exposes either formulas or their cached results, never both, so
the file is loaded twice: once with formulas and rich text (data_only=False,
rich_text=True) and once with cached values (data_only=True). Each cell pair is
resolved into a RawCell tagged with its kind.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.cell.cell import TYPE_ERROR, TYPE_FORMULA
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from apps.portfolios.ingestion.cells import CellKind, RawCell
from apps.portfolios.ingestion.errors import StructureError
from apps.portfolios.ingestion.layout import COLUMN_LETTERS, cell_ref

logger = logging.getLogger(__name__)


def _rich_text_runs(value: CellRichText) -> tuple[str, ...]:
    runs = []
    for run in value:
        if isinstance(run, TextBlock):
            runs.append(run.text or "")
        else:
            runs.append(str(run))
    return tuple(runs)


def raw_cell_from_openpyxl(cell, cached=None) -> RawCell:
    """
    Resolve an openpyxl cell into a RawCell.

    Args:
        cell: Cell from the workbook loaded with formulas (data_only=False).
        cached: Same cell from the workbook loaded with data_only=True, if any.

    Returns:
        RawCell: Tagged cell.
    """
    address = cell.coordinate
    value = cell.value
    is_formula = cell.data_type == TYPE_FORMULA

    if cell.data_type == TYPE_ERROR:
        return RawCell(address=address, kind=CellKind.ERROR, value=value)
    if cached is not None and cached.data_type == TYPE_ERROR:
        return RawCell(
            address=address,
            kind=CellKind.ERROR,
            value=cached.value,
            formula=str(value) if is_formula else None,
        )

    if is_formula:
        result = cached.value if cached is not None else None
        formula = getattr(value, "text", None) or str(value)
        return RawCell(
            address=address, kind=CellKind.FORMULA, value=result, formula=formula
        )

    if isinstance(value, CellRichText):
        return RawCell(
            address=address, kind=CellKind.RICH_TEXT, runs=_rich_text_runs(value)
        )

    hyperlink = getattr(cell, "hyperlink", None)
    if hyperlink is not None:
        display = value if value is not None else hyperlink.display
        return RawCell(
            address=address,
            kind=CellKind.HYPERLINK,
            value=display,
            target=hyperlink.target,
        )

    return RawCell.scalar(address, value)


class ExtractSheet:
    """
    Read access to the worksheet of a holdings extract.

    Dimensions are captured at construction: openpyxl creates cells on access,
    which would otherwise grow max_row/max_column while reading.
    """

    def __init__(self, formulas_ws, values_ws=None, sheet_count: int = 1):
        self._formulas = formulas_ws
        self._values = values_ws
        self.title = formulas_ws.title
        self.sheet_count = sheet_count
        self.max_row = formulas_ws.max_row
        self.max_column = formulas_ws.max_column

    def raw_cell(self, ref: str) -> RawCell:
        """Return the RawCell at an A1-style reference."""
        cached = self._values[ref] if self._values is not None else None
        return raw_cell_from_openpyxl(self._formulas[ref], cached)

    def raw_row(self, row_number: int) -> list[RawCell]:
        """Return the RawCells of columns A-K of a row."""
        return [self.raw_cell(cell_ref(letter, row_number)) for letter in COLUMN_LETTERS]

    def row_width(self) -> int:
        """Number of columns to inspect: the layout width or wider if the sheet is."""
        return max(self.max_column, len(COLUMN_LETTERS))

    def column_refs(self, row_number: int) -> list[tuple[str, str]]:
        """Return (column letter, reference) pairs across the row width."""
        letters = [get_column_letter(col) for col in range(1, self.row_width() + 1)]
        return [(letter, cell_ref(letter, row_number)) for letter in letters]


def load_extract(path: str | Path) -> ExtractSheet | None:
    """
    Open an extract and return its first worksheet.

    Args:
        path: Path to the .xlsx/.xlsm file.

    Returns:
        ExtractSheet, or None if the workbook holds no worksheet.

    Raises:
        StructureError: If the file is not a readable workbook.
    """
    path = Path(path)
    try:
        formulas_wb = load_workbook(path, data_only=False, rich_text=True)
        values_wb = load_workbook(path, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise StructureError(
            f"Cannot read workbook {path.name}: {e}", code="UNREADABLE_WORKBOOK"
        ) from e

    if not formulas_wb.worksheets:
        return None

    formulas_ws = formulas_wb.worksheets[0]
    values_ws = values_wb[formulas_ws.title]
    logger.debug(
        "Loaded %s: sheet %r, %d rows x %d columns",
        path.name,
        formulas_ws.title,
        formulas_ws.max_row,
        formulas_ws.max_column,
    )
    return ExtractSheet(
        formulas_ws, values_ws, sheet_count=len(formulas_wb.worksheets)
    )
