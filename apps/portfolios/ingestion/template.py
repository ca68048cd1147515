"""
Blank holdings extract template.

Builds a workbook with the exact extract layout: metadata labels in column A
next to the special cells, the header row at row 9 and no data rows.
"""

from __future__ import annotations

from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from apps.portfolios.ingestion.layout import (
    COLUMNS,
    EXTRACT_DATE_CELL,
    HEADER_ROW,
    PORTFOLIO_ID_CELL,
    cell_ref,
)

SHEET_TITLE = "Positions"
PORTFOLIO_ID_LABEL = "Portefeuille"
EXTRACT_DATE_LABEL = "Date d'extraction"


def build_holdings_template(
    portfolio_id: str | None = None, extract_date: date | None = None
) -> Workbook:
    """
    Create a single-sheet workbook with the extract layout.

    Args:
        portfolio_id: Value written to the portfolio id cell, if any.
        extract_date: Value written to the extract date cell, if any.

    Returns:
        Workbook: Ready to be filled from row 10 and saved.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws["A1"] = PORTFOLIO_ID_LABEL
    ws["A5"] = EXTRACT_DATE_LABEL
    ws[PORTFOLIO_ID_CELL] = portfolio_id
    ws[EXTRACT_DATE_CELL] = extract_date
    if extract_date is not None:
        ws[EXTRACT_DATE_CELL].number_format = "DD/MM/YYYY"

    header_fill = PatternFill(
        start_color="366092", end_color="366092", fill_type="solid"
    )
    header_font = Font(bold=True, color="FFFFFF")
    for letter, (_, header) in COLUMNS.items():
        cell = ws[cell_ref(letter, HEADER_ROW)]
        cell.value = header
        cell.fill = header_fill
        cell.font = header_font
        ws.column_dimensions[letter].width = 20

    return wb
