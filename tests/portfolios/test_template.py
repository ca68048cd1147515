"""
Tests for the blank extract template.
"""

from __future__ import annotations

from datetime import date

from apps.portfolios.ingestion.layout import EXPECTED_HEADERS
from apps.portfolios.ingestion.rows import parse_sheet
from apps.portfolios.ingestion.structure import validate_structure
from apps.portfolios.ingestion.template import build_holdings_template
from apps.portfolios.ingestion.workbook import load_extract


def test_template_layout():
    ws = build_holdings_template().active

    assert ws.title == "Positions"
    assert [cell.value for cell in ws[9]] == EXPECTED_HEADERS
    assert ws["A1"].value == "Portefeuille"
    assert ws["A5"].value == "Date d'extraction"
    assert ws["B1"].value is None


def test_filled_template_is_ingestible(tmp_path):
    """Test a template filled with one row passes validation and parsing."""
    wb = build_holdings_template("K00149JV/KLX", date(2025, 1, 31))
    wb.active.append(["100"] + [None] * 10)
    path = tmp_path / "filled.xlsx"
    wb.save(path)

    sheet = load_extract(path)
    parsed = parse_sheet(sheet)

    assert validate_structure(sheet).is_valid
    assert parsed.portfolio_id == "K00149JV/KLX"
    assert parsed.extract_date == date(2025, 1, 31)
    assert [row.row_number for row in parsed.rows] == [10]
