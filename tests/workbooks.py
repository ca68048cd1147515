"""
Helpers building holdings extracts on disk for tests.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from apps.portfolios.ingestion.layout import DATA_START_ROW
from apps.portfolios.ingestion.template import build_holdings_template

PORTFOLIO_ID = "K00149JV/KLX"
EXTRACT_DATE = date(2025, 1, 31)

# balance, label, currency, valuation, weight, isin, pnl, fees, name, strategy, bucket
DEFAULT_ROWS = [
    [
        "1 234,56",
        "Fonds Euro",
        "EUR",
        "10 000,00",
        "45,5",
        "FR0010135103",
        "120,40",
        "12,00",
        "Carmignac Patrimoine",
        "Prudent",
        "Liquide",
    ],
    [
        1500,
        "Actions Monde",
        "usd",
        5000.5,
        22.75,
        "LU0171307068",
        -35.2,
        4,
        "BGF World",
        "Dynamique",
        "Liquide",
    ],
    [
        "-12,3",
        "Private Equity",
        "EUR",
        "7 500",
        "31,75",
        "FR0013311198",
        "0",
        "0",
        "PE Fund III",
        "Croissance",
        "Illiquide",
    ],
]


def build_extract(
    portfolio_id=PORTFOLIO_ID,
    extract_date=EXTRACT_DATE,
    rows=None,
    headers=None,
):
    """
    Build an extract workbook.

    Args:
        portfolio_id: Value of B1 (None leaves it empty).
        extract_date: Value of B5 (None leaves it empty).
        rows: Data rows written from row 10 (DEFAULT_ROWS if None).
        headers: {column letter: text} overriding header cells of row 9.
    """
    wb = build_holdings_template()
    ws = wb.active
    ws["B1"] = portfolio_id
    ws["B5"] = extract_date
    for letter, text in (headers or {}).items():
        ws[f"{letter}9"] = text

    for offset, row in enumerate(DEFAULT_ROWS if rows is None else rows):
        for col, value in enumerate(row, start=1):
            ws.cell(row=DATA_START_ROW + offset, column=col, value=value)
    return wb


def write_extract(path: Path, **kwargs) -> Path:
    """Build an extract (see build_extract) and save it to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    build_extract(**kwargs).save(path)
    return path
