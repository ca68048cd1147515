"""
Fixed layout of a holdings extract.

The extract is a single worksheet with two metadata cells (portfolio id in B1,
extract date in B5), a header row at row 9 and data rows from row 10, over
exactly 11 columns A-K. The layout is versionless: there is no column mapping
or detection, every column has one position.
"""

from __future__ import annotations

PORTFOLIO_ID_CELL = "B1"
EXTRACT_DATE_CELL = "B5"
HEADER_ROW = 9
DATA_START_ROW = 10
COLUMN_COUNT = 11

# Header row plus at least one data row
MIN_ROW_COUNT = DATA_START_ROW

# Column letter → (holding field, expected header text)
COLUMNS = {
    "A": ("balance", "Solde"),
    "B": ("label", "Libellé"),
    "C": ("currency", "Devise"),
    "D": ("valuation_eur", "Estimation + int. courus (EUR)"),
    "E": ("weight_pct", "Poids (%)"),
    "F": ("isin", "Code ISIN"),
    "G": ("pnl_eur", "B / P - Total (EUR)"),
    "H": ("fees_eur", "Frais (EUR)"),
    "I": ("asset_name", "Nom"),
    "J": ("strategy", "Stratégie"),
    "K": ("bucket", "Poche"),
}

COLUMN_LETTERS = list(COLUMNS)
FIELD_BY_COLUMN = {letter: field for letter, (field, _) in COLUMNS.items()}
COLUMN_BY_FIELD = {field: letter for letter, field in FIELD_BY_COLUMN.items()}
EXPECTED_HEADERS = [header for _, header in COLUMNS.values()]

# Numeric fields and the number of decimals they are rounded to
NUMERIC_FIELDS = {
    "balance": 2,
    "valuation_eur": 2,
    "weight_pct": 3,
    "pnl_eur": 2,
    "fees_eur": 2,
}
# Stored as EUR Money amounts
MONEY_FIELDS = ["valuation_eur", "pnl_eur", "fees_eur"]
TEXT_FIELDS = ["label", "asset_name", "strategy", "bucket"]


def cell_ref(column_letter: str, row_number: int) -> str:
    """Return the A1-style reference of a cell, e.g. cell_ref("C", 12) == "C12"."""
    return f"{column_letter}{row_number}"
