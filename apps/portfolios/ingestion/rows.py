"""
Row processing for holdings extracts.

Turns the data range of an extract worksheet into HoldingRow values. Every cell
is extracted and coerced; problems are attached to the row with their exact
location instead of aborting it. Deciding what to do with rows carrying errors
is left to the caller (see RowErrorPolicy).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from apps.portfolios.ingestion.cells import RawCell, extract_cell
from apps.portfolios.ingestion.errors import ValidationIssue, has_errors
from apps.portfolios.ingestion.layout import (
    COLUMN_LETTERS,
    DATA_START_ROW,
    EXTRACT_DATE_CELL,
    FIELD_BY_COLUMN,
    PORTFOLIO_ID_CELL,
)
from apps.portfolios.ingestion.transforms import FieldResult, LocaleTransformer
from libs.choices import IssueKind, Severity

logger = logging.getLogger(__name__)


@dataclass
class HoldingRow:
    """One data row of an extract, coerced to holding fields."""

    row_number: int
    balance: Decimal | None = None
    label: str | None = None
    currency: str | None = None
    valuation_eur: Decimal | None = None
    weight_pct: Decimal | None = None
    isin: str | None = None
    pnl_eur: Decimal | None = None
    fees_eur: Decimal | None = None
    asset_name: str | None = None
    strategy: str | None = None
    bucket: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return has_errors(self.issues)

    @property
    def failed_columns(self) -> list[str]:
        """Column letters of the cells that raised an ERROR."""
        return sorted(
            {issue.column_letter for issue in self.issues if issue.is_error}
        )

    def values(self) -> dict[str, Any]:
        """Field values keyed by holding field, in column order."""
        return {
            FIELD_BY_COLUMN[letter]: getattr(self, FIELD_BY_COLUMN[letter])
            for letter in COLUMN_LETTERS
        }


@dataclass
class RowResult:
    """Outcome of processing one spreadsheet row."""

    row_number: int
    row: HoldingRow | None = None
    is_empty: bool = False

    @property
    def issues(self) -> list[ValidationIssue]:
        return self.row.issues if self.row is not None else []


@dataclass
class ParseStats:
    total_rows: int = 0
    processed_rows: int = 0
    empty_rows: int = 0
    rows_with_errors: int = 0
    processing_time_ms: int = 0


@dataclass
class ParsedExtract:
    """
    Result of parsing an extract worksheet.

    Attributes:
        portfolio_id: Business portfolio id read from B1 (None if missing).
        extract_date: Extract date read from B5 (None if missing/invalid).
        rows: Non-empty data rows in spreadsheet order, including rows with errors.
        issues: Special-cell issues followed by row issues.
        stats: Row counts and processing time.
    """

    portfolio_id: str | None = None
    extract_date: date | None = None
    rows: list[HoldingRow] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)
    stats: ParseStats = field(default_factory=ParseStats)

    @property
    def special_cell_issues(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.kind == IssueKind.SPECIAL_CELL]

    @property
    def has_special_cell_errors(self) -> bool:
        return has_errors(self.special_cell_issues)

    @property
    def error_rows(self) -> list[HoldingRow]:
        return [row for row in self.rows if row.has_errors]

    @property
    def clean_rows(self) -> list[HoldingRow]:
        return [row for row in self.rows if not row.has_errors]


def _extraction_issue(
    message: str, cell_reference: str, kind=IssueKind.CELL_EXTRACTION, **location
) -> ValidationIssue:
    return ValidationIssue(
        kind=kind,
        severity=Severity.ERROR,
        message=message,
        cell_reference=cell_reference,
        **location,
    )


def process_row(
    cells: list[RawCell],
    row_number: int,
    transformer: LocaleTransformer | None = None,
) -> RowResult:
    """
    Extract and coerce the 11 cells of a data row.

    A row whose cells are all empty is reported as empty, never as an error.
    Extraction failures (error markers) and coercion issues are attached to the
    row with their column letter, row number and cell reference; the failed
    field is left as None and the other fields are still processed.

    Args:
        cells: RawCells of columns A-K, in order.
        row_number: Spreadsheet row number.
        transformer: LocaleTransformer to use (default options if None).

    Returns:
        RowResult: The HoldingRow, or is_empty for blank rows.
    """
    transformer = transformer or LocaleTransformer()
    extractions = [extract_cell(cell) for cell in cells]

    if all(extraction.is_empty for extraction in extractions):
        return RowResult(row_number=row_number, is_empty=True)

    row = HoldingRow(row_number=row_number)
    for letter, cell, extraction in zip(COLUMN_LETTERS, cells, extractions):
        field_name = FIELD_BY_COLUMN[letter]

        if extraction.error:
            row.issues.append(
                _extraction_issue(
                    extraction.error,
                    cell.address,
                    row_number=row_number,
                    column_letter=letter,
                    original_value=cell.value,
                )
            )
            continue

        result = transformer.transform(
            field_name, extraction.value, cell.address, row_number
        )
        setattr(row, field_name, result.value)
        row.issues.extend(result.issues)

    return RowResult(row_number=row_number, row=row)


def _read_special_cell(sheet, ref: str, parse) -> FieldResult:
    raw = sheet.raw_cell(ref)
    extraction = extract_cell(raw)
    if extraction.error:
        return FieldResult(
            None,
            [
                _extraction_issue(
                    extraction.error,
                    ref,
                    kind=IssueKind.SPECIAL_CELL,
                    original_value=raw.value,
                )
            ],
        )
    return parse(extraction.value, ref)


def parse_sheet(sheet, transformer: LocaleTransformer | None = None) -> ParsedExtract:
    """
    Parse the special cells and data rows of an extract worksheet.

    Args:
        sheet: ExtractSheet returned by load_extract().
        transformer: LocaleTransformer to use (default options if None).

    Returns:
        ParsedExtract: Portfolio id, extract date, rows, issues and stats.
    """
    transformer = transformer or LocaleTransformer()
    started = time.perf_counter()
    parsed = ParsedExtract()

    portfolio_id = _read_special_cell(
        sheet, PORTFOLIO_ID_CELL, transformer.parse_portfolio_id
    )
    extract_date = _read_special_cell(
        sheet, EXTRACT_DATE_CELL, transformer.parse_extract_date
    )
    parsed.portfolio_id = portfolio_id.value
    parsed.extract_date = extract_date.value
    parsed.issues.extend(portfolio_id.issues)
    parsed.issues.extend(extract_date.issues)

    stats = parsed.stats
    for row_number in range(DATA_START_ROW, sheet.max_row + 1):
        stats.total_rows += 1
        result = process_row(sheet.raw_row(row_number), row_number, transformer)
        if result.is_empty:
            stats.empty_rows += 1
            continue

        stats.processed_rows += 1
        parsed.rows.append(result.row)
        parsed.issues.extend(result.issues)
        if result.row.has_errors:
            stats.rows_with_errors += 1

    stats.processing_time_ms = int((time.perf_counter() - started) * 1000)
    logger.debug(
        "Parsed %s/%s: %d rows, %d empty, %d with errors",
        parsed.portfolio_id,
        parsed.extract_date,
        stats.processed_rows,
        stats.empty_rows,
        stats.rows_with_errors,
    )
    return parsed
