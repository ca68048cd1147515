"""
Structural validation of holdings extracts.

The layout is fixed: two metadata cells, a header row with exactly 11 populated
cells A-K and data rows below. Every problem is reported with the exact cell it
was found at; a file is structurally valid when no ERROR was reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openpyxl.utils import coordinate_to_tuple

from apps.portfolios.ingestion.cells import extract_cell
from apps.portfolios.ingestion.errors import ValidationIssue, has_errors
from apps.portfolios.ingestion.layout import (
    COLUMN_LETTERS,
    COLUMNS,
    DATA_START_ROW,
    EXTRACT_DATE_CELL,
    HEADER_ROW,
    MIN_ROW_COUNT,
    PORTFOLIO_ID_CELL,
    cell_ref,
)
from libs.choices import IssueKind, Severity

logger = logging.getLogger(__name__)


@dataclass
class StructureReport:
    """Outcome of structural validation."""

    issues: list[ValidationIssue] = field(default_factory=list)
    row_count: int = 0
    column_count: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not has_errors(self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if not issue.is_error]


def normalize_header(text) -> str:
    """Collapse whitespace and casefold, so "  Code  ISIN" matches "code isin"."""
    return " ".join(str(text).split()).casefold()


def _structure_issue(message, cell_reference, severity=Severity.ERROR, **extra):
    return ValidationIssue(
        kind=IssueKind.STRUCTURE,
        severity=severity,
        message=message,
        cell_reference=cell_reference,
        **extra,
    )


def validate_structure(sheet, strict_headers: bool = False) -> StructureReport:
    """
    Validate the structure of an extract worksheet.

    Checks:
    - the worksheet exists
    - the row count reaches the minimum (header row plus one data row)
    - the special cells B1 (portfolio id) and B5 (extract date) are addressable
    - the header row has exactly 11 populated cells, at positions A-K
    - each header text matches the expected one, ignoring case and extra
      whitespace (WARNING, or ERROR when strict_headers is set)

    Args:
        sheet: ExtractSheet returned by load_extract(), or None.
        strict_headers: Treat header text mismatches as errors.

    Returns:
        StructureReport: Issues found; is_valid when none is an ERROR.
    """
    report = StructureReport()

    if sheet is None:
        report.issues.append(
            _structure_issue("Workbook contains no worksheet", cell_reference="A1")
        )
        return report

    report.row_count = sheet.max_row
    report.column_count = sheet.max_column

    if sheet.sheet_count > 1:
        report.issues.append(
            _structure_issue(
                f"Workbook has {sheet.sheet_count} worksheets, only "
                f'"{sheet.title}" is read',
                cell_reference="A1",
                severity=Severity.WARNING,
            )
        )

    if sheet.max_row < MIN_ROW_COUNT:
        report.issues.append(
            _structure_issue(
                f"Worksheet has {sheet.max_row} rows, at least {MIN_ROW_COUNT} "
                f"are required (header at row {HEADER_ROW}, data from row "
                f"{DATA_START_ROW})",
                cell_reference=cell_ref("A", DATA_START_ROW),
            )
        )

    for ref in (PORTFOLIO_ID_CELL, EXTRACT_DATE_CELL):
        row, column = coordinate_to_tuple(ref)
        if row > sheet.max_row or column > sheet.max_column:
            report.issues.append(
                _structure_issue(
                    f"Special cell {ref} is outside the worksheet", cell_reference=ref
                )
            )

    _validate_header_row(sheet, report, strict_headers)

    if not report.is_valid:
        logger.debug(
            "Structure of sheet %r is invalid: %d error(s)",
            sheet.title,
            len(report.errors),
        )
    return report


def _validate_header_row(sheet, report: StructureReport, strict_headers: bool):
    header_severity = Severity.ERROR if strict_headers else Severity.WARNING

    for letter, ref in sheet.column_refs(HEADER_ROW):
        extraction = extract_cell(sheet.raw_cell(ref))
        expected = COLUMNS.get(letter)

        if expected is None:
            if not extraction.is_empty:
                report.issues.append(
                    _structure_issue(
                        f"Unexpected populated header cell {ref} beyond column "
                        f"{COLUMN_LETTERS[-1]}",
                        cell_reference=ref,
                        row_number=HEADER_ROW,
                        column_letter=letter,
                        original_value=extraction.value,
                    )
                )
            continue

        _, expected_header = expected
        if extraction.is_empty or extraction.error:
            report.issues.append(
                _structure_issue(
                    f'Missing header at {ref} (expected "{expected_header}")',
                    cell_reference=ref,
                    row_number=HEADER_ROW,
                    column_letter=letter,
                )
            )
            continue

        actual = str(extraction.value)
        report.headers[letter] = actual
        if normalize_header(actual) != normalize_header(expected_header):
            report.issues.append(
                ValidationIssue(
                    kind=IssueKind.HEADER,
                    severity=header_severity,
                    message=f'Header at {ref} is "{actual}", expected '
                    f'"{expected_header}"',
                    row_number=HEADER_ROW,
                    column_letter=letter,
                    cell_reference=ref,
                    original_value=actual,
                )
            )
