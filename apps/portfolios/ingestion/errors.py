"""
Issue model and error taxonomy for holdings ingestion.

Validation problems are collected as ValidationIssue values so that one pass
over a file reports every failing cell. Exceptions are raised only where a
problem stops the current unit of work (a field, a file, a transaction).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from libs.choices import IssueKind, Severity


@dataclass(frozen=True)
class ValidationIssue:
    """
    One problem found while validating or parsing an extract.

    Attributes:
        kind: Category (IssueKind).
        severity: ERROR blocks, WARNING is informational.
        message: Human-readable description.
        row_number: Spreadsheet row, when the issue is located in a row.
        column_letter: Spreadsheet column letter, when located in a column.
        cell_reference: A1-style reference (e.g. "D12") or range ("A9:K9").
        original_value: Raw value that caused the issue, if any.
    """

    kind: str
    severity: str
    message: str
    row_number: int | None = None
    column_letter: str | None = None
    cell_reference: str | None = None
    original_value: Any = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": str(self.kind),
            "severity": str(self.severity),
            "message": self.message,
            "row_number": self.row_number,
            "column_letter": self.column_letter,
            "cell_reference": self.cell_reference,
            "original_value": (
                None if self.original_value is None else str(self.original_value)
            ),
        }

    def __str__(self) -> str:
        location = f" [{self.cell_reference}]" if self.cell_reference else ""
        return f"{self.severity} {self.kind}{location}: {self.message}"


def has_errors(issues) -> bool:
    """Return True if any issue is ERROR severity."""
    return any(issue.is_error for issue in issues)


class IngestionError(Exception):
    """Base class for ingestion failures, with an optional error code."""

    kind = IssueKind.STRUCTURE

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_issue(self, **location) -> ValidationIssue:
        return ValidationIssue(
            kind=self.kind, severity=Severity.ERROR, message=self.message, **location
        )


class StructureError(IngestionError):
    """Worksheet shape is unusable (missing sheet, header, wrong column count)."""

    kind = IssueKind.STRUCTURE


class HeaderError(IngestionError):
    """Header text does not match the expected layout."""

    kind = IssueKind.HEADER


class CellExtractionError(IngestionError):
    """A cell could not be read (error marker such as #N/A)."""

    kind = IssueKind.CELL_EXTRACTION


class DataTransformationError(IngestionError):
    """A raw value could not be coerced into its typed field."""

    kind = IssueKind.DATA


class HoldingsWriteError(IngestionError):
    """The delete-and-replace transaction failed and was rolled back."""

    kind = IssueKind.DATABASE


class FileOperationError(IngestionError):
    """A source file could not be moved. Never undoes a committed write."""

    kind = IssueKind.FILE_OPERATION
