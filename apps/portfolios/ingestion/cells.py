"""
Cell extraction for holdings extracts.

Spreadsheet cells come in several shapes: plain values, formulas with a cached
result, rich text split in runs, hyperlinks, and error markers. The workbook
reader resolves each cell once into a RawCell tagged with its CellKind, and
extract_cell() turns any RawCell into a uniform CellExtraction. Downstream
code (row processing, transformation) only ever sees CellExtraction values.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class CellKind(str, enum.Enum):
    """Shape of a spreadsheet cell."""

    EMPTY = "empty"
    SCALAR = "scalar"
    FORMULA = "formula"
    RICH_TEXT = "rich_text"
    HYPERLINK = "hyperlink"
    ERROR = "error"


@dataclass(frozen=True)
class RawCell:
    """
    A spreadsheet cell as read from the workbook, tagged by kind.

    Attributes:
        address: A1-style reference.
        kind: CellKind of the cell.
        value: Scalar value, cached formula result, hyperlink display text,
            or error code depending on kind.
        formula: Formula text for FORMULA cells (and ERROR cells produced by a formula).
        runs: Text segments of a RICH_TEXT cell.
        target: URL of a HYPERLINK cell.
    """

    address: str
    kind: CellKind = CellKind.EMPTY
    value: Any = None
    formula: str | None = None
    runs: tuple[str, ...] = ()
    target: str | None = None

    @classmethod
    def empty(cls, address: str) -> RawCell:
        return cls(address=address)

    @classmethod
    def scalar(cls, address: str, value: Any) -> RawCell:
        if value is None:
            return cls.empty(address)
        return cls(address=address, kind=CellKind.SCALAR, value=value)


@dataclass(frozen=True)
class CellExtraction:
    """Uniform result of reading one cell."""

    value: Any
    is_formula: bool = False
    is_empty: bool = False
    error: str | None = None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def extract_cell(raw: RawCell) -> CellExtraction:
    """
    Resolve a RawCell into its usable value.

    - Formulas yield their cached result, never the formula text.
    - Rich text runs are concatenated into one string.
    - Hyperlinks yield their display text, never the URL.
    - Error markers yield no value and an extraction error.
    - Anything without an underlying value (including blank strings) is empty.

    Args:
        raw: Cell as read from the workbook.

    Returns:
        CellExtraction: value, is_formula, is_empty and error message.
    """
    if raw.kind == CellKind.ERROR:
        return CellExtraction(
            value=None,
            is_formula=raw.formula is not None,
            is_empty=False,
            error=f"Cell {raw.address} contains error value {raw.value}",
        )

    if raw.kind == CellKind.FORMULA:
        return CellExtraction(
            value=None if _is_blank(raw.value) else raw.value,
            is_formula=True,
            is_empty=_is_blank(raw.value),
        )

    if raw.kind == CellKind.RICH_TEXT:
        text = "".join(raw.runs)
        return CellExtraction(value=text or None, is_empty=_is_blank(text))

    if raw.kind == CellKind.HYPERLINK:
        # Display text only; a bare link without text counts as empty
        return CellExtraction(
            value=None if _is_blank(raw.value) else raw.value,
            is_empty=_is_blank(raw.value),
        )

    if raw.kind == CellKind.SCALAR and not _is_blank(raw.value):
        return CellExtraction(value=raw.value)

    return CellExtraction(value=None, is_empty=True)
