"""
Locale-aware value coercion for holdings extracts.

Extracts are produced with French regional settings: numbers use a comma as
decimal separator and spaces (often no-break spaces) as thousands separator,
dates are day-first and sometimes spelled out with French month names.

LocaleTransformer turns the value of one extracted cell into the typed value of
its holding field and reports problems as ValidationIssue values instead of
raising, so a whole row can be reported at once.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import pandas as pd
from django.utils import timezone

from apps.portfolios.ingestion.errors import (
    DataTransformationError,
    ValidationIssue,
    has_errors,
)
from apps.portfolios.ingestion.layout import (
    COLUMN_BY_FIELD,
    EXTRACT_DATE_CELL,
    NUMERIC_FIELDS,
    PORTFOLIO_ID_CELL,
)
from libs.choices import IssueKind, Severity

# Spaces used as thousands separators: regular, no-break, narrow no-break
THOUSANDS_SEPARATORS = (" ", "\u00a0", "\u202f")
NUMBER_PATTERN = re.compile(r"^-?\d+(?:,\d+)?$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}(?:[T ].*)?$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{10}$")
FRENCH_DATE_PATTERN = re.compile(
    r"^(\d{1,2})(?:er)?\s+([a-zéèûô]+)\.?\s+(\d{4})$", re.IGNORECASE
)

FRENCH_MONTHS = {
    "janvier": 1,
    "janv": 1,
    "février": 2,
    "fevrier": 2,
    "févr": 2,
    "fevr": 2,
    "mars": 3,
    "avril": 4,
    "avr": 4,
    "mai": 5,
    "juin": 6,
    "juillet": 7,
    "juil": 7,
    "août": 8,
    "aout": 8,
    "septembre": 9,
    "sept": 9,
    "octobre": 10,
    "oct": 10,
    "novembre": 11,
    "nov": 11,
    "décembre": 12,
    "decembre": 12,
    "déc": 12,
    "dec": 12,
}

# 1900 date system: serial 1 is 1900-01-01 and serial 60 is the nonexistent
# 1900-02-29, so serials from 61 on are offset from 1899-12-30
EXCEL_EPOCH = dt.date(1899, 12, 30)
EXCEL_PHANTOM_LEAP_DAY = 60
MAX_EXCEL_SERIAL = 2958465  # 9999-12-31

WEIGHT_RANGE = (Decimal("0"), Decimal("100"))
EXTRACT_YEAR_RANGE = (2000, 2050)
PORTFOLIO_ID_MAX_LENGTH = 100


@dataclass(frozen=True)
class TransformationOptions:
    """
    Switches for LocaleTransformer.

    Attributes:
        trim_strings: Strip surrounding whitespace from text values.
        validate_isin: Warn on ISIN codes that do not match the ISIN format.
        validate_currency: Warn on currency codes that are not 3 letters.
        extract_year_range: Inclusive (first, last) years accepted for the
            extract date.
    """

    trim_strings: bool = True
    validate_isin: bool = True
    validate_currency: bool = True
    extract_year_range: tuple[int, int] = EXTRACT_YEAR_RANGE


@dataclass
class FieldResult:
    """Typed value of one field plus the issues raised while coercing it."""

    value: Any = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return has_errors(self.issues)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return bool(pd.isna(value))
    return False


def round_half_up(value: Decimal, places: int) -> Decimal:
    """Round a Decimal half-up to a number of decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def parse_french_number(value: Any, places: int | None = None) -> Decimal:
    """
    Parse a French-formatted number.

    Accepts native numbers (not booleans, not NaN/infinite) and strings using a
    comma as decimal separator, optional space/no-break space thousands
    separators and an optional leading minus. A dot is rejected: in French
    extracts "1.234" is a thousands grouping, not a decimal.

    Args:
        value: Raw cell value.
        places: Decimal places to round half-up to (no rounding if None).

    Returns:
        Decimal: Parsed value.

    Raises:
        DataTransformationError: If the value is not a number.

    Example:
        >>> parse_french_number("1 234,56")
        Decimal('1234.56')
        >>> parse_french_number("-12,3")
        Decimal('-12.3')
    """
    if isinstance(value, bool):
        raise DataTransformationError(
            f"Boolean {value} is not a number", code="INVALID_NUMBER"
        )

    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation as e:
            raise DataTransformationError(
                f"Cannot convert {value!r} to a number", code="INVALID_NUMBER"
            ) from e
    elif isinstance(value, str):
        text = value.strip()
        for separator in THOUSANDS_SEPARATORS:
            text = text.replace(separator, "")
        if not NUMBER_PATTERN.match(text):
            raise DataTransformationError(
                f'Cannot convert "{value}" to a number', code="INVALID_NUMBER"
            )
        number = Decimal(text.replace(",", "."))
    else:
        raise DataTransformationError(
            f"Unsupported value type for a number: {type(value).__name__}",
            code="INVALID_NUMBER",
        )

    if not number.is_finite():
        raise DataTransformationError(
            f"Cannot convert {value!r} to a finite number", code="INVALID_NUMBER"
        )

    if places is not None:
        number = round_half_up(number, places)
    return number


def _as_text(value: Any) -> str:
    # Integral floats come from numeric cells: 12345.0 -> "12345"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def excel_serial_to_date(serial: int) -> dt.date | None:
    """
    Convert a 1900 date system serial day number to a date.

    Returns None for serial 60, the 1900-02-29 that Excel counts but that
    never existed.

    Example:
        >>> excel_serial_to_date(1)
        datetime.date(1900, 1, 1)
        >>> excel_serial_to_date(45688)
        datetime.date(2025, 1, 31)
    """
    if serial == EXCEL_PHANTOM_LEAP_DAY:
        return None
    if serial < EXCEL_PHANTOM_LEAP_DAY:
        serial += 1
    return EXCEL_EPOCH + dt.timedelta(days=serial)


def _parse_date_string(text: str) -> dt.date | None:
    # Year-first strings are ISO, never day-first
    if ISO_DATE_PATTERN.match(text):
        try:
            parsed = pd.to_datetime(text, format="ISO8601")
        except (ValueError, OverflowError, TypeError):
            return None
        return None if pd.isna(parsed) else parsed.date()

    try:
        parsed = pd.to_datetime(text, dayfirst=True)
    except (ValueError, OverflowError, TypeError):
        parsed = None
    if parsed is not None and not pd.isna(parsed):
        return parsed.date()

    try:
        return dt.datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError:
        pass

    match = FRENCH_DATE_PATTERN.match(text)
    if match:
        day, month_name, year = match.groups()
        month = FRENCH_MONTHS.get(month_name.lower())
        if month:
            try:
                return dt.date(int(year), month, int(day))
            except ValueError:
                return None
    return None


class LocaleTransformer:
    """
    Coerces extracted cell values into holding fields.

    Example:
        >>> transformer = LocaleTransformer()
        >>> result = transformer.transform("balance", "1 234,56", "A10", 10)
        >>> result.value
        Decimal('1234.56')
    """

    def __init__(self, options: TransformationOptions | None = None):
        self.options = options or TransformationOptions()

    def _issue(
        self,
        field_name: str,
        message: str,
        cell_reference: str,
        row_number: int | None,
        original_value: Any,
        severity: str = Severity.ERROR,
    ) -> ValidationIssue:
        return ValidationIssue(
            kind=IssueKind.DATA,
            severity=severity,
            message=message,
            row_number=row_number,
            column_letter=COLUMN_BY_FIELD.get(field_name),
            cell_reference=cell_reference,
            original_value=original_value,
        )

    def transform(
        self, field_name: str, value: Any, cell_reference: str, row_number: int
    ) -> FieldResult:
        """
        Coerce one extracted value into its holding field.

        Args:
            field_name: Holding field (see layout.COLUMNS).
            value: Extracted cell value.
            cell_reference: A1 reference of the cell, used to locate issues.
            row_number: Spreadsheet row, used to locate issues.

        Returns:
            FieldResult: Typed value (None for empty cells) and issues.
        """
        if _is_missing(value):
            return FieldResult(None)

        if field_name in NUMERIC_FIELDS:
            return self._transform_number(field_name, value, cell_reference, row_number)
        if field_name == "currency":
            return self._transform_code(
                field_name,
                value,
                cell_reference,
                row_number,
                CURRENCY_PATTERN if self.options.validate_currency else None,
                "Currency code should be 3 letters",
            )
        if field_name == "isin":
            return self._transform_code(
                field_name,
                value,
                cell_reference,
                row_number,
                ISIN_PATTERN if self.options.validate_isin else None,
                "ISIN should be 2 letters followed by 10 alphanumeric characters",
            )
        return FieldResult(self._text(value))

    def _text(self, value: Any) -> str | None:
        text = _as_text(value)
        if self.options.trim_strings:
            text = text.strip()
        return text or None

    def _transform_number(
        self, field_name: str, value: Any, cell_reference: str, row_number: int
    ) -> FieldResult:
        places = NUMERIC_FIELDS[field_name]
        raw = value
        if field_name == "weight_pct" and isinstance(value, str):
            raw = value.strip().removesuffix("%")

        try:
            number = parse_french_number(raw, places)
        except DataTransformationError as e:
            return FieldResult(
                None,
                [self._issue(field_name, e.message, cell_reference, row_number, value)],
            )

        issues = []
        if field_name == "weight_pct" and not (
            WEIGHT_RANGE[0] <= number <= WEIGHT_RANGE[1]
        ):
            issues.append(
                self._issue(
                    field_name,
                    f"Weight percentage out of range (0-100): {number}",
                    cell_reference,
                    row_number,
                    value,
                    severity=Severity.WARNING,
                )
            )
        return FieldResult(number, issues)

    def _transform_code(
        self,
        field_name: str,
        value: Any,
        cell_reference: str,
        row_number: int,
        pattern: re.Pattern | None,
        message: str,
    ) -> FieldResult:
        code = _as_text(value).strip().upper()
        if not code:
            return FieldResult(None)
        issues = []
        if pattern is not None and not pattern.match(code):
            issues.append(
                self._issue(
                    field_name,
                    f'{message}: "{code}"',
                    cell_reference,
                    row_number,
                    value,
                    severity=Severity.WARNING,
                )
            )
        return FieldResult(code, issues)

    def parse_extract_date(
        self, value: Any, cell_reference: str = EXTRACT_DATE_CELL
    ) -> FieldResult:
        """
        Parse the extract date special cell.

        Accepts dates, datetimes, spreadsheet serial day numbers (1900 date
        system) and strings (year-first ISO, otherwise day-first such as DD/MM/YYYY or
        "31 janvier 2025").
        A missing or unparseable date, or one outside the accepted year range,
        is an ERROR; a future date a WARNING.
        """

        def error(message):
            return FieldResult(
                None,
                [
                    ValidationIssue(
                        kind=IssueKind.SPECIAL_CELL,
                        severity=Severity.ERROR,
                        message=message,
                        cell_reference=cell_reference,
                        original_value=value,
                    )
                ],
            )

        if _is_missing(value):
            return error("Extraction date is missing")

        if isinstance(value, dt.datetime):
            parsed = value.date()
        elif isinstance(value, dt.date):
            parsed = value
        elif isinstance(value, bool):
            return error(f"Unsupported value for extraction date: {value!r}")
        elif isinstance(value, (int, float, Decimal)):
            if not 1 <= value <= MAX_EXCEL_SERIAL:
                return error(f'Cannot convert serial number "{value}" to a date')
            parsed = excel_serial_to_date(int(value))
            if parsed is None:
                return error(f'Serial number "{value}" is not a valid date')
        elif isinstance(value, str):
            parsed = _parse_date_string(value.strip())
            if parsed is None:
                return error(f'Cannot parse date string "{value.strip()}"')
        else:
            return error(
                f"Unsupported value type for extraction date: {type(value).__name__}"
            )

        first_year, last_year = self.options.extract_year_range
        if not first_year <= parsed.year <= last_year:
            return error(
                f"Extraction date {parsed.isoformat()} is outside the accepted "
                f"years {first_year}-{last_year}"
            )

        issues = []
        if parsed > timezone.localdate():
            issues.append(
                ValidationIssue(
                    kind=IssueKind.SPECIAL_CELL,
                    severity=Severity.WARNING,
                    message=f"Extraction date is in the future: {parsed.isoformat()}",
                    cell_reference=cell_reference,
                    original_value=value,
                )
            )
        return FieldResult(parsed, issues)

    def parse_portfolio_id(
        self, value: Any, cell_reference: str = PORTFOLIO_ID_CELL
    ) -> FieldResult:
        """Parse the business portfolio id special cell (required, 100 characters max)."""

        def error(message):
            return FieldResult(
                None,
                [
                    ValidationIssue(
                        kind=IssueKind.SPECIAL_CELL,
                        severity=Severity.ERROR,
                        message=message,
                        cell_reference=cell_reference,
                        original_value=value,
                    )
                ],
            )

        if _is_missing(value):
            return error("Portfolio ID is missing")
        portfolio_id = _as_text(value).strip()
        if len(portfolio_id) > PORTFOLIO_ID_MAX_LENGTH:
            return error(
                f"Portfolio ID is {len(portfolio_id)} characters long, "
                f"above the {PORTFOLIO_ID_MAX_LENGTH} characters limit"
            )
        return FieldResult(portfolio_id)
