"""
Value formatting for court documents (Chilean conventions).

Amounts are whole pesos grouped with dots; dates are written out in Spanish.
"""
from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser

# Canonical month table. Court documents must match this wording exactly.
MONTH_NAMES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


def format_amount(value: Optional[Union[int, float]]) -> str:
    """
    Group thousands with dots, no decimals.

    format_amount(0) -> "0"
    format_amount(1234567) -> "1.234.567"
    format_amount(None) -> ""
    """
    if value is None:
        return ""
    whole = int(value)
    sign = "-" if whole < 0 else ""
    return sign + f"{abs(whole):,}".replace(",", ".")


def parse_amount(value: Optional[Union[str, int, float]]) -> Optional[int]:
    """
    Parse a user-entered amount.

    Accepts "4.000.000", "4000000", 4000000 and 4000000.7 (truncated).
    Returns None for empty, unparseable or non-finite input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            # inf / nan
            return None
    cleaned = str(value).strip().replace(".", "").replace(" ", "")
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        return None


def parse_execution_date(value: Optional[Union[str, date, datetime]]) -> Optional[date]:
    """Read an execution date stored as an ISO string (date or datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def format_date_in_words(value: Optional[Union[str, date, datetime]]) -> str:
    """
    Spell a date the way stamps print it.

    2025-11-10 -> "10 de noviembre de 2025"
    """
    parsed = parse_execution_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day} de {MONTH_NAMES[parsed.month - 1]} de {parsed.year}"
